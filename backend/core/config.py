import logging
import os
from pathlib import Path
from typing import Optional

from dotenv import load_dotenv

# Load environment variables from .env file
# Load .env.local first (for local development), then .env (fallback)
load_dotenv(".env.local", override=True)  # Local development overrides
load_dotenv()  # Load .env if exists (won't override existing vars)
# General config in a central place


def _env_bool(name: str, default: str = "false") -> bool:
    """Parse a boolean-like environment variable.

    Accepts a broad set of truthy values to be user-friendly.
    """
    return os.getenv(name, default).strip().lower() in {"1", "true", "yes", "on", "y"}


def _env_int(name: str, default: int) -> int:
    raw = os.getenv(name)
    if raw is None or not raw.strip():
        return default
    try:
        return int(raw)
    except ValueError:
        logging.getLogger(__name__).warning(
            f"Ignoring non-integer value '{raw}' for {name}, using {default}"
        )
        return default


# Logging

LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO").upper()
LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"


def configure_logging(level: Optional[str] = None) -> None:
    """Configure root logging. Set LOG_LEVEL=WARNING in production to reduce noise."""
    level_name = (level or os.getenv("LOG_LEVEL", LOG_LEVEL)).upper()
    logging.basicConfig(level=getattr(logging, level_name, logging.INFO), format=LOG_FORMAT)


# ----------------------------------------------------------------------------
# Layer catalog
# ----------------------------------------------------------------------------

LAYER_CATALOG_ENV = "LAYER_CATALOG_PATH"
MOCK_FUTURE_LAYER_ENV = "MOCK_FUTURE_LAYER"


def get_layer_catalog_path() -> Optional[Path]:
    """Return the configured layer catalog file, if set."""
    value = os.getenv(LAYER_CATALOG_ENV)
    return Path(value) if value else None


def get_mock_future_layer() -> Optional[str]:
    """Return the ``<layerId>,<futureTime>`` override used to fake future coverage."""
    return os.getenv(MOCK_FUTURE_LAYER_ENV) or None


def get_apply_date_adjustments() -> bool:
    """Whether rolling-window, ongoing and future passes run when the catalog loads."""
    return _env_bool("APPLY_DATE_ADJUSTMENTS", default="true")


# ----------------------------------------------------------------------------
# Date range resolution / permalink encoding
# ----------------------------------------------------------------------------

# Granule layers show this many granules unless the permalink says otherwise.
DEFAULT_GRANULE_COUNT = _env_int("DEFAULT_GRANULE_COUNT", 20)

# Sub-daily layers are only enumerated this many minutes either side of the
# requested time (or of the timeline limits).
SUBDAILY_WINDOW_MINUTES = _env_int("SUBDAILY_WINDOW_MINUTES", 60)

# Opacity is written to permalinks with this many decimals.
OPACITY_PRECISION = _env_int("OPACITY_PRECISION", 2)
