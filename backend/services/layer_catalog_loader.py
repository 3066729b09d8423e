"""
Layer Catalog Loader

Loads and validates the layer catalog: layer definitions, permalink id
redirects and the default layer set. The catalog is provided as a JSON file
via environment variable LAYER_CATALOG_PATH.

Usage:
    export LAYER_CATALOG_PATH=/path/to/layers.json
    # or in .env file

The loader:
1. Reads the catalog file if path is set
2. Validates against the LayerCatalog schema
3. Drops redirects pointing at unknown layers
4. Drops default layers missing from the catalog
5. Warns about layers with overlapping date ranges
6. Applies MOCK_FUTURE_LAYER and the dynamic date range adjustments
"""

import json
import logging
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, List, Optional, Tuple, Union

from pydantic import ValidationError

from core.config import get_apply_date_adjustments, get_layer_catalog_path, get_mock_future_layer
from models.catalog import CatalogValidationResult, LayerCatalog
from models.layer import LayerDefinition
from models.layer_state import LayerStateEntry
from services.layers.date_overlap import date_overlap
from services.layers.range_adjustment import (
    adjust_layer_date_ranges,
    mock_future_time_layer_options,
)

logger = logging.getLogger(__name__)

# Module-level cache for the loaded catalog
_cached_catalog: Optional[CatalogValidationResult] = None
_catalog_loaded: bool = False


def load_catalog_file(
    path: Union[str, Path],
) -> Tuple[Optional[Dict[str, Any]], Optional[str]]:
    """Load and parse a JSON catalog file.

    Args:
        path: Path to the catalog file

    Returns:
        Tuple of (parsed dict or None, error message or None)
    """
    catalog_path = Path(path)

    if not catalog_path.exists():
        return None, f"Catalog file not found: {path}"

    if not catalog_path.is_file():
        return None, f"Catalog path is not a file: {path}"

    try:
        with open(catalog_path, "r", encoding="utf-8") as f:
            data = json.load(f)
    except json.JSONDecodeError as e:
        return None, f"Invalid JSON in catalog file: {e}"
    except PermissionError:
        return None, f"Permission denied reading catalog file: {path}"
    except OSError as e:
        return None, f"Error reading catalog file: {e}"

    if not isinstance(data, dict):
        return None, "Catalog file must contain a JSON object"
    return data, None


def validate_redirects(
    redirects: Dict[str, Dict[str, str]], layers: Dict[str, LayerDefinition]
) -> Tuple[Dict[str, Dict[str, str]], List[str]]:
    """Drop layer redirects whose target is not in the catalog.

    Returns:
        Tuple of (valid redirects, warning messages)
    """
    warnings: List[str] = []
    valid = {kind: dict(mapping) for kind, mapping in redirects.items()}
    layer_redirects = valid.get("layers", {})
    for old_id, new_id in list(layer_redirects.items()):
        if new_id not in layers:
            warnings.append(
                f"Redirect '{old_id}' -> '{new_id}' targets an unknown layer - ignoring"
            )
            del layer_redirects[old_id]
    return valid, warnings


def validate_defaults(
    defaults: List[LayerStateEntry], layers: Dict[str, LayerDefinition]
) -> Tuple[List[LayerStateEntry], List[str]]:
    """Drop default layers that are not in the catalog.

    Returns:
        Tuple of (valid default entries, warning messages)
    """
    warnings: List[str] = []
    valid: List[LayerStateEntry] = []
    for entry in defaults:
        if entry.id not in layers:
            warnings.append(f"Default layer '{entry.id}' is not in the catalog - ignoring")
        else:
            valid.append(entry)
    return valid, warnings


def validate_date_ranges(layers: Dict[str, LayerDefinition]) -> List[str]:
    """Warn about layers whose date ranges overlap."""
    warnings: List[str] = []
    for layer in layers.values():
        if not layer.period or len(layer.date_ranges) < 2:
            continue
        overlap = date_overlap(layer.period, layer.date_ranges)
        if overlap.overlap:
            warnings.append(
                f"Layer '{layer.id}' has {len(overlap.ranges)} overlapping date range pair(s)"
            )
    return warnings


def _store(result: CatalogValidationResult) -> CatalogValidationResult:
    global _cached_catalog, _catalog_loaded
    _cached_catalog = result
    _catalog_loaded = True
    return result


def load_and_validate_catalog(
    path: Optional[Union[str, Path]] = None, now: Optional[datetime] = None
) -> CatalogValidationResult:
    """Load and validate the layer catalog.

    Args:
        path: Catalog file, defaults to LAYER_CATALOG_PATH
        now: Moment the dynamic date ranges are computed for (defaults to now)

    Returns:
        CatalogValidationResult with the catalog and any warnings/errors
    """
    if _catalog_loaded and _cached_catalog is not None and path is None:
        return _cached_catalog

    catalog_path = path or get_layer_catalog_path()

    if not catalog_path:
        logger.info(
            "No layer catalog specified (LAYER_CATALOG_PATH not set). Using empty catalog."
        )
        return _store(CatalogValidationResult(valid=True, catalog=LayerCatalog()))

    logger.info(f"Loading layer catalog from: {catalog_path}")

    data, load_error = load_catalog_file(catalog_path)
    if load_error:
        logger.error(f"Failed to load layer catalog: {load_error}")
        return _store(CatalogValidationResult(valid=False, errors=[load_error]))

    try:
        catalog = LayerCatalog.model_validate(data)
    except ValidationError as e:
        logger.error(f"Layer catalog validation failed: {e}")
        return _store(
            CatalogValidationResult(valid=False, errors=[f"Catalog validation failed: {e}"])
        )

    warnings: List[str] = []

    redirects, redirect_warnings = validate_redirects(catalog.redirects, catalog.layers)
    warnings.extend(redirect_warnings)
    defaults, default_warnings = validate_defaults(catalog.defaults, catalog.layers)
    warnings.extend(default_warnings)
    warnings.extend(validate_date_ranges(catalog.layers))

    layers = catalog.layers
    mock_future_layer = get_mock_future_layer()
    if mock_future_layer:
        layers = mock_future_time_layer_options(layers, mock_future_layer)

    if get_apply_date_adjustments():
        adjusted_now = now or datetime.now(timezone.utc)
        layers, adjustment_warnings = adjust_layer_date_ranges(layers, adjusted_now)
        warnings.extend(adjustment_warnings)

    catalog = catalog.model_copy(
        update={"layers": layers, "redirects": redirects, "defaults": defaults}
    )

    for warning in warnings:
        logger.warning(f"Layer catalog: {warning}")

    logger.info(
        f"Layer catalog loaded successfully:\n"
        f"  - Layers: {len(catalog.layers)}\n"
        f"  - Redirects: {len(catalog.redirects.get('layers', {}))}\n"
        f"  - Default layers: {len(catalog.defaults)}\n"
        f"  - Warnings: {len(warnings)}"
    )
    return _store(CatalogValidationResult(valid=True, catalog=catalog, warnings=warnings))


def get_cached_catalog() -> Optional[LayerCatalog]:
    """Get the cached catalog if loaded and valid.

    Returns:
        The loaded catalog or None if invalid
    """
    if not _catalog_loaded:
        result = load_and_validate_catalog()
        return result.catalog if result.valid else None

    return _cached_catalog.catalog if _cached_catalog and _cached_catalog.valid else None


def clear_catalog_cache() -> None:
    """Forget the loaded catalog (used by tests and on configuration reload)."""
    global _cached_catalog, _catalog_loaded
    _cached_catalog = None
    _catalog_loaded = False
