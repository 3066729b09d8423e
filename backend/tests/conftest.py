import sys
from pathlib import Path

# Add the backend root directory to Python path first
backend_root = Path(__file__).parent.parent
sys.path.insert(0, str(backend_root))

"""
Pytest configuration and fixtures for layer date and permalink tests.
"""

from datetime import datetime, timezone

import pytest

from models.catalog import LayerCatalog


@pytest.fixture
def utc():
    """Build aware UTC datetimes tersely: utc(2020, 1, 1)."""

    def make(*args):
        return datetime(*args, tzinfo=timezone.utc)

    return make


@pytest.fixture
def catalog_data():
    """Raw catalog JSON as it appears in a LAYER_CATALOG_PATH file."""
    return {
        "layers": {
            "modis_terra": {
                "title": "MODIS Terra Corrected Reflectance",
                "group": "baselayers",
                "period": "daily",
                "ongoing": True,
                "dateRanges": [
                    {
                        "startDate": "2000-02-24T00:00:00Z",
                        "endDate": "2024-05-01T00:00:00Z",
                        "dateInterval": "1",
                    }
                ],
            },
            "viirs": {
                "title": "VIIRS SNPP Corrected Reflectance",
                "group": "baselayers",
                "period": "daily",
                "dateRanges": [
                    {"startDate": "2015-11-24T00:00:00Z", "endDate": "2024-05-01T00:00:00Z"}
                ],
            },
            "coastlines": {
                "title": "Coastlines",
                "group": "overlays",
                "layergroup": "Reference",
            },
            "fires": {
                "title": "Fires and Thermal Anomalies",
                "group": "overlays",
                "layergroup": "Fires",
                "period": "daily",
                "palette": {"id": "fires"},
                "dateRanges": [
                    {"startDate": "2012-01-19T00:00:00Z", "endDate": "2024-05-01T00:00:00Z"}
                ],
            },
            "aerosol": {
                "title": "Aerosol Optical Depth",
                "group": "overlays",
                "layergroup": "Aerosols",
                "period": "monthly",
                "palette": {"id": "aod"},
                "dateRanges": [
                    {"startDate": "2000-03-01T00:00:00Z", "endDate": "2024-04-01T00:00:00Z"}
                ],
            },
            "orbit_tracks": {
                "title": "Orbit Tracks",
                "group": "overlays",
                "layergroup": "Reference",
                "vectorStyle": {"id": "orbit_tracks"},
            },
            "swaths": {
                "title": "Granule Swaths",
                "group": "overlays",
                "type": "granule",
            },
        },
        "redirects": {"layers": {"Terra_TrueColor": "modis_terra"}},
        "defaults": [{"id": "coastlines"}, {"id": "modis_terra"}],
    }


@pytest.fixture
def catalog(catalog_data):
    """Validated layer catalog."""
    return LayerCatalog.model_validate(catalog_data)
