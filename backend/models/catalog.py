"""Pydantic models for the layer catalog supplied by configuration."""

from typing import Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field, model_validator
from pydantic.alias_generators import to_camel

from models.layer import LayerDefinition
from models.layer_state import LayerStateEntry
from services.layers.errors import UnknownLayerIdError


class LayerCatalog(BaseModel):
    """
    Layer definitions keyed by id, plus permalink redirects, the default
    (starting) layer set and the z-order of layer groups.

    Example file: layers.json
    ```json
    {
        "layers": {
            "MODIS_Terra_CorrectedReflectance_TrueColor": {
                "id": "MODIS_Terra_CorrectedReflectance_TrueColor",
                "group": "baselayers",
                "period": "daily",
                "ongoing": true,
                "dateRanges": [
                    {"startDate": "2000-02-24T00:00:00Z",
                     "endDate": "2024-05-01T00:00:00Z",
                     "dateInterval": "1"}
                ]
            }
        },
        "redirects": {"layers": {"Terra_TrueColor": "MODIS_Terra_CorrectedReflectance_TrueColor"}},
        "defaults": [{"id": "MODIS_Terra_CorrectedReflectance_TrueColor"}]
    }
    ```
    """

    layers: Dict[str, LayerDefinition] = Field(default_factory=dict)
    redirects: Dict[str, Dict[str, str]] = Field(
        default_factory=dict, description="Id redirects per kind, e.g. {'layers': {old: new}}"
    )
    defaults: List[LayerStateEntry] = Field(
        default_factory=list, description="Layers loaded when no usable permalink is given"
    )
    group_order: List[str] = Field(
        default_factory=lambda: ["overlays", "baselayers"],
        description="Layer groups from top to bottom of the layer stack",
    )

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, extra="allow")

    @model_validator(mode="before")
    @classmethod
    def _fill_layer_ids(cls, data):
        # Catalog files commonly omit the id inside each entry
        if isinstance(data, dict) and isinstance(data.get("layers"), dict):
            layers = {}
            for key, value in data["layers"].items():
                if isinstance(value, dict) and "id" not in value:
                    value = {**value, "id": key}
                layers[key] = value
            data = {**data, "layers": layers}
        return data

    def lookup(self, layer_id: str) -> Optional[LayerDefinition]:
        """Return the layer definition or None when the id is unknown."""
        return self.layers.get(layer_id)

    def require(self, layer_id: str) -> LayerDefinition:
        layer = self.layers.get(layer_id)
        if layer is None:
            raise UnknownLayerIdError(layer_id)
        return layer

    def redirect(self, layer_id: str) -> str:
        return self.redirects.get("layers", {}).get(layer_id, layer_id)

    def group_rank(self, group: Optional[str]) -> int:
        try:
            return self.group_order.index(group)
        except ValueError:
            return len(self.group_order)


class CatalogValidationResult(BaseModel):
    """Result of loading and validating a layer catalog file."""

    valid: bool = Field(..., description="Whether the catalog is valid and usable")
    catalog: Optional[LayerCatalog] = Field(None, description="The validated catalog (if valid)")
    warnings: List[str] = Field(
        default_factory=list,
        description="Non-fatal warnings (unknown redirects, missing default layers, etc.)",
    )
    errors: List[str] = Field(
        default_factory=list,
        description="Fatal errors that prevent the catalog from being used",
    )
