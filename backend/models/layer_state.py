"""Pydantic models for active layer state and its permalink representation."""

from typing import Any, Dict, List, Optional, Union

from pydantic import BaseModel, ConfigDict, Field

from models.layer import LayerDefinition

AttributeValue = Union[bool, int, float, str, None]


class LayerAttribute(BaseModel):
    """A single ``key[=value]`` entry of a layer in a permalink."""

    id: str
    value: AttributeValue = None

    model_config = ConfigDict(extra="forbid")


class LayerStateEntry(BaseModel):
    """Layer id plus its ordered attribute list, as encoded in a permalink."""

    id: str
    attributes: List[LayerAttribute] = Field(default_factory=list)

    model_config = ConfigDict(extra="forbid")


class LayerSpec(BaseModel):
    """Decoded display attributes.

    List fields are ``None`` when the attribute was absent and a (possibly
    empty) list when it was present.
    """

    hidden: bool = False
    opacity: float = 1.0
    count: Optional[int] = None
    band_combo: Optional[Union[Dict[str, Any], List[str]]] = None
    custom: Optional[List[str]] = None
    min: Optional[List[Optional[float]]] = None
    max: Optional[List[Optional[float]]] = None
    squash: Optional[List[bool]] = None
    disabled: Optional[List[str]] = None


class ActiveLayer(LayerDefinition):
    """A catalog layer that is currently displayed, with its display attributes."""

    visible: bool = True
    opacity: float = Field(1.0, ge=0.0, le=1.0)
    band_combo: Optional[Union[Dict[str, Any], List[str]]] = None
    custom: Optional[List[str]] = None
    min: Optional[List[Optional[float]]] = None
    max: Optional[List[Optional[float]]] = None
    squash: Optional[List[bool]] = None
    disabled: Optional[List[str]] = None
    count: Optional[int] = None


class OverlayGroup(BaseModel):
    """Named bucket of overlay layers shown as one collapsible group."""

    group_name: str
    layers: List[str] = Field(default_factory=list)
    collapsed: bool = False


class PermalinkParseResult(BaseModel):
    """Layers restored from a permalink together with non-fatal diagnostics."""

    layers: List[ActiveLayer] = Field(default_factory=list)
    warnings: List[str] = Field(default_factory=list)
    used_defaults: bool = Field(
        False, description="True when the permalink was unusable and defaults were loaded"
    )


class LayerGroupState(BaseModel):
    """Active layers of one compare side and how their overlays are grouped."""

    layers: List[ActiveLayer] = Field(default_factory=list)
    overlay_groups: List[OverlayGroup] = Field(default_factory=list)
    group_overlays: bool = True
    warnings: List[str] = Field(default_factory=list)
