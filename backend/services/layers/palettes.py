"""Permalink attributes for custom palettes and vector styles of active layers."""

from typing import List, Optional, Sequence, Union

from models.layer_state import ActiveLayer, LayerAttribute

Number = Union[int, float]


def format_number(value: Number) -> str:
    """Shortest text for a number: ``10.0`` -> ``10``, ``0.5`` -> ``0.5``."""
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    return repr(value) if isinstance(value, float) else str(value)


def _join_numbers(values: Sequence[Optional[Number]]) -> str:
    return ";".join("" if value is None else format_number(value) for value in values)


def _range_attributes(layer: ActiveLayer) -> List[LayerAttribute]:
    attributes = []
    if layer.min and any(value is not None for value in layer.min):
        attributes.append(LayerAttribute(id="min", value=_join_numbers(layer.min)))
    if layer.max and any(value is not None for value in layer.max):
        attributes.append(LayerAttribute(id="max", value=_join_numbers(layer.max)))
    return attributes


def get_palette_attribute_array(layer: ActiveLayer) -> List[LayerAttribute]:
    """Palette overrides of ``layer``: custom palettes, thresholds, squash, disabled classes."""
    attributes = []
    if layer.custom:
        attributes.append(LayerAttribute(id="palette", value=";".join(layer.custom)))
    attributes.extend(_range_attributes(layer))
    if layer.squash and any(layer.squash):
        if layer.squash == [True]:
            attributes.append(LayerAttribute(id="squash", value=True))
        else:
            value = ";".join("true" if squash else "false" for squash in layer.squash)
            attributes.append(LayerAttribute(id="squash", value=value))
    if layer.disabled:
        value = ";".join(str(item) for item in layer.disabled)
        attributes.append(LayerAttribute(id="disabled", value=value))
    return attributes


def get_vector_style_attribute_array(layer: ActiveLayer) -> List[LayerAttribute]:
    attributes = []
    if layer.custom:
        attributes.append(LayerAttribute(id="style", value=";".join(layer.custom)))
    attributes.extend(_range_attributes(layer))
    return attributes
