"""
Encoding of the active layer stack in permalinks.

Two grammars are read:

- v1.1 (``products=``): ``baselayers.A~overlays.B,!C``, ids only, ``!`` marks
  a hidden layer.
- v1.2 (``l=``, ``l1=``): ``A(hidden,opacity=0.5),B``, ids with an optional
  parenthesized ``key[=value]`` list.

Only v1.2 is written. Parsing never raises: unknown ids are dropped and a
malformed value falls back to the catalog's default layers, with a warning
returned for each problem.
"""

import json
import logging
import math
import re
from typing import Any, Callable, Dict, List, Mapping, Optional, Sequence, Tuple
from urllib.parse import quote, unquote

from core.config import DEFAULT_GRANULE_COUNT, OPACITY_PRECISION
from models.catalog import LayerCatalog
from models.layer_state import (
    ActiveLayer,
    LayerAttribute,
    LayerGroupState,
    LayerSpec,
    LayerStateEntry,
    PermalinkParseResult,
)
from services.layers.errors import MalformedPermalinkError
from services.layers.overlay_groups import get_overlay_groups
from services.layers.palettes import (
    format_number,
    get_palette_attribute_array,
    get_vector_style_attribute_array,
)
from services.layers.placement import add_layer
from utility.date_math import clamp

logger = logging.getLogger(__name__)

AttributeLookup = Callable[[ActiveLayer], List[LayerAttribute]]

# Parenthesis would end the attribute list, so they travel as angle brackets.
# Literal angle brackets are written as JSON unicode escapes first.
_BAND_COMBO_ESCAPES = (("(", "<"), (")", ">"))
_JSON_ANGLE_ESCAPES = (("<", "\\u003c"), (">", "\\u003e"))
# Characters encodeURIComponent leaves alone
_URI_COMPONENT_SAFE = "-_.!~*'()"

_V11_SEPARATORS = re.compile(r"[~,.]")
_V11_GROUP_TOKENS = {"baselayers", "overlays"}
_V12_LAYER_DEF = re.compile(r"[^(,]+(\([^)]*\))?,?")
_LEADING_FLOAT = re.compile(r"^\s*[+-]?(?:\d+\.?\d*|\.\d+)(?:[eE][+-]?\d+)?")


# ========== Serialize ==========


def encode_band_combo(band_combo: Any) -> str:
    text = json.dumps(band_combo, separators=(",", ":"), ensure_ascii=False)
    for char, escape in _JSON_ANGLE_ESCAPES:
        text = text.replace(char, escape)
    for char, escape in _BAND_COMBO_ESCAPES:
        text = text.replace(char, escape)
    return quote(text, safe=_URI_COMPONENT_SAFE)


def decode_band_combo(value: str) -> Any:
    text = unquote(value)
    for char, escape in _BAND_COMBO_ESCAPES:
        text = text.replace(escape, char)
    return json.loads(text)


def _has_overrides(layer: ActiveLayer, *fields: str) -> bool:
    return any(getattr(layer, field) is not None for field in fields)


def get_layer_attributes(
    layer: ActiveLayer,
    palette_attributes: AttributeLookup = get_palette_attribute_array,
    vector_style_attributes: AttributeLookup = get_vector_style_attribute_array,
    granule_counts: Optional[Mapping[str, int]] = None,
) -> LayerStateEntry:
    """
    Build the permalink entry of one active layer.

    Only non-default state is written: ``hidden`` for invisible layers,
    ``opacity`` below 1, ``bandCombo`` when set, then palette, vector style or
    granule attributes when the layer carries overrides of that kind.
    """
    attributes: List[LayerAttribute] = []
    if not layer.visible:
        attributes.append(LayerAttribute(id="hidden", value=True))
    if layer.opacity < 1:
        opacity = round(layer.opacity, OPACITY_PRECISION)
        attributes.append(LayerAttribute(id="opacity", value=opacity))
    if layer.band_combo:
        attributes.append(
            LayerAttribute(id="bandCombo", value=encode_band_combo(layer.band_combo))
        )

    if layer.palette and _has_overrides(layer, "custom", "min", "max", "squash", "disabled"):
        attributes.extend(palette_attributes(layer))
    elif layer.vector_style and _has_overrides(layer, "custom", "min", "max"):
        attributes.extend(vector_style_attributes(layer))
    elif layer.type == "granule":
        count = (granule_counts or {}).get(layer.id, layer.count)
        if count is not None and count != DEFAULT_GRANULE_COUNT:
            attributes.append(LayerAttribute(id="count", value=count))

    return LayerStateEntry(id=layer.id, attributes=attributes)


def _format_attribute_value(value: Any) -> str:
    if value is False:
        return "false"
    if isinstance(value, (int, float)):
        return format_number(value)
    return str(value)


def append_attributes_for_url(entry: LayerStateEntry) -> str:
    """``id`` or ``id(key,key=value,...)``; bare keys stand for ``true``."""
    if not entry.attributes:
        return entry.id
    parts = []
    for attribute in entry.attributes:
        if attribute.value is None or attribute.value is True:
            parts.append(attribute.id)
        else:
            parts.append(f"{attribute.id}={_format_attribute_value(attribute.value)}")
    return f"{entry.id}({','.join(parts)})"


def serialize_layers(
    layers: Sequence[ActiveLayer],
    palette_attributes: AttributeLookup = get_palette_attribute_array,
    vector_style_attributes: AttributeLookup = get_vector_style_attribute_array,
    granule_counts: Optional[Mapping[str, int]] = None,
) -> List[str]:
    return [
        append_attributes_for_url(
            get_layer_attributes(
                layer,
                palette_attributes=palette_attributes,
                vector_style_attributes=vector_style_attributes,
                granule_counts=granule_counts,
            )
        )
        for layer in layers
    ]


def serialize_permalink(layers: Sequence[ActiveLayer], **lookups) -> str:
    """Serialize the layer stack (top first) as a v1.2 ``l=`` value."""
    return ",".join(serialize_layers(layers, **lookups))


def serialize_group_overlays(
    group_overlays: bool,
    layers: Sequence[ActiveLayer],
    starting_layers: Sequence[ActiveLayer],
    layers_param: Optional[str],
    layer_group_param: Optional[str],
    compare_active: bool = False,
) -> Optional[bool]:
    """
    Value of the ``lg`` permalink parameter, or None to leave it out.

    Grouping is on by default, so the flag is only written when it differs
    from what a reader of the permalink would otherwise assume.
    """
    if layers_param and layer_group_param is None:
        # legacy permalinks carrying layers but no flag were ungrouped
        return False
    if list(layers) != list(starting_layers):
        return group_overlays
    if not layers_param and layer_group_param is None and not compare_active:
        return group_overlays if not group_overlays else None
    if not layers_param and group_overlays:
        return None
    return group_overlays


# ========== Attribute decoding ==========


def _parse_float(value: Any) -> float:
    """Leading number of ``value`` (``'0.5abc'`` -> 0.5); NaN when there is none."""
    if isinstance(value, bool) or value is None:
        return math.nan
    if isinstance(value, (int, float)):
        return float(value)
    match = _LEADING_FLOAT.match(str(value))
    return float(match.group(0)) if match else math.nan


def _split(value: Any) -> Optional[List[str]]:
    return value.split(";") if isinstance(value, str) else None


def _numeric_list(
    attribute: LayerAttribute, warnings: List[str]
) -> Optional[List[Optional[float]]]:
    segments = _split(attribute.value)
    if segments is None:
        warnings.append(f"Ignoring {attribute.id} without a value")
        return None
    values: List[Optional[float]] = []
    for segment in segments:
        if segment == "":
            values.append(None)
            continue
        number = _parse_float(segment)
        if math.isnan(number):
            warnings.append(f"Invalid numeric value '{segment}' for {attribute.id}")
            number = None
        values.append(number)
    return values or None


def _decode_hidden(spec: Dict[str, Any], attribute: LayerAttribute, warnings: List[str]):
    spec["hidden"] = True


def _decode_opacity(spec: Dict[str, Any], attribute: LayerAttribute, warnings: List[str]):
    opacity = _parse_float(attribute.value)
    if math.isnan(opacity):
        warnings.append(f"Invalid numeric value '{attribute.value}' for opacity")
        opacity = 0.0
    spec["opacity"] = clamp(opacity, 0.0, 1.0)


def _decode_list(field: str):
    def decode(spec: Dict[str, Any], attribute: LayerAttribute, warnings: List[str]):
        values = _split(attribute.value)
        if values is None:
            warnings.append(f"Ignoring {attribute.id} without a value")
            return
        spec[field] = values

    return decode


def _decode_range(field: str):
    def decode(spec: Dict[str, Any], attribute: LayerAttribute, warnings: List[str]):
        values = _numeric_list(attribute, warnings)
        if values is not None:
            spec[field] = values

    return decode


def _decode_squash(spec: Dict[str, Any], attribute: LayerAttribute, warnings: List[str]):
    if attribute.value is True:
        spec["squash"] = [True]
        return
    values = _split(attribute.value)
    if values is None:
        warnings.append(f"Ignoring {attribute.id} without a value")
        return
    spec["squash"] = [value == "true" for value in values]


def _decode_band_combo(spec: Dict[str, Any], attribute: LayerAttribute, warnings: List[str]):
    if not isinstance(attribute.value, str):
        warnings.append("Ignoring bandCombo without a value")
        return
    try:
        band_combo = decode_band_combo(attribute.value)
    except ValueError as e:
        warnings.append(f"Invalid bandCombo '{attribute.value}': {e}")
        return
    is_band_list = isinstance(band_combo, list) and all(isinstance(b, str) for b in band_combo)
    if not isinstance(band_combo, dict) and not is_band_list:
        warnings.append(f"Ignoring bandCombo '{attribute.value}': not an object or band list")
        return
    spec["band_combo"] = band_combo


def _decode_count(spec: Dict[str, Any], attribute: LayerAttribute, warnings: List[str]):
    count = _parse_float(attribute.value)
    if math.isnan(count) or math.isinf(count):
        warnings.append(f"Invalid numeric value '{attribute.value}' for count")
        return
    spec["count"] = int(count)


_ATTRIBUTE_DECODERS = {
    "hidden": _decode_hidden,
    "opacity": _decode_opacity,
    "disabled": _decode_list("disabled"),
    "max": _decode_range("max"),
    "min": _decode_range("min"),
    "squash": _decode_squash,
    "bands": _decode_list("band_combo"),
    "bandCombo": _decode_band_combo,
    "palette": _decode_list("custom"),
    "style": _decode_list("custom"),
    "count": _decode_count,
}


def get_layer_spec(attributes: Sequence[LayerAttribute]) -> Tuple[LayerSpec, List[str]]:
    """
    Decode a permalink attribute list into display settings.

    Unknown attribute ids are ignored. Invalid numbers produce a warning and
    a safe value: opacity 0, an empty min/max slot, no granule count.
    """
    spec: Dict[str, Any] = {}
    warnings: List[str] = []
    for attribute in attributes:
        decoder = _ATTRIBUTE_DECODERS.get(attribute.id)
        if decoder is not None:
            decoder(spec, attribute, warnings)
    for warning in warnings:
        logger.warning(warning)
    return LayerSpec(**spec), warnings


# ========== Parse ==========


def create_layer_array_from_state(
    entries: Sequence[LayerStateEntry], catalog: LayerCatalog
) -> Tuple[List[ActiveLayer], List[str]]:
    """
    Build the active layer stack from permalink entries (top first).

    Entries are added bottom-up so each lands on top of its group and the
    permalink order is kept. Ids missing from the catalog are dropped.
    """
    layers: List[ActiveLayer] = []
    warnings: List[str] = []
    for entry in reversed(entries):
        if catalog.lookup(entry.id) is None:
            message = f"No such layer: {entry.id}"
            logger.warning(message)
            warnings.append(message)
            continue
        spec, spec_warnings = get_layer_spec(entry.attributes)
        warnings.extend(spec_warnings)
        layers = add_layer(entry.id, spec, layers, catalog)
    return layers, warnings


def reset_layers(catalog: LayerCatalog) -> Tuple[List[ActiveLayer], List[str]]:
    """The catalog's default layer stack."""
    return create_layer_array_from_state(catalog.defaults, catalog)


def layers_parse_11(value: Optional[str], catalog: LayerCatalog) -> PermalinkParseResult:
    """Parse a legacy ``products=`` value."""
    entries: List[LayerStateEntry] = []
    for token in _V11_SEPARATORS.split(value or ""):
        if not token or token in _V11_GROUP_TOKENS:
            continue
        hidden = token.startswith("!")
        layer_id = catalog.redirect(token[1:] if hidden else token)
        attributes = [LayerAttribute(id="hidden", value=True)] if hidden else []
        entries.append(LayerStateEntry(id=layer_id, attributes=attributes))
    layers, warnings = create_layer_array_from_state(entries, catalog)
    return PermalinkParseResult(layers=layers, warnings=warnings)


def _check_parentheses(value: str) -> None:
    depth = 0
    for position, char in enumerate(value):
        if char == "(":
            if depth:
                raise MalformedPermalinkError(f"Nested '(' at position {position}")
            depth = 1
        elif char == ")":
            if not depth:
                raise MalformedPermalinkError(f"Unmatched ')' at position {position}")
            depth = 0
    if depth:
        raise MalformedPermalinkError("Unclosed '('")


def _tokenize_layers_12(value: str, catalog: LayerCatalog) -> List[LayerStateEntry]:
    _check_parentheses(value)
    entries = []
    for match in _V12_LAYER_DEF.finditer(value):
        layer_def, attribute_list = match.group(0), match.group(1)
        layer_id = layer_def.split("(", 1)[0].rstrip(",").strip()
        if not layer_id:
            continue
        attributes = []
        for pair in (attribute_list or "()")[1:-1].split(","):
            key, has_value, attribute_value = pair.partition("=")
            if not key:
                continue
            value_or_flag = attribute_value if has_value else True
            attributes.append(LayerAttribute(id=key, value=value_or_flag))
        entries.append(LayerStateEntry(id=catalog.redirect(layer_id), attributes=attributes))
    return entries


def layers_parse_12(value: Optional[str], catalog: LayerCatalog) -> PermalinkParseResult:
    """
    Parse an ``l=`` / ``l1=`` value.

    A value that cannot be parsed loads the catalog's default layers instead,
    flagged by ``used_defaults``.
    """
    try:
        entries = _tokenize_layers_12(value or "", catalog)
        layers, warnings = create_layer_array_from_state(entries, catalog)
        return PermalinkParseResult(layers=layers, warnings=warnings)
    except Exception as e:
        message = f"Error Parsing layers: {e}"
        logger.error(message)
        logger.error("Reverting to default layers")
        layers, warnings = reset_layers(catalog)
        return PermalinkParseResult(
            layers=layers, warnings=[message, *warnings], used_defaults=True
        )


def _parse_flag(value: Optional[str], default: bool) -> bool:
    if value is None:
        return default
    return str(value).strip().lower() not in {"false", "0", "no", "off"}


def _group_state(result: PermalinkParseResult, group_overlays: bool) -> LayerGroupState:
    overlay_groups = get_overlay_groups(result.layers) if group_overlays else []
    return LayerGroupState(
        layers=result.layers,
        overlay_groups=overlay_groups,
        group_overlays=group_overlays,
        warnings=result.warnings,
    )


def map_location_to_layer_state(
    parameters: Mapping[str, str], catalog: LayerCatalog
) -> Dict[str, Optional[LayerGroupState]]:
    """
    Restore the layer state of both compare sides from permalink parameters.

    ``l`` (v1.2) wins over ``products`` (v1.1); without either the defaults
    are loaded. ``lg``/``lg1`` carry the overlay grouping flags; layers given
    without a flag are ungrouped. The B side comes from ``l1`` or, when only
    ``ca`` is present, is a copy of the A side.

    Returns:
        ``{"active": LayerGroupState, "activeB": Optional[LayerGroupState]}``
    """
    if "l" in parameters:
        result = layers_parse_12(parameters["l"], catalog)
        active = _group_state(result, _parse_flag(parameters.get("lg"), default=False))
    elif "products" in parameters:
        result = layers_parse_11(parameters["products"], catalog)
        active = _group_state(result, _parse_flag(parameters.get("lg"), default=True))
    else:
        layers, warnings = reset_layers(catalog)
        result = PermalinkParseResult(layers=layers, warnings=warnings, used_defaults=True)
        active = _group_state(result, _parse_flag(parameters.get("lg"), default=True))

    active_b: Optional[LayerGroupState] = None
    if "l1" in parameters:
        result_b = layers_parse_12(parameters["l1"], catalog)
        active_b = _group_state(result_b, _parse_flag(parameters.get("lg1"), default=False))
    elif "ca" in parameters:
        active_b = LayerGroupState(layers=list(active.layers), group_overlays=False)

    return {"active": active, "activeB": active_b}
