"""Placement of layers in the active layer stack (top of the stack first)."""

import logging
from typing import List, Sequence

from models.catalog import LayerCatalog
from models.layer import LayerDefinition
from models.layer_state import ActiveLayer, LayerSpec

logger = logging.getLogger(__name__)


def build_active_layer(definition: LayerDefinition, spec: LayerSpec) -> ActiveLayer:
    """Combine a catalog definition with decoded display attributes."""
    data = definition.model_dump()
    data.update(
        visible=not spec.hidden,
        opacity=spec.opacity,
        band_combo=spec.band_combo,
        custom=spec.custom,
        min=spec.min,
        max=spec.max,
        squash=spec.squash,
        disabled=spec.disabled,
        count=spec.count,
    )
    return ActiveLayer.model_validate(data)


def add_layer(
    layer_id: str,
    spec: LayerSpec,
    layers: Sequence[ActiveLayer],
    catalog: LayerCatalog,
) -> List[ActiveLayer]:
    """
    Return a new layer stack with ``layer_id`` on top of its group.

    Groups are stacked in ``catalog.group_order``; layers of unknown groups
    go to the bottom. A layer that is already active is left where it is.

    Raises:
        UnknownLayerIdError: If the id is not in the catalog
    """
    if any(layer.id == layer_id for layer in layers):
        logger.debug(f"Layer {layer_id} is already active")
        return list(layers)

    active_layer = build_active_layer(catalog.require(layer_id), spec)
    rank = catalog.group_rank(active_layer.group)
    insert_at = len(layers)
    for index, layer in enumerate(layers):
        if catalog.group_rank(layer.group) >= rank:
            insert_at = index
            break
    return [*layers[:insert_at], active_layer, *layers[insert_at:]]
