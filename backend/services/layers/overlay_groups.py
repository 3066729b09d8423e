"""Grouping of overlay layers into collapsible display groups."""

from typing import Dict, List, Optional, Sequence

from models.layer import LayerDefinition
from models.layer_state import OverlayGroup

# Overlays without a layergroup are shown together
UNGROUPED_LAYERGROUP = "Other"


def get_overlay_groups(
    layers: Sequence[LayerDefinition],
    prev_groups: Optional[Sequence[OverlayGroup]] = None,
) -> List[OverlayGroup]:
    """
    Bucket overlay layers by ``layergroup``.

    Groups and their members keep the order in which they first appear in
    ``layers``. A group keeps the ``collapsed`` flag of the previous group
    with the same name; new groups start expanded.
    """
    members: Dict[str, List[str]] = {}
    for layer in layers:
        if layer.group != "overlays":
            continue
        members.setdefault(layer.layergroup or UNGROUPED_LAYERGROUP, []).append(layer.id)

    previous: Dict[str, OverlayGroup] = {}
    for group in prev_groups or []:
        previous.setdefault(group.group_name, group)

    return [
        OverlayGroup(
            group_name=group_name,
            layers=layer_ids,
            collapsed=previous[group_name].collapsed if group_name in previous else False,
        )
        for group_name, layer_ids in members.items()
    ]


def get_layers_from_groups(
    layers: Sequence[LayerDefinition], groups: Optional[Sequence[OverlayGroup]]
) -> List[LayerDefinition]:
    """Flatten overlay groups back into a layer list, followed by the base layers."""
    if not groups:
        return []
    active_by_id = {layer.id: layer for layer in layers}
    overlays = [
        active_by_id[layer_id]
        for group in groups
        for layer_id in group.layers
        if layer_id in active_by_id
    ]
    baselayers = [layer for layer in layers if layer.group == "baselayers"]
    return overlays + baselayers
