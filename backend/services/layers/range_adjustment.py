"""
Dynamic adjustment of declared layer date ranges.

Layer catalogs are generated ahead of time, so some coverage has to be
recomputed relative to the current moment before dates can be resolved:

- rolling windows: geostationary layers only keep the last N days online;
- ongoing multi-interval layers: coverage keeps growing after the catalog build;
- future layers: forecasts extend ``futureTime`` past now.

Every pass takes a mapping of layer id to definition and returns a new
mapping plus the warnings it produced; input layers are never mutated.
Applying a pass twice with the same ``now`` gives the same result as
applying it once.
"""

import logging
from datetime import datetime, timedelta
from typing import Dict, List, Mapping, Optional, Tuple

from models.layer import DateRange, LayerDefinition, Period
from utility.date_math import DateLike, parse_future_time, to_utc, utc_datetime, with_year

logger = logging.getLogger(__name__)

LayerMap = Dict[str, LayerDefinition]


def _now_seconds(now: DateLike) -> datetime:
    return to_utc(now).replace(microsecond=0)


def _warn(warnings: List[str], message: str) -> None:
    logger.warning(message)
    warnings.append(message)


# ========== Rolling window / historical ranges ==========


def _adjust_start_date(
    layer: LayerDefinition, now: datetime
) -> Tuple[LayerDefinition, Optional[str]]:
    availability = layer.availability
    if availability is None:
        return layer, None
    historical = list(availability.historical_ranges)
    if availability.rolling_window is None and not historical:
        return layer, None

    # ranges prepended by a previous pass are not part of the rolling coverage
    current_ranges = [r for r in layer.date_ranges if r not in historical]
    if not current_ranges:
        return layer, f"GetCapabilities is missing the time value for {layer.id}"

    start_date = layer.start_date
    if availability.rolling_window is not None:
        window_start = now - timedelta(days=availability.rolling_window)
        current_ranges[0] = current_ranges[0].model_copy(update={"start_date": window_start})
        start_date = window_start

    if historical:
        start_date = historical[0].start_date
        current_ranges = historical + current_ranges

    return layer.model_copy(update={"date_ranges": current_ranges, "start_date": start_date}), None


def adjust_start_dates(
    layers: Mapping[str, LayerDefinition], now: DateLike
) -> Tuple[LayerMap, List[str]]:
    """
    Apply ``availability`` to layer start dates.

    The first date range (and the layer start) begins ``rollingWindow`` days
    before ``now``. When historical ranges exist they are placed ahead of the
    current ranges and the layer starts at the first historical range.
    """
    now = _now_seconds(now)
    warnings: List[str] = []
    adjusted: LayerMap = {}
    for layer_id, layer in layers.items():
        new_layer, warning = _adjust_start_date(layer, now)
        if warning:
            _warn(warnings, warning)
        adjusted[layer_id] = new_layer
    return adjusted, warnings


# ========== Ongoing multi-interval ranges ==========


def _extend_ongoing_ranges(layer: LayerDefinition, app_now: datetime) -> LayerDefinition:
    date_ranges = list(layer.date_ranges)
    now_year = app_now.year
    index = len(date_ranges) - 1
    # each appended range becomes the last one and is extended in turn
    while index == len(date_ranges) - 1:
        date_range = date_ranges[index]
        interval = date_range.date_interval
        if interval <= 1:
            break
        start = date_range.start_date
        start_year = start.year

        if start_year == now_year:
            date_ranges[index] = date_range.model_copy(update={"end_date": app_now})

        elif start_year < now_year:
            dynamic_start = with_year(start, start_year + 1)
            end = date_range.end_date
            # don't extend past app now
            dynamic_end = min(with_year(end, end.year + 1), app_now)

            # a range built in an earlier year is closed at the end of its year
            if end.year < now_year:
                end_of_year = utc_datetime(end.year, 12, 31)
                date_ranges[index] = date_range.model_copy(update={"end_date": end_of_year})

            if dynamic_start < app_now:
                dynamic_range = DateRange(
                    start_date=dynamic_start, end_date=dynamic_end, date_interval=interval
                )
                date_ranges.append(dynamic_range)
        index += 1

    return layer.model_copy(update={"date_ranges": date_ranges})


def adjust_active_date_ranges(
    layers: Mapping[str, LayerDefinition], app_now: DateLike
) -> Tuple[LayerMap, List[str]]:
    """
    Extend ongoing layers whose last range steps more than one period.

    A last range starting in the current year ends at ``app_now``. A last
    range from an earlier year is closed at the end of its year and followed
    by a synthesized range one year later, repeated until the current year is
    reached, never extending past ``app_now``.
    """
    app_now = _now_seconds(app_now)
    adjusted: LayerMap = {}
    for layer_id, layer in layers.items():
        eligible = layer.ongoing and layer.date_ranges and layer.period != Period.SUBDAILY
        adjusted[layer_id] = _extend_ongoing_ranges(layer, app_now) if eligible else layer
    return adjusted, []


# ========== Future time ==========


def adjust_end_dates(
    layers: Mapping[str, LayerDefinition], now: DateLike
) -> Tuple[LayerMap, List[str]]:
    """Set the end of ``futureTime`` layers (and of their last range) to ``now + futureTime``."""
    now = _now_seconds(now)
    warnings: List[str] = []
    adjusted: LayerMap = {}
    for layer_id, layer in layers.items():
        if not layer.future_time:
            adjusted[layer_id] = layer
            continue

        future_end = parse_future_time(layer.future_time, now)
        if future_end is None:
            _warn(warnings, f"Unrecognised futureTime '{layer.future_time}' for {layer.id}")
            adjusted[layer_id] = layer
            continue

        date_ranges = list(layer.date_ranges)
        if date_ranges:
            date_ranges[-1] = date_ranges[-1].model_copy(update={"end_date": future_end})
        adjusted[layer_id] = layer.model_copy(
            update={"end_date": future_end, "date_ranges": date_ranges}
        )
    return adjusted, warnings


def mock_future_time_layer_options(
    layers: Mapping[str, LayerDefinition], mock_future_layer_parameters: str
) -> LayerMap:
    """
    Give one layer a ``futureTime`` for testing future coverage.

    Args:
        layers: Layer definitions keyed by id
        mock_future_layer_parameters: ``'<targetLayerId>,<mockFutureTime>'``
    """
    adjusted = dict(layers)
    target_layer_id, _, mock_future_time = mock_future_layer_parameters.partition(",")
    target_layer_id, mock_future_time = target_layer_id.strip(), mock_future_time.strip()
    if target_layer_id and mock_future_time and target_layer_id in adjusted:
        logger.info(f"Mocking futureTime {mock_future_time} for {target_layer_id}")
        adjusted[target_layer_id] = adjusted[target_layer_id].model_copy(
            update={"future_time": mock_future_time}
        )
    return adjusted


def adjust_layer_date_ranges(
    layers: Mapping[str, LayerDefinition], now: DateLike
) -> Tuple[LayerMap, List[str]]:
    """Run the rolling-window, ongoing and future passes in order."""
    warnings: List[str] = []
    adjusted, pass_warnings = adjust_start_dates(layers, now)
    warnings.extend(pass_warnings)
    adjusted, pass_warnings = adjust_active_date_ranges(adjusted, now)
    warnings.extend(pass_warnings)
    adjusted, pass_warnings = adjust_end_dates(adjusted, now)
    warnings.extend(pass_warnings)
    return adjusted, warnings
