"""
Multi-color profile traces.

A profile line (one row or column of the roll field) is split into one
offset/data trace pair per color band of a ColorScale. Overlaid, the pairs
render as a single line whose color changes wherever the value crosses a
boundary:

    - offset trace: invisible fill-to-zero baseline at the fill level
    - data trace:   the visible colored line, filled back to the offset

At every band change a bridging point is added to the previous band so
adjacent bands meet without a gap. When a band is re-entered later in the
series, a LINE_BREAK separates the new run from the old one.

Trace arrays can be rebuilt in place (existing_traces) so the rendering
host sees the same trace objects with refreshed coordinates.
"""

import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Dict, List, Optional, Sequence, Tuple, Union

import numpy as np

from config import FillMode, TraceDefaults
from src.compute.color_scale import ColorScale
from src.utils.errors import ValidationError

logger = logging.getLogger(__name__)

TRACE_DEFAULTS = TraceDefaults()


class Marker(Enum):
    """Non-numeric entries of a trace coordinate sequence."""
    LINE_BREAK = "break"


LINE_BREAK = Marker.LINE_BREAK


@dataclass
class AxisRange:
    """Value axis range suggested for a profile chart."""
    min: float
    max: float


@dataclass
class ProfileData:
    """
    Input for build_multi_color_traces.

    x_data may be omitted, in which case 0..n-1 is used. y_data values are
    compared against the color scale boundaries. With transpose set the
    profile is drawn vertically: y_data lands on the X axis and the fill
    runs horizontally. range is written by each successful build.
    """
    y_data: Optional[Sequence[float]] = None
    x_data: Optional[Sequence[float]] = None
    fill_mode: Union[FillMode, str, None] = TRACE_DEFAULTS.fill_mode
    transpose: bool = False
    trace_name: Optional[str] = None
    range: Optional[AxisRange] = None


def _plain(value):
    if value is LINE_BREAK:
        return None
    if isinstance(value, np.generic):
        return value.item()
    return value


@dataclass
class TraceSegment:
    """One Plotly scatter trace of an offset/data pair."""
    role: str  # 'offset' or 'data'
    x: list = field(default_factory=list)
    y: list = field(default_factory=list)
    fill: str = 'none'
    fillcolor: Optional[str] = None
    mode: str = 'none'
    line_color: Optional[str] = None
    orientation: str = 'h'
    name: Optional[str] = None
    hoverinfo: Optional[str] = None
    extra: Dict = field(default_factory=dict)  # host keys, e.g. xaxis/yaxis

    def clear(self):
        """Empty the coordinate lists in place."""
        del self.x[:]
        del self.y[:]

    def to_dict(self) -> Dict:
        """Plotly scatter descriptor; LINE_BREAK becomes None."""
        trace = {
            'type': 'scatter',
            'x': [_plain(v) for v in self.x],
            'y': [_plain(v) for v in self.y],
            'fill': self.fill,
            'fillcolor': self.fillcolor,
            'mode': self.mode,
            'orientation': self.orientation,
        }
        if self.name is not None:
            trace['name'] = self.name
        if self.hoverinfo is not None:
            trace['hoverinfo'] = self.hoverinfo
        if self.line_color is not None:
            trace['line'] = {'color': self.line_color}
        trace.update(self.extra)
        return trace


def traces_to_dicts(traces: Sequence[TraceSegment]) -> List[Dict]:
    return [trace.to_dict() for trace in traces]


def _finite_values(values: Optional[Sequence[float]]) -> np.ndarray:
    if values is None or len(values) == 0:
        return np.empty(0)
    try:
        arr = np.asarray(values, dtype=float)
    except (TypeError, ValueError) as e:
        logger.debug(f"Non-numeric profile values ignored for range: {e}")
        return np.empty(0)
    return arr[np.isfinite(arr)]


def compute_axis_range(
    y_values: Optional[Sequence[float]],
    target: float,
    padding_fraction: float = TRACE_DEFAULTS.axis_padding_fraction,
) -> AxisRange:
    """
    Value axis range covering the data and the target, padded by a tenth
    of the span. A non-negative minimum within one padding unit of zero
    snaps to zero.
    """
    low = high = target
    finite = _finite_values(y_values)
    if finite.size:
        low = float(finite.min())
        high = float(finite.max())
    low = min(low, target)
    high = max(high, target)

    delta = (high - low) * padding_fraction
    if 0 <= low < delta:
        low = 0.0
    else:
        low -= delta
    high += delta
    return AxisRange(min=low, max=high)


def _resolve_fill_mode(fill_mode) -> FillMode:
    if fill_mode is None:
        return TRACE_DEFAULTS.fill_mode
    if isinstance(fill_mode, FillMode):
        return fill_mode
    try:
        return FillMode(str(fill_mode).lower())
    except ValueError:
        raise ValidationError(
            f"Unknown fill mode '{fill_mode}' "
            f"(expected one of {[m.value for m in FillMode]})"
        )


def _new_trace_pairs(color_scale: ColorScale) -> List[TraceSegment]:
    traces = []
    for color in color_scale.colors:
        traces.append(TraceSegment(
            role='offset',
            fill='tozeroy',
            fillcolor=TRACE_DEFAULTS.offset_fillcolor,
            mode='none',
            hoverinfo='none',
        ))
        traces.append(TraceSegment(
            role='data',
            fill='tonexty',
            fillcolor=color,
            mode='none',
            line_color=color,
        ))
    return traces


def build_multi_color_traces(
    color_scale: ColorScale,
    data: ProfileData,
    existing_traces: Optional[List[TraceSegment]] = None,
) -> Tuple[Optional[List[TraceSegment]], bool]:
    """
    Build (or refill) one offset/data trace pair per color band.

    Parameters
    ----------
    color_scale : ColorScale
        Supplies colors, boundaries and the target value
    data : ProfileData
        Profile values and options. data.range is set on success.
    existing_traces : list of TraceSegment, optional
        Result of a previous build against a scale with the same number
        of colors. Its traces are cleared and refilled in place.

    Returns
    -------
    tuple of (traces, ok)
        traces: the trace list (existing_traces itself when reused)
        ok: False if the inputs were rejected, in which case traces is
            existing_traces untouched and data is unchanged
    """
    x_data = data.x_data
    y_data = data.y_data
    transpose = bool(data.transpose)
    trace_name = data.trace_name

    # --- Validate before touching any state ---
    try:
        fill_mode = _resolve_fill_mode(data.fill_mode)
        if y_data is not None:
            if x_data is None or len(x_data) == 0:
                x_data = list(range(len(y_data)))
            if len(x_data) != len(y_data):
                raise ValidationError(
                    f"X and Y data must have the same length "
                    f"({len(x_data)} != {len(y_data)})"
                )
        else:
            x_data = []

        expected = color_scale.n_colors * 2
        if existing_traces is not None and len(existing_traces) != expected:
            raise ValidationError(
                f"Existing traces not compatible with this color scale "
                f"({len(existing_traces)} traces, expected {expected})"
            )
    except (ValidationError, TypeError) as e:
        logger.warning(f"build_multi_color_traces rejected input: {e}")
        return existing_traces, False

    target = color_scale.get_target()
    data.range = compute_axis_range(y_data, target)

    # --- Fill settings ---
    fill_to = target
    data_fill = 'tonextx' if transpose else 'tonexty'
    line_mode = 'none'
    do_fill = True
    if y_data is None:
        data_fill = 'none'
        fill_to = 0
        do_fill = False
    elif fill_mode is FillMode.NONE:
        data_fill = 'none'
        line_mode = 'lines'
        fill_to = 0
        do_fill = False
    elif fill_mode is FillMode.TOZERO:
        fill_to = 0
    elif fill_mode is FillMode.TOAVERAGE:
        finite = _finite_values(y_data)
        if finite.size:
            fill_to = float(finite.mean())

    # --- Trace list ---
    if existing_traces is not None:
        traces = existing_traces
        for trace in traces:
            trace.clear()
    else:
        traces = _new_trace_pairs(color_scale)
        if trace_name is None:
            trace_name = TRACE_DEFAULTS.trace_name
    offsets = traces[0::2]
    datas = traces[1::2]

    orientation = 'v' if transpose else 'h'
    offset_fill = 'tozerox' if transpose else 'tozeroy'
    for offset, trace, color in zip(offsets, datas, color_scale.colors):
        if trace_name is not None:
            offset.name = trace_name
            trace.name = trace_name
        offset.fill = offset_fill
        offset.orientation = orientation
        trace.mode = line_mode
        trace.fill = data_fill
        trace.orientation = orientation
        trace.fillcolor = color
        trace.line_color = color

    if y_data is not None:
        _fill_band_traces(color_scale, x_data, y_data, offsets, datas,
                          fill_to, do_fill, transpose)

    logger.debug(f"Built {len(traces)} multi-color traces from {len(x_data)} points "
                 f"(fill={fill_mode.value}, fill_to={fill_to}, transpose={transpose})")
    return traces, True


def _fill_band_traces(color_scale, x_data, y_data, offsets, datas,
                      fill_to, do_fill, transpose):
    """Single forward pass distributing points across band traces."""
    active_index = -1
    offset = trace = None
    offset_x = offset_y = data_x = data_y = None

    for x, y in zip(x_data, y_data):
        index = color_scale.get_color_index(y)

        if index != active_index:
            active_index = index

            # Close the previous band at this x so there is no visible gap
            if trace is not None:
                offset_x.append(x)
                offset_y.append(fill_to)
                data_x.append(x)
                data_y.append(y)
                if do_fill:
                    # Drop the fill back to the baseline before the next band
                    data_x.append(x)
                    data_y.append(fill_to)
                    offset_x.append(x)
                    offset_y.append(fill_to)

            offset = offsets[index]
            trace = datas[index]
            if transpose:
                offset_x, offset_y = offset.y, offset.x
                data_x, data_y = trace.y, trace.x
            else:
                offset_x, offset_y = offset.x, offset.y
                data_x, data_y = trace.x, trace.y

            # Band re-entered: break the line, restart at the baseline
            if offset.x:
                data_x.append(LINE_BREAK)
                data_y.append(LINE_BREAK)
                offset_x.append(LINE_BREAK)
                offset_y.append(LINE_BREAK)
                if do_fill:
                    data_x.append(x)
                    data_y.append(fill_to)
                    offset_x.append(x)
                    offset_y.append(fill_to)

        offset_x.append(x)
        offset_y.append(fill_to)
        data_x.append(x)
        data_y.append(y)
