"""
Banded color scale for roll surface and profile rendering.

A color scale is defined by n colors and n-1 boundary values. Values below
the first boundary take the first color, values at or above the last
boundary take the last color. The scale can be stamped onto a Plotly
surface/heatmap descriptor (apply_scale_to_series) and drives the per-band
decomposition of profile lines (see multi_color_traces).

The displayed range is padded by 10% of the boundary span on each side so
the outer bands remain visible on the colorbar.
"""

import logging
import math
from typing import Callable, Dict, List, Optional, Sequence

from config import COLOR_SCALE_PRESETS, ScaleDefaults
from src.utils.errors import BoundarySpanError, ConfigurationError

logger = logging.getLogger(__name__)

SCALE_DEFAULTS = ScaleDefaults()


def median_boundary(boundaries: Sequence[float]) -> float:
    """
    Middle value of a sorted boundary list.

    Even counts average the two middle values.
    """
    n_bounds = len(boundaries)
    if n_bounds % 2 == 0:
        index = n_bounds // 2
        return (boundaries[index - 1] + boundaries[index]) / 2
    return boundaries[(n_bounds - 1) // 2]


def build_color_scale(
    colors: Sequence[str],
    boundaries: Sequence[float],
    target: Optional[float] = None,
    blended: bool = False,
    padding_fraction: float = SCALE_DEFAULTS.range_padding_fraction,
) -> Dict:
    """
    Build a normalized Plotly colorscale from colors and sorted boundaries.

    Parameters
    ----------
    colors : sequence of str
        Band colors, lowest band first
    boundaries : sequence of float
        Sorted boundary values (len(colors) - 1 entries)
    target : float, optional
        Anchor for the extra stop in blended mode. Falls back to the middle
        of the padded range when missing or outside it.
    blended : bool
        Smooth interpolation between band colors instead of hard steps
    padding_fraction : float
        Fraction of the boundary span added below and above

    Returns
    -------
    dict
        'scale': list of [position, color] stops with positions in [0, 1]
        'zmin', 'zmax': padded range
        'bounds': boundaries with zmin/zmax prepended/appended
    """
    n_colors = len(colors)
    low = boundaries[0]
    high = boundaries[-1]
    span = high - low
    if span <= 0:
        # Single boundary: pad relative to its magnitude
        span = abs(low) or 1.0

    delta = span * padding_fraction
    zmin = low - delta
    zmax = high + delta
    value_range = zmax - zmin

    positions = [0.0] + [(value - zmin) / value_range for value in boundaries] + [1.0]
    bounds = [zmin] + list(boundaries) + [zmax]

    scale = []
    if blended:
        if target is None or target < zmin or target > zmax:
            target = (zmin + zmax) / 2

        # (position, stop count): boundaries keep both discrete knots
        last = len(positions) - 1
        anchors = [(pos, 1 if i in (0, last) else 2) for i, pos in enumerate(positions)]
        anchors.append(((target - zmin) / value_range, 1))
        # Stable sort keeps the target after an equal boundary
        anchors.sort(key=lambda anchor: anchor[0])

        for index, (pos, count) in enumerate(anchors):
            color = colors[min(max(index - 1, 0), n_colors - 1)]
            scale.extend([pos, color] for _ in range(count))
    else:
        for i in range(n_colors):
            scale.append([positions[i], colors[i]])
            scale.append([positions[i + 1], colors[i]])

    return {
        'scale': scale,
        'zmin': zmin,
        'zmax': zmax,
        'bounds': bounds,
    }


class ColorScale:
    """
    Colors plus boundary values defining a banded color scale.

    The scale is rebuilt whenever colors, boundaries or the blended flag
    change. Setters return True only when something changed, so callers may
    invoke them on every UI event without their own dirty check.

    Parameters
    ----------
    colors : sequence of str
        At least 2 colors. Their count is fixed for the life of the scale.
    boundaries : sequence of float
        One fewer than colors, any order. Must span a positive range when
        more than one boundary is given.
    target : float, optional
        Reference value for fills and blended scales. Defaults to the median
        boundary.
    blended : bool
        Blend between colors instead of discrete blocks. Profile traces are
        always discrete regardless of this setting.
    on_fault : callable, optional
        Called as on_fault(value, exc) when a color index lookup falls back
        to band 0.
    """

    def __init__(
        self,
        colors: Sequence[str],
        boundaries: Sequence[float],
        target: Optional[float] = None,
        blended: bool = SCALE_DEFAULTS.blended,
        on_fault: Optional[Callable[[object, Exception], None]] = None,
    ):
        colors = self._validate_colors(colors)
        if len(colors) < 2:
            raise ConfigurationError(
                f"ColorScale needs at least 2 colors, got {len(colors)}"
            )

        self._colors_default = colors
        self._colors_active = list(colors)
        self._boundaries = self._validate_boundaries(boundaries)
        if target is None:
            target = median_boundary(self._boundaries)
        self._target = self._validate_target(target)
        self._blended = bool(blended)
        self._on_fault = on_fault
        self._padding_fraction = SCALE_DEFAULTS.range_padding_fraction

        self._scale: List[list] = []
        self._range_min = 0.0
        self._range_max = 0.0
        self._display_bounds: List[float] = []
        self._rebuild_count = 0
        self._rebuild()

    def __repr__(self):
        return (f"ColorScale(colors={self._colors_active!r}, "
                f"boundaries={self._boundaries!r}, target={self._target!r}, "
                f"blended={self._blended!r})")

    # ------------------------------------------------------------------
    # Internal
    # ------------------------------------------------------------------

    @staticmethod
    def _validate_colors(colors, expected: Optional[int] = None) -> List[str]:
        """Return colors as a list of strings or raise ConfigurationError."""
        if not isinstance(colors, (list, tuple)):
            raise ConfigurationError(
                f"Colors must be a list of color strings, got {type(colors).__name__}"
            )
        if not all(isinstance(color, str) for color in colors):
            raise ConfigurationError(f"Colors must all be strings, got {list(colors)!r}")

        colors = list(colors)
        if expected is not None and len(colors) != expected:
            raise ConfigurationError(
                f"Invalid colors list - must be same size as original "
                f"({expected}), got {len(colors)}"
            )
        return colors

    @staticmethod
    def _validate_target(target) -> float:
        """Return target as a finite float or raise ConfigurationError."""
        if isinstance(target, bool):
            raise ConfigurationError(f"Target must be numeric, got {target!r}")
        try:
            value = float(target)
        except (TypeError, ValueError) as e:
            raise ConfigurationError(f"Target must be numeric: {e}") from e
        if not math.isfinite(value):
            raise ConfigurationError(f"Target must be finite, got {value}")
        return value

    def _validate_boundaries(self, boundaries) -> List[float]:
        """Return a sorted float copy of boundaries or raise ConfigurationError."""
        if boundaries is None:
            raise ConfigurationError("ColorScale must be passed a list of boundaries")

        try:
            values = sorted(float(value) for value in boundaries)
        except (TypeError, ValueError) as e:
            raise ConfigurationError(f"Boundaries must be numeric: {e}") from e

        expected = len(self._colors_active) - 1
        if len(values) != expected:
            raise ConfigurationError(
                f"Expected {expected} boundaries (one fewer than colors), got {len(values)}"
            )
        if not all(math.isfinite(value) for value in values):
            raise ConfigurationError(f"Boundaries must be finite, got {values}")

        if len(values) > 1 and not values[-1] - values[0] > 0:
            raise BoundarySpanError(
                f"Boundaries must span a range greater than 0, got {values}"
            )
        return values

    def _rebuild(self, colors=None, boundaries=None, target=None, blended=None):
        """Build from the given settings (current ones where None), then commit."""
        colors = self._colors_active if colors is None else colors
        boundaries = self._boundaries if boundaries is None else boundaries
        target = self._target if target is None else target
        blended = self._blended if blended is None else blended

        built = build_color_scale(
            colors,
            boundaries,
            target=target,
            blended=blended,
            padding_fraction=self._padding_fraction,
        )
        self._colors_active = colors
        self._boundaries = boundaries
        self._target = target
        self._blended = blended
        self._scale = built['scale']
        self._range_min = built['zmin']
        self._range_max = built['zmax']
        self._display_bounds = built['bounds']
        self._rebuild_count += 1
        logger.debug(f"Color scale rebuilt ({self._rebuild_count}): "
                     f"{len(self._scale)} stops, range [{self._range_min:.3f}, "
                     f"{self._range_max:.3f}], blended={self._blended}")

    # ------------------------------------------------------------------
    # Setters / getters
    # ------------------------------------------------------------------

    def update(
        self,
        colors: Optional[Sequence[str]] = None,
        boundaries: Optional[Sequence[float]] = None,
        blended: Optional[bool] = None,
        target: Optional[float] = None,
    ) -> Dict[str, bool]:
        """
        Apply several settings at once, all or nothing.

        Every given setting is validated before any of them is applied, so a
        rejected update leaves the scale exactly as it was. Settings left as
        None are not touched.

        Parameters
        ----------
        colors : sequence of str, optional
            New active colors, same count as at construction
        boundaries : sequence of float, optional
            New boundary values, any order
        blended : bool, optional
            New blended flag
        target : float, optional
            New target value

        Returns
        -------
        dict
            {setting name: changed} for each setting that was given

        Raises
        ------
        ConfigurationError
            If any given setting is invalid
        """
        new_colors = self._colors_active
        new_boundaries = self._boundaries
        new_blended = self._blended
        new_target = self._target

        if colors is not None:
            new_colors = self._validate_colors(colors, len(self._colors_default))
        if boundaries is not None:
            new_boundaries = self._validate_boundaries(boundaries)
        if blended is not None:
            new_blended = bool(blended)
        if target is not None:
            new_target = self._validate_target(target)

        changed = {}
        if colors is not None:
            changed['colors'] = new_colors != self._colors_active
        if boundaries is not None:
            changed['boundaries'] = new_boundaries != self._boundaries
        if blended is not None:
            changed['blended'] = new_blended != self._blended
        if target is not None:
            changed['target'] = new_target != self._target

        needs_rebuild = (changed.get('colors') or changed.get('boundaries')
                         or changed.get('blended')
                         or (changed.get('target') and new_blended))
        if needs_rebuild:
            self._rebuild(new_colors, new_boundaries, new_target, new_blended)
        else:
            # Only the target of a discrete scale can change without a rebuild
            self._target = new_target
        return changed

    def set_colors(self, colors: Optional[Sequence[str]] = None) -> bool:
        """
        Replace the active colors, or restore the defaults when colors is None.

        Returns True if the active colors changed.
        """
        if colors is None:
            colors = self._colors_default
        return self.update(colors=colors)['colors']

    def set_boundaries(self, boundaries: Sequence[float]) -> bool:
        """Set boundary values (any order). Returns True if they changed."""
        if boundaries is None:
            raise ConfigurationError("ColorScale must be passed a list of boundaries")
        return self.update(boundaries=boundaries)['boundaries']

    def set_blended(self, blended: bool) -> bool:
        return self.update(blended=bool(blended))['blended']

    def get_blended(self) -> bool:
        return self._blended

    def set_target(self, target: Optional[float]) -> bool:
        """
        Set the target value. None is ignored.

        Only a blended scale depends on the target, so only a blended scale
        is rebuilt.
        """
        if target is None:
            return False
        return self.update(target=target)['target']

    def get_target(self) -> float:
        return self._target

    def get_boundaries(self) -> List[float]:
        return list(self._boundaries)

    @property
    def colors(self) -> List[str]:
        return list(self._colors_active)

    @property
    def default_colors(self) -> List[str]:
        """Colors given at construction."""
        return list(self._colors_default)

    @property
    def n_colors(self) -> int:
        return len(self._colors_active)

    @property
    def scale(self) -> List[list]:
        """Copy of the current [position, color] stops."""
        return [list(stop) for stop in self._scale]

    @property
    def range_min(self) -> float:
        return self._range_min

    @property
    def range_max(self) -> float:
        return self._range_max

    @property
    def display_bounds(self) -> List[float]:
        return list(self._display_bounds)

    @property
    def rebuild_count(self) -> int:
        """Number of times the scale has been rebuilt, construction included."""
        return self._rebuild_count

    # ------------------------------------------------------------------
    # Band / limit info
    # ------------------------------------------------------------------

    def get_band_info(self, index: int) -> Optional[Dict]:
        """
        Color and value extent of a band, using the padded outer bounds.

        Returns None for an out-of-range index.
        """
        if index < 0 or index >= len(self._colors_active):
            return None
        return {
            'color': self._colors_active[index],
            'from': self._display_bounds[index],
            'to': self._display_bounds[index + 1],
        }

    def get_limit_line_info(self, index: int) -> Optional[Dict]:
        """
        Limit line for a boundary, colored with the outermost adjacent color.

        With 6 boundaries the colors used are color[0], color[1], color[2],
        color[4], color[5], color[6]. With 5 boundaries the middle boundary
        is not a limit line and the colors are color[0], color[1], color[4],
        color[5].
        """
        n_bounds = len(self._boundaries)
        odd_count = n_bounds % 2 != 0
        if odd_count:
            n_bounds -= 1

        if index < 0 or index >= n_bounds:
            return None

        color_index = index
        limit_index = index
        if index >= n_bounds / 2:
            color_index += 1
            if odd_count:
                color_index += 1
                limit_index += 1

        return {
            'color': self._colors_active[color_index],
            'limit': self._boundaries[limit_index],
        }

    # ------------------------------------------------------------------
    # Rendering helpers
    # ------------------------------------------------------------------

    def apply_scale_to_series(self, series: Optional[Dict]) -> bool:
        """
        Stamp the color range and stops onto a surface/heatmap descriptor.

        An existing colorscale list is cleared and refilled rather than
        replaced, so the rendering host can redraw it incrementally.

        Parameters
        ----------
        series : dict
            Plotly trace descriptor. type == 'surface' receives cmin/cmax,
            anything else receives zmin/zmax.

        Returns
        -------
        bool
            False if series is None
        """
        if series is None:
            return False

        series['autocolorscale'] = False
        if series.get('type') == 'surface':
            series['cmin'] = self._range_min
            series['cmax'] = self._range_max
        else:
            series['zmin'] = self._range_min
            series['zmax'] = self._range_max
        series['autocontour'] = False

        colorscale = series.get('colorscale')
        if isinstance(colorscale, list):
            colorscale.clear()
        else:
            colorscale = []
            series['colorscale'] = colorscale
        colorscale.extend(list(stop) for stop in self._scale)

        return True

    def get_color_index(self, value) -> int:
        """
        Band index for a value: the first band whose upper boundary exceeds
        value, else the last band.

        Any fault during the lookup (e.g. an unorderable value) yields band
        0 and is reported through on_fault.
        """
        try:
            for i, boundary in enumerate(self._boundaries):
                if value < boundary:
                    return i
            return len(self._boundaries)
        except Exception as e:
            logger.debug(f"Color index lookup failed for {value!r}: {e}")
            if self._on_fault is not None:
                self._on_fault(value, e)
            return 0

    # ------------------------------------------------------------------
    # Presets
    # ------------------------------------------------------------------

    @classmethod
    def from_preset(
        cls,
        name: str,
        boundaries: Optional[Sequence[float]] = None,
        target: Optional[float] = None,
        blended: bool = False,
        on_fault: Optional[Callable[[object, Exception], None]] = None,
    ) -> 'ColorScale':
        """Build a scale from COLOR_SCALE_PRESETS, overriding boundaries/target."""
        preset = COLOR_SCALE_PRESETS.get(name)
        if preset is None:
            raise ConfigurationError(
                f"Unknown color scale preset '{name}' "
                f"(available: {sorted(COLOR_SCALE_PRESETS)})"
            )
        if boundaries is None:
            boundaries = preset.boundaries
        if target is None:
            target = preset.target
        return cls(preset.colors, boundaries, target, blended, on_fault)


def ndc3_color_scale(boundaries=None, target=None, blended=False) -> ColorScale:
    """Red / lime / yellow scale, boundaries [10, 20], target 15."""
    return ColorScale.from_preset('NDC3', boundaries, target, blended)


def ndc7_color_scale(boundaries=None, target=None, blended=False) -> ColorScale:
    """Seven color scale from dark blue to red, boundaries 10..20, target 15."""
    return ColorScale.from_preset('NDC7', boundaries, target, blended)
