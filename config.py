"""
Centralized configuration for Roll Profile Viewer.

All default parameters are defined here for consistency.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Dict, Optional, Tuple


class FillMode(Enum):
    """How a profile line is filled."""
    TOTARGET = "totarget"
    TOAVERAGE = "toaverage"
    TOZERO = "tozero"
    NONE = "none"


@dataclass
class ScaleDefaults:
    """Default parameters for color scale construction."""
    range_padding_fraction: float = 0.1  # of boundary span, each side
    blended: bool = False


@dataclass
class TraceDefaults:
    """Default parameters for multi-color profile traces."""
    trace_name: str = "Trace X"
    fill_mode: FillMode = FillMode.TOTARGET
    offset_fillcolor: str = "rgba(1,1,1,0)"  # invisible fill baseline
    axis_padding_fraction: float = 0.1  # of value span, each side


@dataclass
class RollDataDefaults:
    """Default parameters for the synthetic roll field."""
    n_rows: int = 60       # MD samples
    n_cols: int = 80       # CD samples
    cd_step: float = 10.0  # mm between CD positions
    md_step: float = 100.0  # mm between MD scans
    nominal: float = 15.0  # thickness (µm)
    noise: float = 1.2
    sigma: float = 2.0     # gaussian smoothing, in samples
    seed: Optional[int] = 42


@dataclass
class AppConfig:
    """Application configuration."""
    # Server settings
    host: str = "127.0.0.1"
    port: int = 5000
    debug: bool = False

    log_dir: str = "logs"
    default_preset: str = "NDC7"

    scale: ScaleDefaults = field(default_factory=ScaleDefaults)
    traces: TraceDefaults = field(default_factory=TraceDefaults)
    roll_data: RollDataDefaults = field(default_factory=RollDataDefaults)


# Global configuration instance
config = AppConfig()


def get_config() -> AppConfig:
    """Get the global configuration instance."""
    return config


# ---------------------------------------------------------------------------
# Color scale presets
# ---------------------------------------------------------------------------

@dataclass
class ColorScalePreset:
    """Named color scale definition."""
    name: str
    colors: Tuple[str, ...]
    boundaries: Tuple[float, ...]
    target: Optional[float] = None


COLOR_SCALE_PRESETS: Dict[str, ColorScalePreset] = {
    'NDC3': ColorScalePreset(
        name='NDC 3 color',
        colors=("red", "lime", "yellow"),
        boundaries=(10.0, 20.0),
        target=15.0,
    ),
    'NDC7': ColorScalePreset(
        name='NDC 7 color',
        colors=("darkblue", "blue", "cyan", "lime", "yellow", "orange", "red"),
        boundaries=(10.0, 12.0, 14.0, 16.0, 18.0, 20.0),
        target=15.0,
    ),
}
