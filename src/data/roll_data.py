"""
Roll measurement data source.

Generates synthetic thickness fields (rows = MD scans, columns = CD
positions) and provides the slicing helpers the viewer needs to turn a
clicked position into profile inputs.
"""

import logging
from typing import List, Optional, Sequence

import numpy as np
from scipy import ndimage

from config import RollDataDefaults
from src.utils.errors import ValidationError

logger = logging.getLogger(__name__)

ROLL_DEFAULTS = RollDataDefaults()


def generate_roll_data(
    n_rows: int = ROLL_DEFAULTS.n_rows,
    n_cols: int = ROLL_DEFAULTS.n_cols,
    nominal: float = ROLL_DEFAULTS.nominal,
    noise: float = ROLL_DEFAULTS.noise,
    sigma: float = ROLL_DEFAULTS.sigma,
    seed: Optional[int] = ROLL_DEFAULTS.seed,
) -> np.ndarray:
    """
    Generate a smooth synthetic roll thickness field.

    The field combines a CD edge profile (thicker edges, slightly thin
    centre), a slow MD drift and gaussian-smoothed random variation.

    Parameters
    ----------
    n_rows : int
        Number of MD scans
    n_cols : int
        Number of CD positions per scan
    nominal : float
        Nominal thickness the field varies around
    noise : float
        Standard deviation of the random variation before smoothing
    sigma : float
        Gaussian smoothing in samples (0 disables smoothing)
    seed : int, optional
        Random seed for reproducible fields

    Returns
    -------
    np.ndarray
        (n_rows, n_cols) float array
    """
    if n_rows < 1 or n_cols < 1:
        raise ValidationError(f"Roll field must be at least 1x1, got {n_rows}x{n_cols}")

    rng = np.random.default_rng(seed)

    cd = np.linspace(-1.0, 1.0, n_cols)
    md = np.linspace(0.0, 1.0, n_rows)

    # Edge build-up across CD, sinusoidal drift along MD
    cd_profile = 0.25 * nominal * cd ** 4 - 0.05 * nominal * (1 - cd ** 2)
    md_drift = 0.08 * nominal * np.sin(2 * np.pi * md)

    variation = rng.normal(0.0, noise, size=(n_rows, n_cols))
    if sigma > 0:
        variation = ndimage.gaussian_filter(variation, sigma=sigma, mode='nearest')
        # Smoothing shrinks the variance; restore the requested level
        std = variation.std()
        if std > 0:
            variation *= noise / std

    field = nominal + md_drift[:, np.newaxis] + cd_profile[np.newaxis, :] + variation

    logger.info(f"Generated roll field {n_rows}x{n_cols}: "
                f"min={field.min():.2f}, max={field.max():.2f}, mean={field.mean():.2f}")
    return field


def validate_roll_field(field) -> np.ndarray:
    """Return field as a 2-D float array or raise ValidationError."""
    try:
        arr = np.asarray(field, dtype=float)
    except (TypeError, ValueError) as e:
        raise ValidationError(f"Roll field must be a rectangular numeric array: {e}") from e

    if arr.ndim != 2:
        raise ValidationError(f"Roll field must be 2-D, got {arr.ndim}-D")
    if arr.shape[0] == 0 or arr.shape[1] == 0:
        raise ValidationError("Roll field is empty")
    return arr


def transpose_array(field) -> List[List[float]]:
    """Swap rows and columns (column i of field becomes row i)."""
    return validate_roll_field(field).T.tolist()


def make_axis(n: int, step: float) -> list:
    """Axis positions 0, step, 2*step, ... for n samples."""
    return (np.arange(n) * step).tolist()


def extract_row(field, index: int) -> List[float]:
    """Row of a field: the CD profile at an MD scan, or the MD profile of a
    transposed field at a CD position."""
    arr = validate_roll_field(field)
    if index < 0 or index >= arr.shape[0]:
        raise ValidationError(f"Row index {index} out of range [0, {arr.shape[0]})")
    return arr[index, :].tolist()


def find_position_index(axis: Sequence[float], value: float) -> int:
    """
    First index whose axis position is >= value.

    Values past the end of the axis map to the last index.
    """
    if len(axis) == 0:
        raise ValidationError("Cannot search an empty axis")
    index = int(np.searchsorted(np.asarray(axis, dtype=float), value, side='left'))
    return min(index, len(axis) - 1)
