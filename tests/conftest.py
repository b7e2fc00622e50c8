"""Pytest fixtures for Roll Profile Viewer tests."""

import pytest
import numpy as np

from src.compute.color_scale import ColorScale


@pytest.fixture
def two_band_scale():
    """Blue below 15, red at or above. Target defaults to 15."""
    return ColorScale(["blue", "red"], [15])


@pytest.fixture
def three_band_scale():
    """Red / lime / yellow with boundaries 10 and 20, target 15."""
    return ColorScale(["red", "lime", "yellow"], [20, 10])


@pytest.fixture
def ndc7_scale():
    """Seven colors, boundaries 10..20 in steps of 2."""
    return ColorScale.from_preset('NDC7')


@pytest.fixture
def five_boundary_scale():
    """Six colors, odd boundary count (middle boundary 14)."""
    return ColorScale(
        ["c0", "c1", "c2", "c3", "c4", "c5"],
        [10, 12, 14, 16, 18],
    )


@pytest.fixture
def small_roll_field():
    """
    4 MD scans x 5 CD positions with values straddling 15.

    Row i, column j = 10 + i + 2 * j
    """
    rows, cols = np.meshgrid(np.arange(4), np.arange(5), indexing='ij')
    return (10.0 + rows + 2.0 * cols)


@pytest.fixture
def fault_log():
    """Collects (value, exception) pairs reported by ColorScale.on_fault."""
    return []
