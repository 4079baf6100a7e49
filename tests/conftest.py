"""
Shared fixtures for the test suite.

Centralizes meter construction so individual test files don't need to
repeat configuration boilerplate. Both fixtures use a 1 kHz rate with a
100 ms window, so one block is exactly 100 frames.
"""

import pytest

from drmeter import DRMeter


@pytest.fixture()
def mono_meter() -> DRMeter:
    """Mono meter with 100-frame windows."""
    return DRMeter(channels=1, sample_rate=1000, window_ms=100)


@pytest.fixture()
def stereo_meter() -> DRMeter:
    """Stereo meter with 100-frame windows."""
    return DRMeter(channels=2, sample_rate=1000, window_ms=100)
