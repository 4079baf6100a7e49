"""
drmeter/analysis.py — One-shot DR analysis of in-memory audio.

Pure convenience layer over ``DRMeter`` for callers that already hold the
whole signal: numpy arrays in, frozen reports out. Streaming callers should
drive ``DRMeter`` directly.

Signal conventions follow the rest of the audio tooling:
    - Mono: shape (N,)
    - Multichannel: shape (channels, N), i.e. planar
"""

from __future__ import annotations

from collections.abc import Iterable

import numpy as np

from drmeter.config import DEFAULT_WINDOW_MS
from drmeter.frames import Layout
from drmeter.meter import DRMeter, exact_dr_multiple, truncate_to_u8
from drmeter.types import AlbumReport, DRReport


def _planes(y: np.ndarray) -> np.ndarray:
    """Return audio as a (channels, N) array."""
    y = np.asarray(y)
    if y.ndim == 1:
        return y[np.newaxis, :]
    if y.ndim == 2:
        return y
    raise ValueError(f"Audio array must be 1-D or 2-D, got {y.ndim}-D")


def measure(y: np.ndarray, sr: int, window_ms: int = DEFAULT_WINDOW_MS) -> DRMeter:
    """Run a whole signal through a new meter and finalize it.

    Args:
        y:         Mono (N,) or planar (channels, N) array of a supported dtype.
        sr:        Sample rate in Hz.
        window_ms: Block length in milliseconds.

    Returns:
        The finalized meter, for callers that need histogram-level detail.

    Raises:
        ValueError: If y is empty or not 1-D / 2-D.
    """
    planes = _planes(y)
    if planes.shape[1] == 0:
        raise ValueError("Audio array is empty")

    meter = DRMeter(channels=planes.shape[0], sample_rate=sr, window_ms=window_ms)
    meter.ingest(planes, Layout.PLANAR)
    meter.finalize()
    return meter


def analyze_dr(y: np.ndarray, sr: int, window_ms: int = DEFAULT_WINDOW_MS) -> DRReport:
    """Compute the DR report of a complete signal.

    Silent channels are reported with None scores rather than raising.
    """
    return measure(y, sr, window_ms).report()


def analyze_album(
    tracks: Iterable[tuple[np.ndarray, int]], window_ms: int = DEFAULT_WINDOW_MS
) -> AlbumReport:
    """Compute per-track reports and the album DR.

    Args:
        tracks:    Iterable of ``(y, sr)`` pairs, one per track.
        window_ms: Block length in milliseconds, shared by all tracks.

    Raises:
        ValueError: If no tracks are supplied.
        NoPeakError: If any track has an unmeasurable channel.
    """
    meters = [measure(y, sr, window_ms) for y, sr in tracks]
    if not meters:
        raise ValueError("analyze_album needs at least one track")

    exact = exact_dr_multiple(meters)
    return AlbumReport(
        tracks=tuple(m.report() for m in meters),
        exact_dr=exact,
        score=truncate_to_u8(exact),
    )
