"""
drmeter/types.py — Constants and frozen result types for DR measurement.

All result types are frozen dataclasses — immutable value objects that can
be safely passed between layers, cached, and compared.

Design:
    - No I/O, no state, no side effects.
    - Per-channel results are a tuple of ChannelDR (immutable, hashable).
    - A channel that cannot be scored (silence, no completed block) carries
      None in its score fields rather than a fabricated zero.
"""

from __future__ import annotations

from dataclasses import dataclass

BINS: int = 1 << 15
"""Histogram resolution: 32 768 steps over normalized amplitude [0, 1]."""

LOUD_FRACTION: float = 0.2
"""Share of blocks (the loudest by RMS) used in the DR denominator."""


@dataclass(frozen=True)
class ChannelDR:
    """DR measurement for a single channel.

    Invariants:
        0.0 <= second_peak == first_peak <= 1.0 when both are set
        score is None iff exact_dr is None
    """

    channel: int
    """Zero-based channel index."""

    first_peak: float | None
    """Highest block peak, normalized to [0, 1]. None if not measurable."""

    second_peak: float | None
    """Second peak, normalized to [0, 1]; equals first_peak. None if not measurable."""

    exact_dr: float | None
    """Exact DR value in dB. None if not measurable."""

    score: int | None
    """Integer DR score (exact value truncated to an unsigned byte)."""

    @property
    def measurable(self) -> bool:
        """True if the channel produced a DR value."""
        return self.exact_dr is not None

    @property
    def label(self) -> str:
        """Human-readable score, e.g. 'DR12' or 'DR–' for unmeasurable channels."""
        return f"DR{self.score}" if self.score is not None else "DR–"


@dataclass(frozen=True)
class DRReport:
    """Complete DR result for one meter instance.

    ``exact_dr`` and ``score`` are None when at least one channel is not
    measurable, since the overall value is the mean over all channels.
    """

    channels: tuple[ChannelDR, ...]
    """Per-channel results, ordered by channel index."""

    exact_dr: float | None
    """Arithmetic mean of the per-channel exact DR values."""

    score: int | None
    """Overall DR score (exact value truncated to an unsigned byte)."""

    block_count: int
    """Number of completed blocks folded into the histograms."""

    sample_rate: int
    """Sample rate in Hz the meter was configured with."""

    window_ms: int
    """Block length in milliseconds."""

    finalized: bool
    """True if the report was taken after finalize(); otherwise it reflects
    completed blocks only."""

    @property
    def label(self) -> str:
        """Human-readable overall score, e.g. 'DR9'."""
        return f"DR{self.score}" if self.score is not None else "DR–"


@dataclass(frozen=True)
class AlbumReport:
    """DR result aggregated over several tracks.

    The album value is the arithmetic mean of the tracks' exact DR values,
    truncated the same way as a single track's score.
    """

    tracks: tuple[DRReport, ...]
    """Per-track reports, in the order the tracks were supplied."""

    exact_dr: float
    """Mean exact DR across tracks."""

    score: int
    """Album DR score."""

    @property
    def label(self) -> str:
        return f"DR{self.score}"
