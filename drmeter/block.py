"""
drmeter/block.py — Per-window peak and energy accumulator.

A ``Block`` summarizes one window of frames into a peak and an RMS value per
channel. It does not know the window length: the meter slices every batch
at the window boundary before calling ``process`` and calls ``reset`` once
the block has been folded into the histograms.

Energy sums are accumulated strictly left-to-right in frame order, so the
sum (and therefore the RMS bin) is identical however the stream was
partitioned into batches.
"""

from __future__ import annotations

import numpy as np

from drmeter.frames import FrameBatch
from drmeter.samples import energy_term, max_peak


class Block:
    """Running per-channel peak and energy over the current window.

    Args:
        channels: Channel count every processed batch must match.
    """

    def __init__(self, channels: int) -> None:
        if channels < 1:
            raise ValueError(f"channels must be positive, got {channels}")
        self.channels = channels
        self.consumed_frames = 0
        self.sample_peak = np.zeros(channels, dtype=np.float64)
        self.sum2 = np.zeros(channels, dtype=np.float64)

    def process(self, batch: FrameBatch) -> None:
        """Fold a batch of frames into the running peak and energy sums.

        The caller guarantees the batch does not cross the window boundary.

        Raises:
            AssertionError: If the batch channel count differs from the block's.
        """
        if batch.channel_count() != self.channels:
            raise AssertionError(
                f"batch has {batch.channel_count()} channels, block expects {self.channels}"
            )
        frames = batch.frame_count()
        if frames == 0:
            return

        for ch in range(self.channels):
            samples = batch.channel(ch)

            peak = max_peak(samples, batch.encoding)
            if peak > self.sample_peak[ch]:
                self.sample_peak[ch] = peak

            # cumsum adds sequentially, unlike np.sum's pairwise reduction
            terms = np.empty(frames + 1, dtype=np.float64)
            terms[0] = self.sum2[ch]
            terms[1:] = energy_term(samples, batch.encoding)
            self.sum2[ch] = np.cumsum(terms)[-1]

        self.consumed_frames += frames

    def finish(self) -> tuple[np.ndarray, np.ndarray]:
        """Return ``(peak, rms)`` per channel without resetting the block.

        RMS follows the DR standard: sqrt(2 * sum(x^2) / frames), so a
        full-scale sine measures 1.0.
        """
        peak = self.sample_peak.copy()
        if self.consumed_frames == 0:
            return peak, np.zeros(self.channels, dtype=np.float64)
        return peak, np.sqrt(2.0 * self.sum2 / self.consumed_frames)

    def reset(self) -> None:
        """Zero peaks, energy sums and the consumed-frame counter."""
        self.sample_peak.fill(0.0)
        self.sum2.fill(0.0)
        self.consumed_frames = 0

    def __repr__(self) -> str:
        return f"Block(channels={self.channels}, consumed_frames={self.consumed_frames})"
