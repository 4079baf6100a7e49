"""
drmeter/meter.py — Streaming DR meter: ingestion, histograms, and scoring.

Implements the DR measurement published with the "Pleasurize Music"
foundation's DR meter (as also found in ffmpeg's ``drmeter`` filter):

    1. Split the stream into fixed windows (3 s by default).
    2. Per window and channel, measure the sample peak and the RMS
       (sqrt(2 * mean(x^2)), so a full-scale sine reads 1.0).
    3. Fold both into 32 769-bin histograms over [0, 1].
    4. DR = 20 * log10(second_peak / rms_loud), where rms_loud is the RMS of
       the loudest 20 % of windows and second_peak is the highest
       populated peak bin scanned down from the first peak (inclusive).

Lifecycle::

    ACCEPTING ──finalize()──→ FINALIZED

While ACCEPTING, frames may be ingested and every score query is computed
live from the histograms (completed windows only). ``finalize()`` folds the
trailing partial window in as a full block, caches the per-channel DR and
permanently rejects further ingestion.

Design:
    - The open block lives only in the ACCEPTING state object; the FINALIZED
      state holds the cached scores instead, so there is nothing left to
      mutate after finalize.
    - Each histogram is one flat allocation of channels * (BINS + 1)
      counters addressed by channel offset.
    - Peak bins are truncated, RMS bins are rounded (half away from zero).
      The asymmetry is part of the reference algorithm.

Usage::

    meter = DRMeter(channels=2, sample_rate=44100)
    for chunk in decoder:
        meter.ingest(chunk)                 # interleaved, dtype-driven encoding
    meter.finalize()
    print(meter.dr_score(), meter.exact_dr())
"""

from __future__ import annotations

import logging
import math
from collections.abc import Iterable
from dataclasses import dataclass
from enum import Enum
from typing import Any

import numpy as np

from drmeter.block import Block
from drmeter.config import DEFAULT_WINDOW_MS, MeterConfig
from drmeter.errors import AlreadyFinalizedError, InvalidChannelIndexError, NoPeakError
from drmeter.frames import Layout, as_frames
from drmeter.samples import SampleEncoding
from drmeter.types import BINS, LOUD_FRACTION, ChannelDR, DRReport

logger = logging.getLogger(__name__)


class MeterState(Enum):
    """DR meter lifecycle states."""

    ACCEPTING = "accepting"
    FINALIZED = "finalized"


@dataclass
class _Accepting:
    """Ingestion allowed; owns the open block."""

    block: Block

    kind = MeterState.ACCEPTING


@dataclass(frozen=True)
class _Finalized:
    """Ingestion forbidden; holds the per-channel DR computed at finalize.

    A channel that could not be scored stores its ``NoPeakError`` so that
    queries raise the same error after finalize as before it.
    """

    channel_dr: tuple[float | NoPeakError, ...]

    kind = MeterState.FINALIZED


# ---------------------------------------------------------------------------
# Numeric helpers
# ---------------------------------------------------------------------------


def round_half_away(x: float) -> int:
    """Round to nearest integer, ties away from zero (not banker's rounding)."""
    return int(math.floor(x + 0.5)) if x >= 0 else -int(math.floor(-x + 0.5))


def truncate_to_u8(value: float) -> int:
    """Saturating float → unsigned byte cast.

    NaN and negative values map to 0, values of 255 or more map to 255,
    everything else is truncated toward zero.
    """
    if math.isnan(value) or value <= 0.0:
        return 0
    if value >= 255.0:
        return 255
    return int(value)


def _decibel(ratio: float) -> float:
    """20 * log10(ratio), with log10(0) = -inf."""
    if ratio == 0.0:
        return -math.inf
    return 20.0 * math.log10(ratio)


def _rms_bins(rms: np.ndarray) -> np.ndarray:
    """Map block RMS values to histogram bins, rounding half away from zero."""
    scaled = np.nan_to_num(rms * BINS, nan=0.0, posinf=float(BINS), neginf=0.0)
    whole = np.floor(scaled)
    bins = whole + (scaled - whole >= 0.5)
    return np.clip(bins, 0, BINS).astype(np.intp)


def _peak_bins(peak: np.ndarray) -> np.ndarray:
    """Map block peaks to histogram bins, truncating."""
    scaled = np.nan_to_num(peak * BINS, nan=0.0, posinf=float(BINS), neginf=0.0)
    return np.clip(np.floor(scaled), 0, BINS).astype(np.intp)


# ---------------------------------------------------------------------------
# DRMeter
# ---------------------------------------------------------------------------


class DRMeter:
    """Streaming DR meter for one track.

    Instances own all their state; separate instances may be driven from
    separate threads without locking, a single instance may not.

    Args:
        channels: Channel count, 1 to 64.
        sample_rate: Sample rate in Hz, 16 to 2 822 400.
        window_ms: Block length in milliseconds (default 3000, minimum 10).

    Raises:
        ResourceExhaustedError: If the parameters are out of range or the
            histogram allocation would be oversized.
    """

    def __init__(self, channels: int, sample_rate: int, window_ms: int = DEFAULT_WINDOW_MS) -> None:
        self._config = MeterConfig(channels=channels, sample_rate=sample_rate, window_ms=window_ms)
        self._needed_frames = self._config.needed_frames
        self._block_count = 0

        size = self._config.histogram_size
        self._peaks = np.zeros(size, dtype=np.uint64)
        self._rms = np.zeros(size, dtype=np.uint64)
        self._offsets = np.arange(channels, dtype=np.intp) * (BINS + 1)

        self._state: _Accepting | _Finalized = _Accepting(Block(channels))

        logger.info(
            "DRMeter initialized (channels=%d, rate=%d Hz, window=%d ms, needed_frames=%d)",
            channels,
            sample_rate,
            window_ms,
            self._needed_frames,
        )

    @classmethod
    def from_config(cls, config: MeterConfig) -> DRMeter:
        """Create a meter from a validated ``MeterConfig``."""
        return cls(config.channels, config.sample_rate, config.window_ms)

    # -----------------------------------------------------------------------
    # Properties
    # -----------------------------------------------------------------------

    @property
    def config(self) -> MeterConfig:
        """Validated configuration the meter was built from."""
        return self._config

    @property
    def channels(self) -> int:
        """Configured number of channels."""
        return self._config.channels

    @property
    def sample_rate(self) -> int:
        """Configured sample rate in Hz."""
        return self._config.sample_rate

    @property
    def window_ms(self) -> int:
        """Configured block length in milliseconds."""
        return self._config.window_ms

    @property
    def needed_frames(self) -> int:
        """Frames per block."""
        return self._needed_frames

    @property
    def block_count(self) -> int:
        """Number of blocks folded into the histograms so far."""
        return self._block_count

    @property
    def state(self) -> MeterState:
        """Current lifecycle state: ACCEPTING or FINALIZED."""
        return self._state.kind

    @property
    def finalized(self) -> bool:
        """True once ``finalize()`` has run."""
        return self._state.kind is MeterState.FINALIZED

    @property
    def pending_frames(self) -> int:
        """Frames consumed by the open block (0 after finalize)."""
        if isinstance(self._state, _Accepting):
            return self._state.block.consumed_frames
        return 0

    def __repr__(self) -> str:
        return (
            f"DRMeter(channels={self.channels}, sample_rate={self.sample_rate}, "
            f"window_ms={self.window_ms}, needed_frames={self._needed_frames}, "
            f"block_count={self._block_count}, pending_frames={self.pending_frames}, "
            f"state={self.state.value})"
        )

    # -----------------------------------------------------------------------
    # Histogram access
    # -----------------------------------------------------------------------

    def _check_channel(self, channel: int) -> None:
        if not 0 <= channel < self.channels:
            raise InvalidChannelIndexError(channel, self.channels)

    def _channel_bins(self, histogram: np.ndarray, channel: int) -> np.ndarray:
        start = channel * (BINS + 1)
        return histogram[start : start + BINS + 1]

    def peak_histogram(self, channel: int) -> np.ndarray:
        """Read-only view of the block-peak histogram of ``channel``."""
        self._check_channel(channel)
        view = self._channel_bins(self._peaks, channel)
        view.flags.writeable = False
        return view

    def rms_histogram(self, channel: int) -> np.ndarray:
        """Read-only view of the block-RMS histogram of ``channel``."""
        self._check_channel(channel)
        view = self._channel_bins(self._rms, channel)
        view.flags.writeable = False
        return view

    # -----------------------------------------------------------------------
    # Ingestion
    # -----------------------------------------------------------------------

    def ingest(
        self,
        frames: Any,
        layout: Layout | str = Layout.INTERLEAVED,
        encoding: SampleEncoding | str | None = None,
    ) -> None:
        """Process a chunk of frames.

        Frames must arrive in time order without gaps. Blocks are completed
        whenever a window boundary is crossed; a trailing remainder stays in
        the open block until more frames arrive or ``finalize()`` runs.

        Args:
            frames: Interleaved buffer, sequence of planar buffers, or a
                ``FrameBatch``.
            layout: ``Layout.INTERLEAVED`` (default) or ``Layout.PLANAR``.
            encoding: Sample encoding; inferred from the array dtype if omitted.

        Raises:
            AlreadyFinalizedError: If the meter has been finalized.
            FrameLayoutError: If the buffers do not describe whole frames.
            UnsupportedEncodingError: For 8-bit / 64-bit integer and other
                unsupported sample types.
            AssertionError: If a planar batch or ``FrameBatch`` carries a
                different channel count than the meter.
        """
        if not isinstance(self._state, _Accepting):
            raise AlreadyFinalizedError("ingest")

        batch = as_frames(frames, self.channels, layout, encoding)
        if batch.is_empty():
            return

        block = self._state.block
        while not batch.is_empty():
            remaining = self._needed_frames - block.consumed_frames
            if batch.frame_count() >= remaining:
                current, batch = batch.split_at(remaining)
                block.process(current)
                self._complete_block(block)
            else:
                block.process(batch)
                break

    def add_frames(self, frames: Any) -> None:
        """Process interleaved frames; the encoding follows the array dtype."""
        self.ingest(frames, Layout.INTERLEAVED)

    def add_frames_planar(self, planes: Any) -> None:
        """Process planar frames (one buffer per channel); the encoding follows the dtype."""
        self.ingest(planes, Layout.PLANAR)

    def _complete_block(self, block: Block) -> None:
        """Fold the block's peak and RMS into the histograms and reset it."""
        peak, rms = block.finish()
        rms_bins = _rms_bins(rms)
        peak_bins = _peak_bins(peak)

        # one index per channel, so no duplicates within each fancy-index add
        self._rms[self._offsets + rms_bins] += 1
        self._peaks[self._offsets + peak_bins] += 1
        self._block_count += 1

        logger.debug(
            "DRMeter block %d completed (%d frames): peak_bins=%s rms_bins=%s",
            self._block_count,
            block.consumed_frames,
            peak_bins.tolist(),
            rms_bins.tolist(),
        )
        block.reset()

    def finalize(self) -> None:
        """Mark end of stream and cache the per-channel DR values.

        A non-empty trailing partial window is scored as a full block. After
        this call no more frames are accepted and score queries return the
        cached values.

        Raises:
            AlreadyFinalizedError: If called a second time.
        """
        if not isinstance(self._state, _Accepting):
            raise AlreadyFinalizedError("finalize")

        block = self._state.block
        if block.consumed_frames != 0:
            logger.debug(
                "DRMeter flushing partial block of %d/%d frames",
                block.consumed_frames,
                self._needed_frames,
            )
            self._complete_block(block)

        cached: list[float | NoPeakError] = []
        for ch in range(self.channels):
            try:
                cached.append(self._compute_channel_dr(ch))
            except NoPeakError as exc:
                logger.warning("DRMeter finalize: channel %d has no peak, DR not measurable", ch)
                cached.append(exc)

        self._state = _Finalized(tuple(cached))
        logger.info("DRMeter finalized after %d block(s)", self._block_count)

    # -----------------------------------------------------------------------
    # Scoring
    # -----------------------------------------------------------------------

    def _find_first_peak(self, channel: int) -> int:
        """Bin index of the highest populated peak bin above bin 0."""
        self._check_channel(channel)
        populated = np.flatnonzero(self._channel_bins(self._peaks, channel)[1:])
        if populated.size == 0:
            raise NoPeakError(channel)
        return int(populated[-1]) + 1

    def _find_second_peak(self, channel: int) -> int:
        """Bin index of the second peak.

        Highest populated bin of the histogram suffix that starts at the
        first-peak bin (inclusive), so it always lands on the first peak.
        """
        first = self._find_first_peak(channel)
        suffix = self._channel_bins(self._peaks, channel)[first:]
        return first + int(np.flatnonzero(suffix)[-1])

    def first_peak(self, channel: int) -> float:
        """Maximum block peak of ``channel``, normalized to [0, 1].

        Convert to dBFS with 20 * log10(value).

        Raises:
            InvalidChannelIndexError: If ``channel`` is out of range.
            NoPeakError: If no block with a non-zero peak has completed.
        """
        return self._find_first_peak(channel) / BINS

    def second_peak(self, channel: int) -> float:
        """Second peak of ``channel``, normalized to [0, 1]; equal to the first peak.

        Raises:
            InvalidChannelIndexError: If ``channel`` is out of range.
            NoPeakError: If no block with a non-zero peak has completed.
        """
        return self._find_second_peak(channel) / BINS

    def _channel_rms_sum(self, channel: int) -> float:
        """Sum of squared RMS over the loudest 20 % of blocks.

        Bins are visited from the top down, each weighted by its block
        count, until the visited block count reaches round(0.2 * blocks).
        """
        self._check_channel(channel)
        n = round_half_away(LOUD_FRACTION * self._block_count)
        rms = self._channel_bins(self._rms, channel)

        rms_sum = 0.0
        visited = 0
        for i in np.flatnonzero(rms)[::-1]:
            if visited >= n:
                break
            count = int(rms[i])
            value = int(i) / BINS
            rms_sum += value * value * count
            visited += count
        return rms_sum

    def _compute_channel_dr(self, channel: int) -> float:
        second = self.second_peak(channel)
        loud_rms = math.sqrt(self._channel_rms_sum(channel) / (LOUD_FRACTION * self._block_count))
        if loud_rms == 0.0:
            return math.inf if second > 0.0 else math.nan
        return _decibel(second / loud_rms)

    def exact_channel_dr(self, channel: int) -> float:
        """Exact DR of ``channel`` in dB.

        Before finalize only completed blocks count; call ``finalize()`` at
        end of stream to include the trailing partial block.

        Raises:
            InvalidChannelIndexError: If ``channel`` is out of range.
            NoPeakError: If the channel has no measurable peak.
        """
        if isinstance(self._state, _Finalized):
            self._check_channel(channel)
            value = self._state.channel_dr[channel]
            if isinstance(value, NoPeakError):
                raise NoPeakError(channel) from value
            return value
        return self._compute_channel_dr(channel)

    def channel_dr_score(self, channel: int) -> int:
        """Integer DR score of ``channel`` (exact DR truncated to a byte)."""
        return truncate_to_u8(self.exact_channel_dr(channel))

    def exact_dr(self) -> float:
        """Mean of the exact per-channel DR values.

        Raises:
            NoPeakError: If any channel has no measurable peak.
        """
        total = 0.0
        for ch in range(self.channels):
            total += self.exact_channel_dr(ch)
        return total / self.channels

    def dr_score(self) -> int:
        """Integer DR score of the track (exact DR truncated to a byte)."""
        return truncate_to_u8(self.exact_dr())

    def report(self) -> DRReport:
        """Snapshot all peak and DR values; unmeasurable channels carry None."""
        results: list[ChannelDR] = []
        for ch in range(self.channels):
            try:
                exact = self.exact_channel_dr(ch)
            except NoPeakError:
                results.append(
                    ChannelDR(
                        channel=ch, first_peak=None, second_peak=None, exact_dr=None, score=None
                    )
                )
                continue
            results.append(
                ChannelDR(
                    channel=ch,
                    first_peak=self.first_peak(ch),
                    second_peak=self.second_peak(ch),
                    exact_dr=exact,
                    score=truncate_to_u8(exact),
                )
            )

        overall: float | None = None
        if all(r.measurable for r in results):
            overall = sum(r.exact_dr for r in results) / self.channels  # type: ignore[misc]

        return DRReport(
            channels=tuple(results),
            exact_dr=overall,
            score=truncate_to_u8(overall) if overall is not None else None,
            block_count=self._block_count,
            sample_rate=self.sample_rate,
            window_ms=self.window_ms,
            finalized=self.finalized,
        )


# ---------------------------------------------------------------------------
# Multi-instance aggregation
# ---------------------------------------------------------------------------


def exact_dr_multiple(meters: Iterable[DRMeter]) -> float:
    """Mean exact DR across meters, e.g. the tracks of an album.

    Raises:
        ValueError: If ``meters`` is empty.
        NoPeakError: If any meter has an unmeasurable channel.
    """
    values = [meter.exact_dr() for meter in meters]
    if not values:
        raise ValueError("exact_dr_multiple needs at least one meter")
    return sum(values) / len(values)


def dr_score_multiple(meters: Iterable[DRMeter]) -> int:
    """Integer DR score across meters (mean exact DR truncated to a byte)."""
    return truncate_to_u8(exact_dr_multiple(meters))
