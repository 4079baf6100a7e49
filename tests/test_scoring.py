"""
tests/test_scoring.py — DR scoring tests for drmeter/meter.py.

Uses synthetic signals with known block peaks and RMS values:
    - Square wave at amplitude a: peak = a, DR-standard RMS = a * sqrt(2)
    - Full-scale square wave: RMS bin clamps to BINS (sqrt(2) > 1)
    - Silence: every block peak lands in bin 0

All meters use 100-frame windows (1 kHz, 100 ms).
"""

from __future__ import annotations

import math

import numpy as np
import pytest

from drmeter import BINS, DRMeter, NoPeakError, dr_score_multiple, exact_dr_multiple
from drmeter.meter import round_half_away, truncate_to_u8

# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------

NEEDED = 100


def _square(n: int, amplitude: float = 1.0, period: int = 10) -> np.ndarray:
    """Square wave: half a period at +amplitude, half at -amplitude."""
    half = period // 2
    pattern = np.concatenate([np.full(half, amplitude), np.full(period - half, -amplitude)])
    return np.resize(pattern, n)


def _meter_with_blocks(amplitudes: list[float], channels: int = 1) -> DRMeter:
    """One square-wave block per amplitude, same signal on every channel."""
    meter = DRMeter(channels=channels, sample_rate=1000, window_ms=100)
    for amplitude in amplitudes:
        block = _square(NEEDED, amplitude)
        meter.ingest(np.repeat(block, channels))
    return meter


def _peak_bin(value: float) -> int:
    return min(int(math.floor(value * BINS)), BINS)


def _rms_bin(value: float) -> int:
    return min(int(math.floor(value * BINS + 0.5)), BINS)


# ---------------------------------------------------------------------------
# Golden values
# ---------------------------------------------------------------------------


class TestGoldenValues:
    def test_full_scale_square_wave(self):
        meter = DRMeter(channels=1, sample_rate=1000, window_ms=100)
        meter.ingest(_square(10 * NEEDED))
        meter.finalize()
        # 10 blocks, all at peak bin BINS and RMS bin BINS (clamped);
        # n = 2, rms_sum = 1.0 * 10, DR = 20 * log10(1 / sqrt(10 / 2))
        assert meter.first_peak(0) == 1.0
        assert meter.second_peak(0) == 1.0
        assert meter.exact_channel_dr(0) == pytest.approx(-6.989700043360188, rel=1e-12)
        assert meter.channel_dr_score(0) == 0

    def test_half_scale_square_wave(self):
        meter = _meter_with_blocks([0.5] * 5)
        meter.finalize()
        # peak bin 16384, RMS bin round(sqrt(0.5) * 32768) = 23170, n = 1
        rms = 23170 / BINS
        expected = 20.0 * math.log10(0.5 / math.sqrt(5 * rms * rms / 1.0))
        assert meter.rms_histogram(0)[23170] == 5
        assert meter.exact_channel_dr(0) == pytest.approx(expected, rel=1e-12)

    def test_int16_full_scale_square_wave(self):
        block = np.resize(np.array([32767] * 5 + [-32768] * 5, dtype=np.int16), 10 * NEEDED)
        meter = DRMeter(channels=1, sample_rate=1000, window_ms=100)
        meter.ingest(block)
        meter.finalize()
        assert meter.first_peak(0) == 1.0
        assert meter.exact_channel_dr(0) == pytest.approx(-6.989700043360188, rel=1e-12)


# ---------------------------------------------------------------------------
# Peaks
# ---------------------------------------------------------------------------


class TestPeaks:
    def test_peak_bin_is_truncated(self):
        # 0.3 * 32768 = 9830.4 -> bin 9830
        meter = _meter_with_blocks([0.3])
        assert meter.peak_histogram(0)[9830] == 1
        assert meter.first_peak(0) == 9830 / BINS

    def test_second_peak_equals_first_when_top_is_unique(self):
        # the downward scan starts at the first-peak bin, inclusive
        meter = _meter_with_blocks([0.2, 0.8, 0.5])
        assert meter.first_peak(0) == _peak_bin(0.8) / BINS
        assert meter.second_peak(0) == meter.first_peak(0)

    def test_second_peak_equals_first_when_top_repeats(self):
        meter = _meter_with_blocks([0.8, 0.2, 0.8])
        assert meter.second_peak(0) == meter.first_peak(0)

    def test_single_block_second_peak_is_first(self):
        meter = _meter_with_blocks([0.6])
        assert meter.second_peak(0) == meter.first_peak(0)

    def test_no_blocks_raises_no_peak(self, mono_meter):
        mono_meter.ingest(np.full(NEEDED - 1, 0.5))
        with pytest.raises(NoPeakError) as exc_info:
            mono_meter.first_peak(0)
        assert exc_info.value.channel == 0


# ---------------------------------------------------------------------------
# RMS selection and DR formula
# ---------------------------------------------------------------------------


class TestLoudFraction:
    def test_rms_bin_is_rounded(self):
        # sqrt(2) * 0.6 * 32768 = 27804.57... -> 27805 (truncation would give 27804)
        meter = _meter_with_blocks([0.6])
        hist = meter.rms_histogram(0)
        assert hist[27805] == 1
        assert hist[27804] == 0

    def test_upper_twenty_percent_selected(self):
        amplitudes = [0.05 * k for k in range(1, 11)]
        meter = _meter_with_blocks(amplitudes)
        meter.finalize()

        # n = round(0.2 * 10) = 2: the two loudest blocks (0.5 and 0.45)
        r10 = _rms_bin(amplitudes[-1] * math.sqrt(2)) / BINS
        r9 = _rms_bin(amplitudes[-2] * math.sqrt(2)) / BINS
        second = _peak_bin(amplitudes[-1]) / BINS
        expected = 20.0 * math.log10(second / math.sqrt((r10 * r10 + r9 * r9) / 2.0))

        assert meter.exact_channel_dr(0) == pytest.approx(expected, rel=1e-9)
        assert meter.channel_dr_score(0) == truncate_to_u8(expected)

    def test_gain_invariance(self):
        loud = _meter_with_blocks([0.1, 0.2, 0.3, 0.4, 0.5])
        soft = _meter_with_blocks([0.05, 0.1, 0.15, 0.2, 0.25])
        assert soft.exact_channel_dr(0) == pytest.approx(loud.exact_channel_dr(0), abs=0.01)

    def test_fewer_than_three_blocks_is_infinite(self):
        # n = round(0.2 * 2) = 0: no block selected, loud RMS is zero
        meter = _meter_with_blocks([0.5, 0.4])
        meter.finalize()
        assert meter.exact_channel_dr(0) == math.inf
        assert meter.channel_dr_score(0) == 255

    def test_silent_blocks_do_not_lower_second_peak(self):
        meter = DRMeter(channels=1, sample_rate=1000, window_ms=100)
        meter.ingest(_square(NEEDED, 0.5))
        meter.ingest(np.zeros(4 * NEEDED))
        meter.finalize()
        # n = round(0.2 * 5) = 1: only the 0.5 block, RMS bin 23170
        assert meter.peak_histogram(0)[0] == 4
        assert meter.second_peak(0) == 0.5
        expected = 20.0 * math.log10(0.5 / (23170 / BINS))
        assert meter.exact_channel_dr(0) == pytest.approx(expected, rel=1e-12)
        assert meter.channel_dr_score(0) == 0


# ---------------------------------------------------------------------------
# Silence
# ---------------------------------------------------------------------------


class TestSilence:
    def test_all_zero_stream_has_no_peak(self, stereo_meter):
        stereo_meter.ingest(np.zeros(2 * 3 * NEEDED, dtype=np.int16))
        assert stereo_meter.block_count == 3
        for ch in range(2):
            assert stereo_meter.peak_histogram(ch)[0] == 3
            with pytest.raises(NoPeakError):
                stereo_meter.first_peak(ch)
            with pytest.raises(NoPeakError):
                stereo_meter.second_peak(ch)
            with pytest.raises(NoPeakError):
                stereo_meter.exact_channel_dr(ch)

    def test_silence_after_finalize_still_raises(self, stereo_meter):
        stereo_meter.ingest(np.zeros(2 * 3 * NEEDED, dtype=np.float32))
        stereo_meter.finalize()
        with pytest.raises(NoPeakError):
            stereo_meter.channel_dr_score(0)
        with pytest.raises(NoPeakError):
            stereo_meter.dr_score()

    def test_one_silent_channel_blocks_overall_score(self):
        meter = DRMeter(channels=2, sample_rate=1000, window_ms=100)
        left = np.concatenate([_square(NEEDED, a) for a in (0.2, 0.4, 0.6)])
        meter.ingest([left, np.zeros_like(left)], layout="planar")
        assert math.isfinite(meter.exact_channel_dr(0))
        with pytest.raises(NoPeakError):
            meter.exact_dr()


# ---------------------------------------------------------------------------
# Aggregation
# ---------------------------------------------------------------------------


class TestChannelAggregation:
    def test_exact_dr_is_channel_mean(self):
        meter = DRMeter(channels=2, sample_rate=1000, window_ms=100)
        left = np.concatenate([_square(NEEDED, a) for a in (0.1, 0.2, 0.3, 0.4, 0.9)])
        right = np.concatenate([_square(NEEDED, a) for a in (0.5, 0.5, 0.6, 0.6, 0.7)])
        meter.ingest([left, right], layout="planar")
        meter.finalize()
        mean = (meter.exact_channel_dr(0) + meter.exact_channel_dr(1)) / 2
        assert meter.exact_dr() == pytest.approx(mean)
        assert meter.dr_score() == truncate_to_u8(mean)


class TestMultipleInstances:
    def _tracks(self) -> list[DRMeter]:
        tracks = [
            _meter_with_blocks([0.1, 0.2, 0.3, 0.9, 0.4], channels=2),
            _meter_with_blocks([0.7, 0.8, 0.75, 0.8, 0.6], channels=2),
            _meter_with_blocks([0.05 * k for k in range(1, 11)], channels=2),
        ]
        for meter in tracks:
            meter.finalize()
        return tracks

    def test_mean_of_exact_dr(self):
        tracks = self._tracks()
        expected = sum(m.exact_dr() for m in tracks) / len(tracks)
        assert exact_dr_multiple(tracks) == pytest.approx(expected)
        assert dr_score_multiple(tracks) == truncate_to_u8(expected)

    def test_single_instance_is_identity(self):
        track = self._tracks()[0]
        assert exact_dr_multiple([track]) == track.exact_dr()
        assert dr_score_multiple([track]) == track.dr_score()

    def test_accepts_generators(self):
        tracks = self._tracks()
        assert exact_dr_multiple(m for m in tracks) == exact_dr_multiple(tracks)

    def test_empty_raises(self):
        with pytest.raises(ValueError, match="at least one"):
            exact_dr_multiple([])


# ---------------------------------------------------------------------------
# Numeric helpers
# ---------------------------------------------------------------------------


class TestRoundHalfAway:
    @pytest.mark.parametrize(
        "value, expected",
        [(0.5, 1), (1.5, 2), (2.5, 3), (2.4999, 2), (0.0, 0), (-2.5, -3), (-0.4, 0)],
    )
    def test_rounding(self, value, expected):
        assert round_half_away(value) == expected


class TestTruncateToU8:
    @pytest.mark.parametrize(
        "value, expected",
        [
            (12.99, 12),
            (0.7, 0),
            (254.9, 254),
            (255.0, 255),
            (1e9, 255),
            (-3.2, 0),
            (math.inf, 255),
            (-math.inf, 0),
            (math.nan, 0),
        ],
    )
    def test_saturating_cast(self, value, expected):
        assert truncate_to_u8(value) == expected


# ---------------------------------------------------------------------------
# Report
# ---------------------------------------------------------------------------


class TestReport:
    def test_report_fields(self):
        meter = _meter_with_blocks([0.1, 0.2, 0.3, 0.9, 0.4], channels=2)
        meter.finalize()
        report = meter.report()
        assert report.finalized
        assert report.block_count == 5
        assert report.sample_rate == 1000
        assert report.window_ms == 100
        assert len(report.channels) == 2
        assert report.channels[1].channel == 1
        assert report.channels[0].first_peak == meter.first_peak(0)
        assert report.exact_dr == pytest.approx(meter.exact_dr())
        assert report.score == meter.dr_score()
        assert report.label == f"DR{meter.dr_score()}"

    def test_report_marks_silent_channel(self):
        meter = DRMeter(channels=2, sample_rate=1000, window_ms=100)
        left = np.concatenate([_square(NEEDED, a) for a in (0.2, 0.4, 0.6)])
        meter.ingest([left, np.zeros_like(left)], layout="planar")
        report = meter.report()
        assert not report.finalized
        assert report.channels[0].measurable
        assert not report.channels[1].measurable
        assert report.channels[1].label == "DR–"
        assert report.exact_dr is None
        assert report.score is None
