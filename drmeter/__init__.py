"""
drmeter — Streaming Dynamic Range (DR) meter for decoded PCM audio.

Computes the DR score used in mastering analysis from decoded frames fed
incrementally in any of four encodings (int16, int32, float32, float64),
interleaved or planar. Decoding and resampling are the caller's job.

Architecture note:
    numpy is the only runtime dependency; all per-sample work is vectorized
    per channel so the hot loop never dispatches on encoding or layout.

Public API:
    Meter:      DRMeter, MeterState, exact_dr_multiple, dr_score_multiple
    Config:     MeterConfig, CD_STEREO, HIRES_STEREO
    Frames:     Layout, FrameBatch, InterleavedFrames, PlanarFrames, as_frames
    Samples:    SampleEncoding, encoding_for
    Results:    ChannelDR, DRReport, AlbumReport
    One-shot:   analyze_dr, analyze_album, measure
    Errors:     DRMeterError and subclasses
"""

from drmeter.analysis import analyze_album, analyze_dr, measure
from drmeter.config import CD_STEREO, HIRES_STEREO, MeterConfig
from drmeter.errors import (
    AlreadyFinalizedError,
    DRMeterError,
    FrameLayoutError,
    InvalidChannelIndexError,
    NoPeakError,
    ResourceExhaustedError,
    UnsupportedEncodingError,
)
from drmeter.frames import FrameBatch, InterleavedFrames, Layout, PlanarFrames, as_frames
from drmeter.meter import DRMeter, MeterState, dr_score_multiple, exact_dr_multiple
from drmeter.samples import SampleEncoding, encoding_for
from drmeter.types import BINS, LOUD_FRACTION, AlbumReport, ChannelDR, DRReport

__all__ = [
    # Meter
    "DRMeter",
    "MeterState",
    "exact_dr_multiple",
    "dr_score_multiple",
    # Config
    "MeterConfig",
    "CD_STEREO",
    "HIRES_STEREO",
    # Frames
    "Layout",
    "FrameBatch",
    "InterleavedFrames",
    "PlanarFrames",
    "as_frames",
    # Samples
    "SampleEncoding",
    "encoding_for",
    # Results
    "ChannelDR",
    "DRReport",
    "AlbumReport",
    "BINS",
    "LOUD_FRACTION",
    # One-shot analysis
    "analyze_dr",
    "analyze_album",
    "measure",
    # Errors
    "DRMeterError",
    "ResourceExhaustedError",
    "InvalidChannelIndexError",
    "AlreadyFinalizedError",
    "NoPeakError",
    "FrameLayoutError",
    "UnsupportedEncodingError",
]
