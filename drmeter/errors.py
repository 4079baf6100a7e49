"""
drmeter/errors.py — Error taxonomy for the DR meter.

Every error raised by the package derives from ``DRMeterError`` so callers
can catch the whole family in one clause:

    ResourceExhaustedError    construction parameters out of range, or the
                              histogram allocation would be oversized
    InvalidChannelIndexError  accessor called with channel >= channels
    AlreadyFinalizedError     ingest / finalize on a finalized meter
    NoPeakError               score queried for a channel with no peak data
    FrameLayoutError          malformed frame buffer handed to ingestion
    UnsupportedEncodingError  sample dtype the meter cannot consume

A channel-count mismatch between a frame batch and the block accumulator is
a programming error and is raised as ``AssertionError``, not as one of these.
"""

from __future__ import annotations


class DRMeterError(Exception):
    """Base class for all DR meter errors."""


class ResourceExhaustedError(DRMeterError):
    """Raised when a meter cannot be constructed with the requested parameters.

    Covers both out-of-range configuration (channels, sample rate, window)
    and histogram sizes that would overflow the allocation ceiling.
    """


class InvalidChannelIndexError(DRMeterError, IndexError):
    """Raised when a channel-indexed accessor receives an out-of-range index.

    Args:
        channel: The index that was requested.
        channels: The configured channel count.
    """

    def __init__(self, channel: int, channels: int) -> None:
        self.channel = channel
        self.channels = channels
        super().__init__(f"Invalid channel index {channel} (meter has {channels} channel(s))")


class AlreadyFinalizedError(DRMeterError):
    """Raised when a finalized meter is asked to ingest frames or finalize again."""

    def __init__(self, operation: str = "operation") -> None:
        self.operation = operation
        super().__init__(f"DR meter instance is finalized; {operation} is not allowed")


class NoPeakError(DRMeterError):
    """Raised when a score is requested for a channel with no populated peak bin.

    This happens before the first block completes, and for streams whose
    block peaks all fall into bin 0 (digital silence).
    """

    def __init__(self, channel: int) -> None:
        self.channel = channel
        super().__init__(f"No peak measured for channel {channel}; DR is not measurable")


class FrameLayoutError(DRMeterError, ValueError):
    """Raised when a frame buffer does not describe whole frames."""


class UnsupportedEncodingError(FrameLayoutError):
    """Raised for sample encodings the meter does not accept.

    8-bit and 64-bit integer PCM must be converted by the decoder before
    ingestion.

    Args:
        dtype: The offending numpy dtype (or its string form).
    """

    def __init__(self, dtype: object) -> None:
        self.dtype = dtype
        super().__init__(
            f"Unsupported sample encoding {dtype!s}; "
            "expected one of int16, int32, float32, float64"
        )
