"""
Configuration dataclasses for the DR meter.

An immutable ``MeterConfig`` decouples parameter validation from the meter
itself, so standard configurations can be defined once and reused across
tracks of an album.
"""

from dataclasses import dataclass

from drmeter.errors import ResourceExhaustedError
from drmeter.types import BINS

MAX_CHANNELS: int = 64
MIN_RATE: int = 16
MAX_RATE: int = 2_822_400  # DSD64 expressed as PCM
MIN_WINDOW_MS: int = 10
DEFAULT_WINDOW_MS: int = 3000

# Upper bound on histogram cells per histogram (channels * (BINS + 1)).
# Checked before any allocation takes place.
MAX_HISTOGRAM_CELLS: int = MAX_CHANNELS * (BINS + 1)

# Largest value the frame counter may hold (usize on 64-bit targets).
_MAX_FRAMES: int = 2**64 - 1


@dataclass(frozen=True)
class MeterConfig:
    """
    Configuration for a DR meter instance.

    Attributes:
        channels: Number of interleaved / planar channels, 1 to 64.
        sample_rate: Sample rate in Hz, 16 to 2 822 400.
        window_ms: Block length in milliseconds. Defaults to 3000 ms, the
            window mandated by the DR standard. Must be at least 10 ms.

    Example:
        >>> config = MeterConfig(channels=2, sample_rate=44100)
        >>> config.needed_frames
        132300
    """

    channels: int
    sample_rate: int
    window_ms: int = DEFAULT_WINDOW_MS

    def __post_init__(self) -> None:
        """Validate configuration parameters."""
        if not 1 <= self.channels <= MAX_CHANNELS:
            raise ResourceExhaustedError(
                f"channels must be in [1, {MAX_CHANNELS}], got {self.channels}"
            )
        if not MIN_RATE <= self.sample_rate <= MAX_RATE:
            raise ResourceExhaustedError(
                f"sample_rate must be in [{MIN_RATE}, {MAX_RATE}], got {self.sample_rate}"
            )
        if self.window_ms < MIN_WINDOW_MS:
            raise ResourceExhaustedError(
                f"window_ms must be at least {MIN_WINDOW_MS}, got {self.window_ms}"
            )
        if self.sample_rate * self.window_ms > _MAX_FRAMES:
            raise ResourceExhaustedError(
                f"window of {self.window_ms} ms at {self.sample_rate} Hz "
                "overflows the frame counter"
            )
        if self.needed_frames == 0:
            raise ResourceExhaustedError(
                f"window of {self.window_ms} ms at {self.sample_rate} Hz holds no frames"
            )
        if self.histogram_size > MAX_HISTOGRAM_CELLS:
            raise ResourceExhaustedError(
                f"histogram of {self.histogram_size} cells exceeds limit {MAX_HISTOGRAM_CELLS}"
            )

    @property
    def needed_frames(self) -> int:
        """Frames per block: floor(sample_rate * window_ms / 1000)."""
        return self.sample_rate * self.window_ms // 1000

    @property
    def histogram_size(self) -> int:
        """Number of counters in one flat per-meter histogram."""
        return self.channels * (BINS + 1)


# Pre-defined configurations for common use cases

CD_STEREO = MeterConfig(channels=2, sample_rate=44100)
"""Red Book audio: 2 channels at 44.1 kHz, 3 s window."""

HIRES_STEREO = MeterConfig(channels=2, sample_rate=96000)
"""High-resolution stereo: 2 channels at 96 kHz, 3 s window."""
