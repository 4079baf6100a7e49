"""
drmeter/frames.py — Layout-agnostic views over chunks of multichannel audio.

Two memory layouts are supported:

    interleaved  one buffer, frame-major / channel-minor: L R L R ...
    planar       one buffer per channel:                  L L ... / R R ...

Both expose the same contract (``FrameBatch``): channel and frame counts,
per-channel sample access in frame order, and ``split_at`` which returns a
prefix/suffix pair of zero-copy views over the same storage. The block
accumulator only ever talks to this contract, so it never branches on the
layout.

Construction validates the buffer shape and the sample encoding; malformed
input raises ``FrameLayoutError`` (or ``UnsupportedEncodingError``).
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from collections.abc import Callable, Sequence
from enum import Enum
from typing import Any

import numpy as np

from drmeter.errors import FrameLayoutError, UnsupportedEncodingError
from drmeter.samples import SampleEncoding, encoding_for


class Layout(Enum):
    """Memory layout of a multichannel sample buffer."""

    INTERLEAVED = "interleaved"
    PLANAR = "planar"


def _as_samples(buffer: Any, encoding: SampleEncoding | None) -> tuple[np.ndarray, SampleEncoding]:
    """Wrap ``buffer`` as an ndarray of a supported encoding.

    Arrays are never cast: an explicit encoding must match their dtype.
    Plain sequences are converted to the requested encoding only when every
    value is representable in it.
    """
    if encoding is None:
        array = np.asarray(buffer)
        return array, encoding_for(array.dtype)

    if isinstance(buffer, np.ndarray):
        if encoding_for(buffer.dtype) is not encoding:
            raise UnsupportedEncodingError(buffer.dtype)
        return buffer, encoding

    values = np.asarray(buffer)
    if values.size == 0:
        return values.astype(encoding.dtype), encoding
    if encoding.is_integer:
        if values.dtype.kind not in "iu":
            raise UnsupportedEncodingError(values.dtype)
        info = np.iinfo(encoding.dtype)
        if values.min() < info.min or values.max() > info.max:
            raise FrameLayoutError(
                f"sample values outside the {encoding.value} range [{info.min}, {info.max}]"
            )
    elif values.dtype.kind not in "iuf":
        raise UnsupportedEncodingError(values.dtype)
    return values.astype(encoding.dtype), encoding


class FrameBatch(ABC):
    """Contract shared by interleaved and planar frame batches."""

    encoding: SampleEncoding

    @abstractmethod
    def channel_count(self) -> int:
        """Number of channels per frame."""

    @abstractmethod
    def frame_count(self) -> int:
        """Number of frames in the batch."""

    @abstractmethod
    def channel(self, channel: int) -> np.ndarray:
        """Samples of one channel, in frame order, as a (possibly strided) view."""

    @abstractmethod
    def split_at(self, n: int) -> tuple[FrameBatch, FrameBatch]:
        """Split into views over frames ``[0, n)`` and ``[n, frame_count())``."""

    def for_each_sample(self, channel: int, visitor: Callable[[Any], None]) -> None:
        """Invoke ``visitor`` once per sample of ``channel``, in frame order."""
        for sample in self.channel(channel):
            visitor(sample)

    def is_empty(self) -> bool:
        return self.frame_count() == 0

    def _check_split(self, n: int) -> None:
        if not 0 <= n <= self.frame_count():
            raise ValueError(f"split offset {n} outside [0, {self.frame_count()}]")

    def __len__(self) -> int:
        return self.frame_count()

    def __repr__(self) -> str:
        return (
            f"{type(self).__name__}(channels={self.channel_count()}, "
            f"frames={self.frame_count()}, encoding={self.encoding.value})"
        )


class InterleavedFrames(FrameBatch):
    """Frames stored in a single frame-major buffer.

    Args:
        buffer: 1-D sample buffer whose length is a multiple of ``channels``,
            or a 2-D ``(frames, channels)`` array.
        channels: Number of channels per frame.
        encoding: Sample encoding. Inferred from the buffer dtype if omitted.

    Raises:
        FrameLayoutError: If the buffer does not hold whole frames.
        UnsupportedEncodingError: If the dtype is not a supported encoding.
    """

    def __init__(
        self, buffer: Any, channels: int, encoding: SampleEncoding | None = None
    ) -> None:
        if channels < 1:
            raise FrameLayoutError(f"channels must be positive, got {channels}")
        samples, self.encoding = _as_samples(buffer, encoding)

        if samples.ndim == 1:
            if samples.size % channels != 0:
                raise FrameLayoutError(
                    f"interleaved buffer of {samples.size} samples is not a "
                    f"multiple of {channels} channels"
                )
            samples = samples.reshape(-1, channels)
        elif samples.ndim == 2:
            if samples.shape[1] != channels:
                raise FrameLayoutError(
                    f"interleaved array has {samples.shape[1]} columns, expected {channels}"
                )
        else:
            raise FrameLayoutError(f"interleaved buffer must be 1-D or 2-D, got {samples.ndim}-D")

        self._frames = samples

    @classmethod
    def _view(cls, frames: np.ndarray, encoding: SampleEncoding) -> InterleavedFrames:
        batch = cls.__new__(cls)
        batch._frames = frames
        batch.encoding = encoding
        return batch

    def channel_count(self) -> int:
        return self._frames.shape[1]

    def frame_count(self) -> int:
        return self._frames.shape[0]

    def channel(self, channel: int) -> np.ndarray:
        return self._frames[:, channel]

    def split_at(self, n: int) -> tuple[InterleavedFrames, InterleavedFrames]:
        self._check_split(n)
        return (
            self._view(self._frames[:n], self.encoding),
            self._view(self._frames[n:], self.encoding),
        )


class PlanarFrames(FrameBatch):
    """Frames stored as one buffer per channel.

    Args:
        planes: Sequence of equally long 1-D buffers, or a 2-D
            ``(channels, frames)`` array.
        encoding: Sample encoding. Inferred from the buffers if omitted; all
            planes must then share one dtype.

    Raises:
        FrameLayoutError: If there are no planes, a plane is not 1-D, the
            planes differ in length, or they mix dtypes.
        UnsupportedEncodingError: If the dtype is not a supported encoding.
    """

    def __init__(
        self, planes: Sequence[Any] | np.ndarray, encoding: SampleEncoding | None = None
    ) -> None:
        arrays: list[np.ndarray] = []
        for plane in planes:
            samples, plane_encoding = _as_samples(plane, encoding)
            if samples.ndim != 1:
                raise FrameLayoutError(f"planar buffers must be 1-D, got {samples.ndim}-D")
            if arrays and plane_encoding is not self.encoding:
                raise FrameLayoutError(
                    "planar buffers mix encodings: "
                    f"{self.encoding.value} and {plane_encoding.value}"
                )
            self.encoding = plane_encoding
            arrays.append(samples)

        if not arrays:
            raise FrameLayoutError("planar batch needs at least one channel buffer")
        lengths = {a.size for a in arrays}
        if len(lengths) != 1:
            raise FrameLayoutError(f"planar buffers differ in length: {sorted(lengths)}")

        self._planes = tuple(arrays)

    @classmethod
    def _view(cls, planes: tuple[np.ndarray, ...], encoding: SampleEncoding) -> PlanarFrames:
        batch = cls.__new__(cls)
        batch._planes = planes
        batch.encoding = encoding
        return batch

    def channel_count(self) -> int:
        return len(self._planes)

    def frame_count(self) -> int:
        return self._planes[0].size

    def channel(self, channel: int) -> np.ndarray:
        return self._planes[channel]

    def split_at(self, n: int) -> tuple[PlanarFrames, PlanarFrames]:
        self._check_split(n)
        return (
            self._view(tuple(p[:n] for p in self._planes), self.encoding),
            self._view(tuple(p[n:] for p in self._planes), self.encoding),
        )


def as_frames(
    frames: Any,
    channels: int,
    layout: Layout | str = Layout.INTERLEAVED,
    encoding: SampleEncoding | str | None = None,
) -> FrameBatch:
    """Build a frame batch from raw buffers.

    Existing ``FrameBatch`` instances are returned unchanged.

    Args:
        frames: Interleaved buffer, or sequence of planar buffers.
        channels: Channel count used to interpret an interleaved buffer.
        layout: ``Layout`` member or its string value.
        encoding: ``SampleEncoding`` member or its string value
            (``"int16"``, ``"int32"``, ``"float32"``, ``"float64"``).
            Inferred from the buffer dtype if omitted.
    """
    if isinstance(frames, FrameBatch):
        return frames
    layout = Layout(layout)
    if isinstance(encoding, str):
        encoding = encoding_for(encoding)
    if layout is Layout.INTERLEAVED:
        return InterleavedFrames(frames, channels, encoding)
    return PlanarFrames(frames, encoding)
