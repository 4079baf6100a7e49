"""
drmeter/samples.py — Sample encodings and their conversion to float64.

Four PCM encodings are accepted: 16-bit and 32-bit signed integer, 32-bit
and 64-bit float. Each carries the amplitude that maps to full scale so
peaks can be normalized into [0, 1]. Integer encodings use the magnitude of
their most negative value (2^15, 2^31) as full scale, so the most negative
sample normalizes to exactly -1.0.

8-bit and 64-bit integer PCM are rejected; the decoder must convert them
before handing frames over.

All helpers are vectorized: they accept numpy arrays (or scalars) of the
encoding's dtype and return float64 arrays.
"""

from __future__ import annotations

from enum import Enum

import numpy as np

from drmeter.errors import UnsupportedEncodingError


class SampleEncoding(Enum):
    """Supported PCM sample encodings."""

    I16 = "int16"
    I32 = "int32"
    F32 = "float32"
    F64 = "float64"

    @property
    def dtype(self) -> np.dtype:
        """numpy dtype holding samples of this encoding."""
        return np.dtype(self.value)

    @property
    def max_amplitude(self) -> float:
        """Full-scale amplitude used to normalize raw sample values."""
        return _MAX_AMPLITUDE[self]

    @property
    def is_integer(self) -> bool:
        return self in (SampleEncoding.I16, SampleEncoding.I32)


_MAX_AMPLITUDE: dict[SampleEncoding, float] = {
    SampleEncoding.I16: 32768.0,
    SampleEncoding.I32: 2147483648.0,
    SampleEncoding.F32: 1.0,
    SampleEncoding.F64: 1.0,
}

_BY_DTYPE: dict[np.dtype, SampleEncoding] = {enc.dtype: enc for enc in SampleEncoding}


def encoding_for(dtype: np.dtype | type | str) -> SampleEncoding:
    """Map a numpy dtype to its sample encoding.

    Byte order is ignored: big-endian int16 is still I16.

    Raises:
        UnsupportedEncodingError: For int8/uint8, int64/uint64 and every
            other dtype outside the four supported encodings.
    """
    try:
        dt = np.dtype(dtype)
    except TypeError as exc:
        raise UnsupportedEncodingError(dtype) from exc
    encoding = _BY_DTYPE.get(dt.newbyteorder("="))
    if encoding is None:
        raise UnsupportedEncodingError(dt)
    return encoding


def normalize(raw: np.ndarray, encoding: SampleEncoding) -> np.ndarray:
    """Normalize raw samples into [-1, 1] by the encoding's full-scale amplitude."""
    return np.asarray(raw, dtype=np.float64) / encoding.max_amplitude


def energy_term(raw: np.ndarray, encoding: SampleEncoding) -> np.ndarray:
    """Per-sample energy contribution: the float64 sample value squared."""
    values = normalize(raw, encoding)
    return values * values


def max_peak(raw: np.ndarray, encoding: SampleEncoding) -> float:
    """Largest normalized absolute sample value; 0.0 for an empty buffer."""
    if raw.size == 0:
        return 0.0
    return float(np.max(np.abs(np.asarray(raw, dtype=np.float64)))) / encoding.max_amplitude
