"""
F32_GGUF.py — F32 decoding for GGUF tensors.

GGUF stores dimensions minor-to-major (fastest-varying axis first). numpy
expects the opposite, so the axis list is reversed before reshaping:

    dimensions [3, 2]  →  array shape (2, 3)

The byte size is checked against the element count before the buffer is
reinterpreted, so a truncated or mislabelled tensor never yields a partial
array.
"""

from typing import Sequence, Tuple

import numpy as np

from unmarshal.errors import SizeMismatch

FLOAT32_BYTE_SIZE = 4


def axes_from_dimensions(dimensions: Sequence[int]) -> Tuple[Tuple[int, ...], int]:
    """Return (major-to-minor axes, element count) for GGUF dimensions."""
    axes = tuple(int(d) for d in reversed(dimensions))
    length = 1
    for dim in axes:
        length *= dim
    return axes, length


def dequantize_f32(data: bytes, dimensions: Sequence[int]) -> np.ndarray:
    """
    Load F32 tensor bytes as float32.

    Args:
        data       : Raw tensor bytes, exactly as stored.
        dimensions : GGUF dimensions (minor-to-major).

    Returns:
        np.ndarray float32 with shape reversed(dimensions). The array owns its
        memory (the read buffer can be released).

    Raises:
        SizeMismatch if len(data) != product(dimensions) * 4.
    """
    axes, length = axes_from_dimensions(dimensions)
    if len(data) != length * FLOAT32_BYTE_SIZE:
        raise SizeMismatch(axes, length, len(data), FLOAT32_BYTE_SIZE)
    if length == 0:
        return np.zeros(axes, dtype=np.float32)
    return np.frombuffer(data, dtype=np.float32, count=length).reshape(axes).copy()
