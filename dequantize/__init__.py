"""
dequantize/ — GGUF tensor decoding package.

Only 32-bit float tensors are decoded:
    F32_GGUF.py    →  F32

Usage:
    from dequantize import dequantize
    weights = dequantize(raw_bytes, tensor_type, dimensions)

Other GGML types (F16, Q8_0, Q4_K, ...) are rejected with
UnsupportedTensorType so callers can branch on the record's tensor_type.
"""

from typing import Optional, Sequence

import numpy as np

from dequantize.F32_GGUF import FLOAT32_BYTE_SIZE, axes_from_dimensions, dequantize_f32
from unmarshal.errors import UnsupportedTensorType


def dequantize(data: bytes, tensor_type: Optional[str], dimensions: Sequence[int],
               name: str = "<tensor>") -> np.ndarray:
    """
    Dispatch raw tensor bytes to the correct decoder.

    Args:
        data        : Raw bytes of one tensor.
        tensor_type : GGML type name, e.g. "F32". None means untyped, read as F32.
        dimensions  : GGUF dimensions (minor-to-major).
        name        : Tensor name, for error messages.

    Returns:
        np.ndarray float32.

    Raises:
        UnsupportedTensorType for any type other than F32.
    """
    if tensor_type is None or tensor_type == "F32":
        return dequantize_f32(data, dimensions)

    raise UnsupportedTensorType(name, tensor_type)


__all__ = ["dequantize", "dequantize_f32", "axes_from_dimensions", "FLOAT32_BYTE_SIZE"]
