"""
sources/memory.py
=================
Source de tenseurs en mémoire (tests, conversions à la volée).

Usage
-----
    from sources.memory import MemoryTensorSource

    src = MemoryTensorSource.from_arrays({"blk.0.attn_q.weight": w})
    records = src.tensors()
"""

import io
from typing import Dict, Iterable, List, Mapping, Optional, Sequence

import numpy as np

from .base import BaseTensorSource, TensorRecord


class MemoryTensorSource(BaseTensorSource):
    """Tenseurs dont les octets sont déjà en mémoire."""

    def __init__(self, verbose: bool = False):
        super().__init__(verbose=verbose)
        self._records: List[TensorRecord] = []

    def add(self, name: str, data: bytes, dimensions: Sequence[int],
            tensor_type: Optional[str] = "F32", size: Optional[int] = None) -> TensorRecord:
        """
        Ajoute un tenseur brut.

        `size` vaut len(data) par défaut ; une taille plus grande simule une
        source tronquée.
        """
        data = bytes(data)
        rec = TensorRecord(
            name=name,
            size=len(data) if size is None else int(size),
            dimensions=tuple(int(d) for d in dimensions),
            opener=lambda: io.BytesIO(data),
            tensor_type=tensor_type,
        )
        self._records.append(rec)
        return rec

    def add_array(self, name: str, array: np.ndarray) -> TensorRecord:
        """Stocke un tableau float32 selon la convention du conteneur (axes inversés)."""
        arr = np.asarray(array, dtype=np.float32)
        return self.add(name, arr.tobytes(), tuple(reversed(arr.shape)), tensor_type="F32")

    @classmethod
    def from_arrays(cls, arrays: Mapping[str, np.ndarray], verbose: bool = False) -> "MemoryTensorSource":
        src = cls(verbose=verbose)
        for name, arr in arrays.items():
            src.add_array(name, arr)
        return src

    @classmethod
    def from_records(cls, records: Iterable[TensorRecord], verbose: bool = False) -> "MemoryTensorSource":
        src = cls(verbose=verbose)
        src._records.extend(records)
        return src

    def tensors(self) -> List[TensorRecord]:
        return list(self._records)

    def as_dict(self) -> Dict[str, TensorRecord]:
        return {rec.name: rec for rec in self._records}
