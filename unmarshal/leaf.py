"""
unmarshal/leaf.py
=================
Matérialisation d'une feuille : un TensorRecord → np.ndarray float32.

Étapes
------
  1. Ouverture exclusive du flux via la ReaderGate, lecture de record.size
     octets (ShortRead si le flux s'épuise avant).
  2. Fermeture du flux sur tous les chemins de sortie (bloc with).
  3. Décodage F32 : dimensions inversées (minor-to-major → major-to-minor),
     taille validée avant réinterprétation (SizeMismatch).
"""

from typing import Any, Callable, Optional

import numpy as np

import dequantize as dq
from sources.base import TensorRecord
from sources.gate import ReaderGate

from .errors import ShortRead

READ_CHUNK = 10 * 1024 * 1024  # 10 Mo par lecture


def read_exactly(stream, size: int, name: str) -> bytes:
    """Lit exactement `size` octets ; ShortRead sinon."""
    buf = bytearray()
    while len(buf) < size:
        chunk = stream.read(min(READ_CHUNK, size - len(buf)))
        if not chunk:
            break
        buf += chunk
    if len(buf) != size:
        raise ShortRead(name, len(buf), size)
    return bytes(buf)


class LeafMaterializer:
    """
    Paramètres
    ----------
    gate : ReaderGate
        Verrou du flux physique de la source. Injecté : les tests peuvent
        fournir une gate instrumentée.
    verbose : bool
        Affiche chaque tenseur matérialisé.
    """

    def __init__(self, gate: ReaderGate, verbose: bool = False):
        self.gate = gate
        self.verbose = verbose

    def read(self, record: TensorRecord) -> bytes:
        with self.gate.open_exclusive(record) as stream:
            return read_exactly(stream, record.size, record.name)

    def materialize(self, record: TensorRecord) -> np.ndarray:
        data = self.read(record)
        arr = dq.dequantize(data, record.tensor_type, record.dimensions, name=record.name)
        if self.verbose:
            print(f"[LeafMaterializer] '{record.name}' shape={arr.shape} dtype={arr.dtype}")
        return arr

    def __call__(self, record: TensorRecord) -> np.ndarray:
        return self.materialize(record)


class ArrayFuture:
    """Valeur paresseuse d'une feuille : aucun octet lu avant value()."""

    def __init__(self, record: TensorRecord, materializer: LeafMaterializer,
                 device: Optional[Callable[[np.ndarray], Any]] = None):
        self.record = record
        self.materializer = materializer
        self.device = device

    @property
    def tensor_type(self) -> Optional[str]:
        return self.record.tensor_type

    def value(self) -> Any:
        arr = self.materializer.materialize(self.record)
        if self.device is not None:
            return self.device(arr)
        return arr

    def __repr__(self) -> str:
        return f"ArrayFuture({self.record.name!r}, type={self.record.tensor_type})"
