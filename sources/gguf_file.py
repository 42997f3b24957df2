"""
sources/gguf_file.py
====================
Source de tenseurs lue directement dans un fichier GGUF.

La table des tenseurs est lue avec la bibliothèque `gguf` (GGUFReader).
Les octets, eux, sont servis par un unique handle de fichier partagé
(seek + lecture bornée) : c'est ce curseur unique que protège la ReaderGate
de la source.

Usage
-----
    from sources.gguf_file import GGUFFileSource

    with GGUFFileSource("models/tinyllama.gguf") as src:
        for rec in src.tensors():
            print(rec.name, rec.dimensions, rec.tensor_type)
"""

from pathlib import Path
from typing import List, Optional

import gguf

from .base import BaseTensorSource, TensorRecord


class _BoundedReader:
    """Lecture de `size` octets à partir de `offset` dans un fichier partagé."""

    def __init__(self, f, offset: int, size: int):
        self._f = f
        self._f.seek(offset)
        self._remaining = size

    def read(self, n: int = -1) -> bytes:
        if self._remaining <= 0:
            return b""
        if n is None or n < 0 or n > self._remaining:
            n = self._remaining
        chunk = self._f.read(n)
        self._remaining -= len(chunk)
        return chunk

    def close(self):
        # Le handle appartient à la source
        pass


class GGUFFileSource(BaseTensorSource):
    """
    Paramètres
    ----------
    gguf_path : str | Path
        Fichier .gguf à lire.
    verbose : bool
        Affiche des informations de débogage lors de l'ouverture.
    """

    def __init__(self, gguf_path, verbose: bool = False):
        super().__init__(verbose=verbose)
        self.gguf_path = Path(gguf_path)
        if not self.gguf_path.exists():
            raise FileNotFoundError(f"GGUF introuvable : {self.gguf_path}")

        reader = gguf.GGUFReader(self.gguf_path)
        self._file = None
        self._records: List[TensorRecord] = []
        for tensor in reader.tensors:
            self._records.append(TensorRecord(
                name=tensor.name,
                size=int(tensor.n_bytes),
                # GGUF stocke les dimensions en ordre minor-to-major
                dimensions=tuple(int(d) for d in tensor.shape),
                opener=self._opener(int(tensor.data_offset), int(tensor.n_bytes)),
                tensor_type=tensor.tensor_type.name,
            ))

        if self.verbose:
            print(f"[GGUFFileSource] {len(self._records)} tenseurs indexés depuis {self.gguf_path}")

    def _opener(self, offset: int, size: int):
        def open_stream():
            if self._file is None:
                self._file = open(self.gguf_path, "rb")
            return _BoundedReader(self._file, offset, size)
        return open_stream

    def tensors(self) -> List[TensorRecord]:
        return list(self._records)

    def tensor_info(self, tensor_name: str) -> Optional[TensorRecord]:
        """Retourne l'enregistrement d'un tenseur, ou None."""
        for rec in self._records:
            if rec.name == tensor_name:
                return rec
        return None

    def close(self):
        if self._file is not None:
            self._file.close()
            self._file = None
