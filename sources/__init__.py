"""
sources/
========
Sources de tenseurs pour le décodeur structurel.

Modules disponibles :
  - base      : TensorRecord et interface commune BaseTensorSource
  - gate      : ReaderGate, un seul flux d'octets ouvert à la fois
  - gguf_file : lecture directe d'un fichier .gguf (bibliothèque gguf)
  - local     : dossier de fragments .dat + manifest.json
  - memory    : tenseurs en mémoire (tests)

Interface commune (BaseTensorSource)
------------------------------------
    tensors() -> List[TensorRecord]
        Enumère les tenseurs : nom pointé, taille, dimensions, type, flux.

    gate : ReaderGate
        Verrou à utiliser pour toute lecture d'octets.
"""

from .base import BaseTensorSource, TensorRecord
from .gate import GatedStream, ReaderGate
from .gguf_file import GGUFFileSource
from .local import LocalFragmentSource
from .memory import MemoryTensorSource

__all__ = [
    "BaseTensorSource",
    "TensorRecord",
    "GatedStream",
    "ReaderGate",
    "GGUFFileSource",
    "LocalFragmentSource",
    "MemoryTensorSource",
]
