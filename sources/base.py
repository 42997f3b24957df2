"""
sources/base.py
===============
Contrat commun des sources de tenseurs.

Une source énumère des TensorRecord : nom pointé, taille en octets,
dimensions (ordre minor-to-major, tel que stocké dans le conteneur), type
GGML optionnel, et un moyen d'ouvrir le flux d'octets du tenseur.

Le conteneur sous-jacent n'expose qu'un seul curseur partagé : chaque source
possède donc une ReaderGate (attribut `gate`) qui garantit qu'un seul flux
est ouvert à la fois. Les décodeurs passent par `gate.open_exclusive(record)`,
jamais directement par `record.open()`.
"""

from dataclasses import dataclass, field
from typing import BinaryIO, Callable, List, Optional, Tuple

from .gate import ReaderGate


@dataclass(frozen=True)
class TensorRecord:
    """Un tenseur nommé de la source. Immuable après énumération."""
    name: str
    size: int                       # Taille totale des données en octets
    dimensions: Tuple[int, ...]     # Minor-to-major (convention GGUF)
    opener: Callable[[], BinaryIO] = field(repr=False, compare=False)
    tensor_type: Optional[str] = None   # GGMLQuantizationType name (e.g. F32)

    def open(self) -> BinaryIO:
        """Ouvre le flux brut. Passer par ReaderGate.open_exclusive()."""
        return self.opener()

    def segments(self, separator: str = ".") -> Tuple[str, ...]:
        return tuple(self.name.split(separator))


class BaseTensorSource:
    """
    Interface de base que chaque source doit respecter.

    Toute sous-classe doit implémenter :
      - tensors() → List[TensorRecord]
    et peut surcharger close() pour libérer son handle partagé.
    """

    def __init__(self, verbose: bool = False):
        self.verbose = verbose
        self.gate = ReaderGate(verbose=verbose)

    def tensors(self) -> List[TensorRecord]:
        raise NotImplementedError

    def list_tensors(self) -> List[str]:
        """Retourne la liste de tous les noms de tenseurs disponibles."""
        return [rec.name for rec in self.tensors()]

    def close(self):
        pass

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc, tb):
        self.close()
        return False
