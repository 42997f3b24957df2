"""
unmarshal/errors.py
===================
Erreurs levées pendant le décodage d'un conteneur de tenseurs.

Toutes héritent de DecodeError. Chaque classe hérite aussi de l'exception
standard la plus proche (KeyError, IndexError, ValueError...) pour que le code
appelant puisse les attraper sans connaître ce module.

Aucune de ces erreurs n'est récupérée en interne : elles signalent soit un
désaccord entre la structure cible et les noms de tenseurs disponibles, soit
une source tronquée ou corrompue.
"""

from typing import Iterable, Optional, Sequence


class DecodeError(Exception):
    """
    Base de toutes les erreurs de décodage.

    `destination` est renseigné par le moteur de schéma : chemin du champ
    cible en cours de remplissage (ex. "layers[1].attn_q").
    """

    destination = ""

    def describe(self) -> str:
        return Exception.__str__(self)

    def __str__(self) -> str:
        msg = self.describe()
        return f"{self.destination}: {msg}" if self.destination else msg


# ---------------------------------------------------------------------------
# Navigation
# ---------------------------------------------------------------------------

class NoSuchField(DecodeError, KeyError):
    """Aucun tenseur sous ce nom de champ à la position courante."""

    def __init__(self, name: str, available: Iterable[str], where: str = ""):
        self.name = name
        self.available = sorted(available)
        self.where = where
        super().__init__(name)

    def describe(self) -> str:
        loc = f" at {self.where!r}" if self.where else ""
        return f"no field named {self.name!r}{loc} (in {self.available})"


class MalformedIndex(DecodeError, ValueError):
    """Un segment ne peut pas servir d'index de séquence."""

    def __init__(self, message: str, segment: Optional[str] = None):
        self.segment = segment
        super().__init__(message)


class NoSuchIndex(DecodeError, IndexError):
    """Index absent d'une séquence."""

    def __init__(self, index: int, available: Sequence[int]):
        self.index = index
        self.available = sorted(available)
        super().__init__(f"no element at index {index} (in {self.available})")


# ---------------------------------------------------------------------------
# Feuilles
# ---------------------------------------------------------------------------

class EmptyLeaf(DecodeError):
    """Aucune valeur à cette position."""


class AmbiguousLeaf(DecodeError):
    """Plusieurs tenseurs correspondent à la même feuille."""

    def __init__(self, names: Sequence[str]):
        self.names = list(names)
        super().__init__(f"not a leaf: {len(self.names)} tensors match ({self.names})")


# ---------------------------------------------------------------------------
# Matérialisation
# ---------------------------------------------------------------------------

class ShortRead(DecodeError, EOFError):
    """Le flux s'est terminé avant la taille déclarée du tenseur."""

    def __init__(self, name: str, got: int, want: int):
        self.name = name
        self.got = got
        self.want = want
        super().__init__(f"not enough bytes read for {name!r}: got {got} but want {want}")


class SizeMismatch(DecodeError, ValueError):
    """Les dimensions déclarées ne correspondent pas à la taille en octets."""

    def __init__(self, axes: Sequence[int], length: int, size: int, width: int):
        self.axes = list(axes)
        self.length = length
        self.size = size
        self.width = width
        self.actual = size // width
        super().__init__(
            f"mismatch between the axis ({self.axes}={length} elements) and the size "
            f"of the buffer ({size}/{width}={self.actual} elements)"
        )


class UnsupportedTensorType(DecodeError, NotImplementedError):
    """Type de tenseur non géré (seul F32 est décodé)."""

    def __init__(self, name: str, tensor_type: str):
        self.name = name
        self.tensor_type = tensor_type
        super().__init__(f"unsupported tensor type {tensor_type!r} for {name!r}: only F32 is decoded")
