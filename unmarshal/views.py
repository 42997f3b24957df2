"""
unmarshal/views.py
==================
Vues paresseuses sur un ensemble de PathEntry partageant une position.

Une même vue peut être lue comme :
  - struct   : field(name)       → sélection par nom de segment
  - séquence : to_slice().index(i) → sélection par segment numérique
  - feuille  : value_future()    → exactement un tenseur, chemin consommé

Chaque opération échoue indépendamment avec une erreur typée ; classify()
indique à l'appelant quelles formes sont valides pour l'ensemble courant.
Aucune opération de navigation ne lit d'octets.
"""

from enum import Enum
from typing import Any, Callable, Dict, FrozenSet, List, Optional, Sequence

import numpy as np

from .errors import AmbiguousLeaf, EmptyLeaf, MalformedIndex, NoSuchField, NoSuchIndex
from .leaf import ArrayFuture, LeafMaterializer
from .paths import PathEntry, next_keys, select_children


class Shape(Enum):
    STRUCT = "struct"
    SLICE = "slice"
    LEAF = "leaf"


def _is_index(segment: str) -> bool:
    return segment.isascii() and segment.isdigit()


class DataView:
    """
    Paramètres
    ----------
    entries : list[PathEntry]
        Tenseurs à cette position (références, pas de copie des octets).
    materializer : LeafMaterializer | None
        Requis seulement pour value_future() / materialize_leaf().
    device : callable | None
        Appliqué à chaque valeur matérialisée (placement sur un device).
    separator : str
        Utilisé pour afficher la position courante dans les erreurs.
    strict_indices : bool
        Valeur par défaut de to_slice(strict=...).
    """

    def __init__(self, entries: Sequence[PathEntry],
                 materializer: Optional[LeafMaterializer] = None,
                 device: Optional[Callable[[np.ndarray], Any]] = None,
                 separator: str = ".",
                 strict_indices: bool = False):
        self.entries = list(entries)
        self.materializer = materializer
        self.device = device
        self.separator = separator
        self.strict_indices = strict_indices

    def _derive(self, entries: Sequence[PathEntry]) -> "DataView":
        return DataView(entries, self.materializer, self.device, self.separator, self.strict_indices)

    def __len__(self) -> int:
        return len(self.entries)

    def __repr__(self) -> str:
        return f"DataView(where={self.where()!r}, entries={len(self.entries)})"

    def where(self) -> str:
        """Position courante (segments consommés), "" à la racine."""
        if not self.entries:
            return ""
        return self.separator.join(self.entries[0].consumed())

    def tensor_names(self) -> List[str]:
        return [entry.record.name for entry in self.entries]

    # ------------------------------------------------------------------
    # Formes
    # ------------------------------------------------------------------

    def classify(self) -> FrozenSet[Shape]:
        if not self.entries:
            return frozenset()
        shapes = set()
        if any(entry.path for entry in self.entries):
            shapes.add(Shape.STRUCT)
        if all(entry.path and _is_index(entry.path[0]) for entry in self.entries):
            shapes.add(Shape.SLICE)
        if len(self.entries) == 1 and self.entries[0].is_leaf:
            shapes.add(Shape.LEAF)
        return frozenset(shapes)

    def to_struct(self) -> "StructView":
        return StructView(self)

    def field(self, name: str) -> "DataView":
        return self.to_struct().field(name)

    def to_slice(self, strict: Optional[bool] = None) -> "SliceView":
        if strict is None:
            strict = self.strict_indices
        sets: Dict[int, List[PathEntry]] = {}
        for entry in self.entries:
            if not entry.path:
                raise MalformedIndex(f"element in slice has no value ({entry.record.name!r})")
            first = entry.path[0]
            if not _is_index(first):
                raise MalformedIndex(
                    f"cannot build slice for key {first!r} at {self.where()!r}: "
                    f"not a non-negative integer", segment=first)
            sets.setdefault(int(first), []).append(entry.child(first))
        if strict and set(sets) != set(range(len(sets))):
            raise MalformedIndex(
                f"indices at {self.where()!r} are not contiguous: {sorted(sets)}")
        return SliceView(self, sets)

    # ------------------------------------------------------------------
    # Feuille
    # ------------------------------------------------------------------

    def value_future(self) -> ArrayFuture:
        if not self.entries:
            raise EmptyLeaf(f"empty leaf at {self.where()!r}")
        if len(self.entries) > 1:
            raise AmbiguousLeaf(self.tensor_names())
        entry = self.entries[0]
        if not entry.is_leaf:
            raise EmptyLeaf(
                f"empty leaf at {self.where()!r}: {entry.record.name!r} continues with {list(entry.path)}")
        if self.materializer is None:
            raise RuntimeError("DataView has no materializer")
        return ArrayFuture(entry.record, self.materializer, self.device)

    def materialize_leaf(self) -> Any:
        return self.value_future().value()


class StructView:
    """Lecture d'une vue comme struct : sélection de champ par nom."""

    def __init__(self, view: DataView):
        self.view = view

    def keys(self) -> List[str]:
        return [k for k in next_keys(self.view.entries) if k]

    def field(self, name: str) -> DataView:
        children = select_children(self.view.entries, name)
        if not children:
            raise NoSuchField(name, self.keys(), where=self.view.where())
        return self.view._derive(children)


class SliceView:
    """Lecture d'une vue comme séquence : index 0-based."""

    def __init__(self, view: DataView, sets: Dict[int, List[PathEntry]]):
        self.view = view
        self.sets = sets

    def __len__(self) -> int:
        # Nombre d'indices distincts, pas max + 1
        return len(self.sets)

    def indices(self) -> List[int]:
        return sorted(self.sets)

    def index(self, i: int) -> DataView:
        children = self.sets.get(i)
        if children is None:
            raise NoSuchIndex(i, list(self.sets))
        return self.view._derive(children)
