"""
unmarshal/paths.py
==================
Regroupement des tenseurs par segment de chemin.

Chaque PathEntry associe un TensorRecord à la partie de son nom qui reste à
consommer. Descendre d'un niveau (champ de struct ou index de séquence)
consomme le premier segment ; une entrée dont le chemin est vide est une
candidate feuille à la position courante.

    blk.0.attn_q.weight
    └── select_children(entries, "blk")  → path = ("0", "attn_q", "weight")
        └── select_children(..., "0")    → path = ("attn_q", "weight")
"""

from typing import Iterable, List, Optional, Sequence, Tuple

from sources.base import TensorRecord


class PathEntry:
    """Un tenseur et les segments de son nom restant à consommer."""

    __slots__ = ("record", "path", "parent", "name")

    def __init__(self, record: TensorRecord, path: Tuple[str, ...],
                 parent: Optional["PathEntry"] = None, name: str = ""):
        self.record = record
        self.path = path
        self.parent = parent
        self.name = name

    def child(self, name: str) -> "PathEntry":
        return PathEntry(self.record, self.path[1:], parent=self, name=name)

    def consumed(self) -> List[str]:
        """Segments déjà consommés, de la racine à cette entrée."""
        if self.parent is None:
            return []
        return self.parent.consumed() + [self.name]

    @property
    def is_leaf(self) -> bool:
        return len(self.path) == 0

    def __repr__(self) -> str:
        return f"PathEntry({self.record.name!r}, path={list(self.path)})"


def entries_from_records(records: Iterable[TensorRecord], separator: str = ".") -> List[PathEntry]:
    return [PathEntry(rec, rec.segments(separator)) for rec in records]


def select_children(entries: Sequence[PathEntry], name: str) -> List[PathEntry]:
    """Entrées dont le prochain segment vaut `name`, ce segment consommé."""
    children = []
    for entry in entries:
        if not entry.path or entry.path[0] != name:
            continue
        children.append(entry.child(name))
    return children


def next_keys(entries: Sequence[PathEntry]) -> List[str]:
    """Prochains segments distincts (triés) ; "" pour une entrée feuille."""
    return sorted({entry.path[0] if entry.path else "" for entry in entries})
