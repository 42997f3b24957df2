"""
unmarshal/schema.py
===================
Remplissage d'une structure Python à partir d'une DataView.

Types cibles gérés
------------------
  dataclass         → to_struct(), un champ par attribut
  List[T]           → to_slice(), éléments 0..len-1
  Tuple[T, ...]     → idem, converti en tuple
  Tuple[A, B, ...]  → éléments 0..n-1 typés individuellement
  Dict[str, T]      → to_struct(), une entrée par clé présente
  np.ndarray / Any  → feuille (ArrayFuture)

Le nom de segment d'un champ est son nom Python, ou la valeur de sa metadata
`gguf` (DecodeConfig.tag_name) :

    @dataclass
    class Attention:
        q: np.ndarray = field(metadata={"gguf": "attn_q"})

Un champ absent de la source garde sa valeur par défaut s'il en a une ; sinon
NoSuchField. La valeur "-" exclut le champ du décodage.

La passe se fait en trois temps : parcours (aucun octet lu, toutes les
feuilles collectées), résolution des feuilles (séquentielle ou dans un pool de
threads), assemblage de la destination.
"""

import dataclasses
import typing
from concurrent.futures import ThreadPoolExecutor
from typing import Any, Callable, List, Optional

import numpy as np

from .errors import DecodeError
from .leaf import ArrayFuture
from .views import DataView

SKIP_TAG = "-"


class _Leaf:
    __slots__ = ("future", "path", "value")

    def __init__(self, future: ArrayFuture, path: str):
        self.future = future
        self.path = path
        self.value = None


def _join(path: str, name: str) -> str:
    return f"{path}.{name}" if path else name


def _is_leaf_type(tp) -> bool:
    if tp is Any or tp is object or tp is np.ndarray:
        return True
    return typing.get_origin(tp) is np.ndarray


def _has_default(f: dataclasses.Field) -> bool:
    return f.default is not dataclasses.MISSING or f.default_factory is not dataclasses.MISSING


class Unmarshaler:
    """
    Paramètres
    ----------
    tag_name : str
        Clé de metadata donnant le nom de segment d'un champ.
    max_workers : int | None
        Si > 1, les feuilles sont résolues dans un ThreadPoolExecutor.
        La ReaderGate de la source sérialise toujours les lectures.
    verbose : bool
        Affiche le nombre de feuilles résolues.
    """

    def __init__(self, tag_name: str = "gguf", max_workers: Optional[int] = None,
                 verbose: bool = False):
        self.tag_name = tag_name
        self.max_workers = max_workers
        self.verbose = verbose

    def unmarshal(self, target, view: DataView):
        leaves: List[_Leaf] = []
        plan = self._walk(target, view, "", leaves)
        self._resolve(leaves)
        return self._build(plan)

    # ------------------------------------------------------------------
    # 1. Parcours
    # ------------------------------------------------------------------

    def _walk(self, tp, view: DataView, path: str, leaves: List[_Leaf]):
        try:
            return self._walk_type(tp, view, path, leaves)
        except DecodeError as e:
            if not e.destination:
                e.destination = path or "<root>"
            raise

    def _walk_type(self, tp, view: DataView, path: str, leaves: List[_Leaf]):
        if _is_leaf_type(tp):
            leaf = _Leaf(view.value_future(), path)
            leaves.append(leaf)
            return leaf

        if dataclasses.is_dataclass(tp) and isinstance(tp, type):
            return self._walk_dataclass(tp, view, path, leaves)

        origin = typing.get_origin(tp)
        args = typing.get_args(tp)

        if origin is typing.Union:
            # Optional[T] : la présence du champ est gérée par _walk_dataclass
            options = [a for a in args if a is not type(None)]
            if len(options) == 1:
                return self._walk_type(options[0], view, path, leaves)

        if origin in (list, tuple) or tp in (list, tuple):
            sl = view.to_slice()
            container = origin or tp
            if container is tuple and args and args[-1] is not Ellipsis:
                types = list(args)
            else:
                types = [args[0] if args else Any] * len(sl)
            nodes = [self._child(elem, sl.index, i, f"{path}[{i}]", leaves)
                     for i, elem in enumerate(types)]
            return ("seq", container, nodes)

        if origin is dict or tp is dict:
            value_tp = args[1] if len(args) == 2 else Any
            struct = view.to_struct()
            nodes = {key: self._child(value_tp, struct.field, key, _join(path, key), leaves)
                     for key in struct.keys()}
            return ("dict", dict, nodes)

        raise TypeError(f"unsupported destination type {tp!r} at {path or '<root>'!r}")

    def _child(self, tp, lookup: Callable[[Any], DataView], key, path: str, leaves: List[_Leaf]):
        try:
            view = lookup(key)
        except DecodeError as e:
            e.destination = path
            raise
        return self._walk(tp, view, path, leaves)

    def _walk_dataclass(self, cls, view: DataView, path: str, leaves: List[_Leaf]):
        hints = typing.get_type_hints(cls)
        struct = view.to_struct()
        available = set(struct.keys())
        nodes = {}
        for f in dataclasses.fields(cls):
            if not f.init:
                continue
            key = f.metadata.get(self.tag_name, f.name)
            if key == SKIP_TAG:
                continue
            if key not in available and _has_default(f):
                if self.verbose:
                    print(f"[Unmarshaler] [WARN] '{_join(path, f.name)}' absent, valeur par défaut")
                continue
            nodes[f.name] = self._child(hints.get(f.name, Any), struct.field, key,
                                        _join(path, f.name), leaves)
        return ("struct", cls, nodes)

    # ------------------------------------------------------------------
    # 2. Résolution des feuilles
    # ------------------------------------------------------------------

    def _resolve_one(self, leaf: _Leaf):
        try:
            leaf.value = leaf.future.value()
        except DecodeError as e:
            if not e.destination:
                e.destination = leaf.path or "<root>"
            raise
        return leaf

    def _resolve(self, leaves: List[_Leaf]):
        workers = self.max_workers or 1
        if self.verbose:
            print(f"[Unmarshaler] {len(leaves)} feuille(s) à résoudre (workers={workers})")
        if workers > 1 and len(leaves) > 1:
            with ThreadPoolExecutor(max_workers=workers) as pool:
                list(pool.map(self._resolve_one, leaves))
        else:
            for leaf in leaves:
                self._resolve_one(leaf)

    # ------------------------------------------------------------------
    # 3. Assemblage
    # ------------------------------------------------------------------

    def _build(self, node):
        if isinstance(node, _Leaf):
            return node.value
        kind, container, children = node
        if kind == "struct":
            return container(**{name: self._build(child) for name, child in children.items()})
        if kind == "dict":
            return {key: self._build(child) for key, child in children.items()}
        return container(self._build(child) for child in children)


def unmarshal(target, view: DataView, tag_name: str = "gguf",
              max_workers: Optional[int] = None, verbose: bool = False):
    """Raccourci : Unmarshaler(...).unmarshal(target, view)."""
    return Unmarshaler(tag_name, max_workers, verbose).unmarshal(target, view)
