"""
unmarshal/driver.py
===================
Point d'entrée : source de tenseurs → structure Python.

Usage
-----
    from dataclasses import dataclass, field
    from typing import List
    import numpy as np

    from sources.gguf_file import GGUFFileSource
    from unmarshal import decode

    @dataclass
    class Weight:
        weight: np.ndarray

    @dataclass
    class Block:
        q: Weight = field(metadata={"gguf": "attn_q"})
        norm: Weight = field(metadata={"gguf": "attn_norm"})

    @dataclass
    class Model:
        token_embd: Weight
        blk: List[Block]

    with GGUFFileSource("models/tiny.gguf") as src:
        model = decode(src, Model)

Les erreurs de la source, de la navigation et de la matérialisation sont
propagées telles quelles ; rien n'est retenté.
"""

from typing import Any, Callable, Optional

import numpy as np

from sources.base import BaseTensorSource
from sources.gate import ReaderGate

from .config import DecodeConfig
from .leaf import LeafMaterializer
from .paths import entries_from_records
from .schema import Unmarshaler
from .views import DataView, Shape


def send_to_device(device: Optional[Callable[[np.ndarray], Any]]) -> Optional[Callable[[np.ndarray], Any]]:
    """Hook appliqué à chaque tableau décodé ; None = tableaux numpy sur l'hôte."""
    if device is None or callable(device):
        return device
    raise TypeError(f"device must be callable, got {type(device).__name__}")


def root_view(source: BaseTensorSource, config: Optional[DecodeConfig] = None,
              gate: Optional[ReaderGate] = None,
              device: Optional[Callable[[np.ndarray], Any]] = None) -> DataView:
    """Vue racine sur tous les tenseurs de `source`, sans parcours de schéma."""
    config = config or DecodeConfig()
    records = source.tensors()
    materializer = LeafMaterializer(gate or source.gate, verbose=config.verbose)
    if config.verbose:
        print(f"[decode] {len(records)} tenseurs, séparateur {config.separator!r}")
    return DataView(
        entries_from_records(records, config.separator),
        materializer=materializer,
        device=send_to_device(device),
        separator=config.separator,
        strict_indices=config.strict_indices,
    )


def decode(source: BaseTensorSource, target, config: Optional[DecodeConfig] = None,
           gate: Optional[ReaderGate] = None,
           device: Optional[Callable[[np.ndarray], Any]] = None):
    """
    Décode `source` dans le type `target` (dataclass, List[...], Dict[str, ...]
    ou np.ndarray).

    Paramètres
    ----------
    source : BaseTensorSource
        Fournit les TensorRecord et sa ReaderGate.
    target : type
        Type de destination.
    config : DecodeConfig | None
        Séparateur, nom de tag, indices stricts, nombre de workers.
    gate : ReaderGate | None
        Remplace la gate de la source (tests, gate partagée entre sources
        adossées au même fichier).
    device : callable | None
        Placement des tableaux décodés (ex : jax.device_put).
    """
    config = config or DecodeConfig()
    view = root_view(source, config, gate=gate, device=device)
    engine = Unmarshaler(config.tag_name, config.max_workers, verbose=config.verbose)
    return engine.unmarshal(target, view)


def unmarshal_on_device(device: Callable[[np.ndarray], Any], target, source: BaseTensorSource,
                        config: Optional[DecodeConfig] = None):
    """Comme decode(), avec un placement obligatoire des valeurs."""
    return decode(source, target, config=config, device=send_to_device(device))


def describe_tree(view: DataView, indent: int = 0, max_items: int = 8) -> str:
    """Arborescence lisible d'une vue (noms, formes, types des feuilles)."""
    pad = "  " * indent
    shapes = view.classify()
    if Shape.LEAF in shapes:
        rec = view.entries[0].record
        return f"{pad}= {rec.tensor_type or '?'} {list(reversed(rec.dimensions))}\n"
    lines = []
    if Shape.SLICE in shapes:
        sl = view.to_slice()
        indices = sl.indices()
        lines.append(f"{pad}[{len(sl)} éléments]\n")
        lines.append(describe_tree(sl.index(indices[0]), indent + 1, max_items))
        return "".join(lines)
    struct = view.to_struct()
    keys = struct.keys()
    for key in keys[:max_items]:
        lines.append(f"{pad}{key}\n")
        lines.append(describe_tree(struct.field(key), indent + 1, max_items))
    if len(keys) > max_items:
        lines.append(f"{pad}... ({len(keys) - max_items} de plus)\n")
    return "".join(lines)


# ---------------------------------------------------------------------------
# CLI de test rapide
# ---------------------------------------------------------------------------

if __name__ == "__main__":
    import argparse

    from sources.gguf_file import GGUFFileSource

    parser = argparse.ArgumentParser(description="Arborescence des tenseurs d'un fichier GGUF")
    parser.add_argument("gguf_file", help="Fichier .gguf")
    parser.add_argument("--tensor", default=None, help="Chemin pointé d'une feuille à matérialiser")
    parser.add_argument("--max-items", type=int, default=8)
    parser.add_argument("--verbose", action="store_true")
    args = parser.parse_args()

    cfg = DecodeConfig(verbose=args.verbose)
    with GGUFFileSource(args.gguf_file, verbose=args.verbose) as src:
        root = root_view(src, cfg)
        print(describe_tree(root, max_items=args.max_items), end="")

        if args.tensor:
            node = root
            for segment in args.tensor.split(cfg.separator):
                node = node.field(segment)
            t = node.materialize_leaf()
            print(f"Tenseur '{args.tensor}' : shape={t.shape} dtype={t.dtype}")
            print(f"  Min={t.min():.4f}  Max={t.max():.4f}  Mean={t.mean():.4f}  Std={t.std():.4f}")
