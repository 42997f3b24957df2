"""
sources/local.py
================
Source LOCALE : tenseurs découpés en fragments .dat + manifest.json.

Les fragments sont lus directement depuis le système de fichiers local,
dans le dossier contenant le manifest.json et les fichiers .dat. Chaque entrée
de manifest["fragments"] décrit un shard :

    {
      "fragment_id": "tinyllama_L0_attn_q_S0_ab12cd34",
      "tensor_name": "blk.0.attn_q.weight",
      "shard_index": 0,
      "total_shards": 2,
      "shape": [2048, 2048],       # minor-to-major, comme dans le GGUF
      "size_bytes": 10485760,
      "tensor_type": "F32"
    }

Le flux d'un tenseur enchaîne ses shards dans l'ordre de shard_index.

Usage
-----
    from sources.local import LocalFragmentSource

    src = LocalFragmentSource("models/tinyllama_f32_fragments")
    records = src.tensors()
"""

import json
from pathlib import Path
from typing import Dict, List, Optional

from .base import BaseTensorSource, TensorRecord


class _ShardReader:
    """Lit une suite de fichiers .dat comme un seul flux."""

    def __init__(self, paths: List[Path]):
        self._paths = list(paths)
        self._current = None

    def read(self, n: int = -1) -> bytes:
        out = bytearray()
        while n < 0 or len(out) < n:
            if self._current is None:
                if not self._paths:
                    break
                self._current = open(self._paths.pop(0), "rb")
            chunk = self._current.read(-1 if n < 0 else n - len(out))
            if not chunk:
                self._current.close()
                self._current = None
                continue
            out += chunk
        return bytes(out)

    def close(self):
        if self._current is not None:
            self._current.close()
            self._current = None


class LocalFragmentSource(BaseTensorSource):
    """
    Charge les tenseurs depuis un dossier de fragments local.

    Paramètres
    ----------
    fragments_dir : str | Path
        Dossier contenant manifest.json et les fichiers .dat.
    verbose : bool
        Affiche des informations de débogage lors du chargement.
    """

    def __init__(self, fragments_dir, verbose: bool = False):
        super().__init__(verbose=verbose)
        self.fragments_dir = Path(fragments_dir)

        manifest_path = self.fragments_dir / "manifest.json"
        if not manifest_path.exists():
            raise FileNotFoundError(f"Manifest introuvable : {manifest_path}")

        with open(manifest_path, "r") as f:
            self.manifest = json.load(f)

        # Index : tensor_name → liste de fragments triés par shard_index
        self.fragments_map: Dict[str, List[dict]] = {}
        for frag in self.manifest.get("fragments", []):
            tname = frag.get("tensor_name")
            if not tname:
                raise ValueError(f"Fragment {frag.get('fragment_id')} sans tensor_name")
            self.fragments_map.setdefault(tname, []).append(frag)

        for tname, frags in self.fragments_map.items():
            frags.sort(key=lambda x: x["shard_index"])
            total_shards = frags[0].get("total_shards", len(frags))
            if len(frags) != total_shards:
                raise ValueError(f"Tenseur {tname} incomplet ({len(frags)}/{total_shards} shards)")

        self._records = [self._build_record(tname, frags) for tname, frags in self.fragments_map.items()]

        if self.verbose:
            print(f"[LocalFragmentSource] {len(self._records)} tenseurs indexés depuis {self.fragments_dir}")

    def _build_record(self, tname: str, frags: List[dict]) -> TensorRecord:
        frag0 = frags[0]
        paths = [self.fragments_dir / f"{frag['fragment_id']}.dat" for frag in frags]
        return TensorRecord(
            name=tname,
            size=sum(int(frag["size_bytes"]) for frag in frags),
            dimensions=tuple(int(d) for d in frag0["shape"]),
            opener=lambda: self._open_shards(paths),
            tensor_type=frag0.get("tensor_type") or None,
        )

    def _open_shards(self, paths: List[Path]) -> _ShardReader:
        for path in paths:
            if not path.exists():
                raise FileNotFoundError(f"Fragment manquant : {path}")
        if self.verbose:
            print(f"[LocalFragmentSource] [FILE] {len(paths)} fragment(s)")
        return _ShardReader(paths)

    def tensors(self) -> List[TensorRecord]:
        return list(self._records)

    def tensor_info(self, tensor_name: str) -> Optional[dict]:
        """Retourne les métadonnées du premier fragment d'un tenseur, ou None."""
        frags = self.fragments_map.get(tensor_name)
        return frags[0] if frags else None
