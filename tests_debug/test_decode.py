"""
tests_debug/test_decode.py
==========================
Passe complète : source → decode() → dataclasses / listes / dicts.
"""

import sys
import threading
from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, List, Optional, Tuple

import numpy as np
import pytest

# Ajouter le dossier racine pour les imports
sys.path.insert(0, str(Path(__file__).parent.parent))

from sources.gate import ReaderGate
from sources.memory import MemoryTensorSource
from unmarshal import (
    AmbiguousLeaf,
    DecodeConfig,
    MalformedIndex,
    NoSuchField,
    NoSuchIndex,
    SizeMismatch,
    decode,
    describe_tree,
    root_view,
    unmarshal_on_device,
)


def _ok(name: str):
    print(f"  [OK] {name}")


# ---------------------------------------------------------------------------
# Structures cibles
# ---------------------------------------------------------------------------

@dataclass
class Weight:
    weight: np.ndarray


@dataclass
class Block:
    q: Weight = field(metadata={"gguf": "attn_q"})
    norm: Weight = field(metadata={"gguf": "attn_norm"})
    bias: Optional[np.ndarray] = None


@dataclass
class Model:
    token_embd: Weight
    blk: List[Block]
    note: str = field(default="local", metadata={"gguf": "-"})


def _model_source(n_layers: int = 3, verbose: bool = False) -> MemoryTensorSource:
    src = MemoryTensorSource(verbose=verbose)
    src.add_array("token_embd.weight", np.arange(8, dtype=np.float32).reshape(4, 2))
    for i in range(n_layers):
        src.add_array(f"blk.{i}.attn_q.weight", np.full((2, 2), i, dtype=np.float32))
        src.add_array(f"blk.{i}.attn_norm.weight", np.full(2, 10 + i, dtype=np.float32))
    return src


# ---------------------------------------------------------------------------
# Tests
# ---------------------------------------------------------------------------

def test_decode_dataclass_tree():
    model = decode(_model_source(), Model)
    assert isinstance(model, Model)
    assert model.token_embd.weight.shape == (4, 2)
    assert len(model.blk) == 3
    for i, block in enumerate(model.blk):
        np.testing.assert_array_equal(block.q.weight, np.full((2, 2), i))
        np.testing.assert_array_equal(block.norm.weight, np.full(2, 10 + i))
        assert block.bias is None
    assert model.note == "local"
    _ok("Model(token_embd, blk[3])")


def test_decode_optional_field_present():
    src = _model_source(1)
    src.add_array("blk.0.bias", np.ones(2, dtype=np.float32))
    model = decode(src, Model)
    np.testing.assert_array_equal(model.blk[0].bias, np.ones(2))
    _ok("champ avec défaut présent dans la source")


def test_decode_dict_and_tuple_targets():
    src = MemoryTensorSource.from_arrays({
        "norms.attn": np.ones(2, dtype=np.float32),
        "norms.ffn": np.zeros(2, dtype=np.float32),
        "pair.0": np.float32(1),
        "pair.1": np.float32(2),
    })

    @dataclass
    class Target:
        norms: Dict[str, np.ndarray]
        pair: Tuple[np.ndarray, np.ndarray]

    out = decode(src, Target)
    assert sorted(out.norms) == ["attn", "ffn"]
    assert isinstance(out.pair, tuple) and [float(v) for v in out.pair] == [1.0, 2.0]
    _ok("Dict[str, ...] et Tuple[...]")


def test_decode_list_root():
    src = MemoryTensorSource.from_arrays({str(i): np.full(3, i, dtype=np.float32) for i in range(4)})
    out = decode(src, List[np.ndarray])
    assert [float(a[0]) for a in out] == [0.0, 1.0, 2.0, 3.0]
    _ok("List[np.ndarray] à la racine")


def test_missing_field_reports_destination():
    src = _model_source(2)
    src.add_array("output.weight", np.zeros(2, dtype=np.float32))

    @dataclass
    class WithHead:
        lm_head: Weight

    with pytest.raises(NoSuchField) as exc:
        decode(src, WithHead)
    err = exc.value
    assert err.destination == "lm_head"
    assert err.available == ["blk", "output", "token_embd"]
    _ok(f"{err}")


def test_nested_error_destination():
    src = _model_source(2)
    src.add_array("blk.1.attn_q.weight", np.zeros(4, dtype=np.float32))
    with pytest.raises(AmbiguousLeaf) as exc:
        decode(src, Model)
    assert exc.value.destination == "blk[1].q.weight"
    _ok(f"{exc.value}")


def test_sparse_layers():
    src = _model_source(3)
    src = MemoryTensorSource.from_records([r for r in src.tensors() if not r.name.startswith("blk.1.")])
    with pytest.raises(NoSuchIndex):
        decode(src, Model)
    with pytest.raises(MalformedIndex):
        decode(src, Model, config=DecodeConfig(strict_indices=True))
    _ok("couches éparses")


def test_materialization_error_propagates():
    src = _model_source(1)
    src.add("blk.0.attn_norm.weight", b"\x00" * 6, [2])
    src = MemoryTensorSource.from_records(
        [r for r in src.tensors() if not (r.name == "blk.0.attn_norm.weight" and r.size == 8)])
    with pytest.raises(SizeMismatch) as exc:
        decode(src, Model)
    assert exc.value.destination == "blk[0].norm.weight"
    _ok("SizeMismatch remonté avec sa destination")


def test_device_hook_applied_to_every_leaf():
    placed = []

    def device(arr):
        placed.append(arr.shape)
        return arr.tolist()

    model = unmarshal_on_device(device, Model, _model_source(2))
    assert isinstance(model.token_embd.weight, list)
    assert len(placed) == 1 + 2 * 2
    with pytest.raises(TypeError):
        decode(_model_source(1), Model, device="cuda:0")
    _ok("hook de placement")


class _CountingGate(ReaderGate):
    """Gate instrumentée : nombre maximal de flux ouverts simultanément."""

    def __init__(self):
        super().__init__()
        self.opened = 0
        self.active = 0
        self.max_active = 0
        self._count = threading.Lock()

    def open_exclusive(self, record):
        handle = super().open_exclusive(record)
        with self._count:
            self.opened += 1
            self.active += 1
            self.max_active = max(self.max_active, self.active)
        return handle

    def _release(self, handle):
        with self._count:
            self.active -= 1
        super()._release(handle)


def test_thread_pool_uses_injected_gate():
    gate = _CountingGate()
    src = _model_source(16)
    model = decode(src, Model, config=DecodeConfig(max_workers=8), gate=gate)
    assert len(model.blk) == 16
    for i, block in enumerate(model.blk):
        assert float(block.q.weight[0, 0]) == i
    assert gate.opened == 1 + 16 * 2
    assert gate.max_active == 1
    assert not src.gate.busy and src.gate is not gate
    _ok(f"{gate.opened} lectures, max 1 flux ouvert")


def test_config_from_dict():
    cfg = DecodeConfig.from_dict({"separator": "/", "strict_indices": "true",
                                  "max_workers": "4", "unknown": 1, "verbose": False})
    assert cfg.separator == "/" and cfg.strict_indices is True and cfg.max_workers == 4
    assert DecodeConfig.from_dict({"max_workers": "many"}).max_workers is None

    src = MemoryTensorSource.from_arrays({"layers/0/w": np.ones(1, dtype=np.float32)})
    view = root_view(src, cfg)
    assert len(view.field("layers").to_slice()) == 1
    _ok("DecodeConfig.from_dict")


def test_describe_tree():
    text = describe_tree(root_view(_model_source(2)))
    assert "blk" in text and "[2 éléments]" in text and "attn_q" in text
    assert "F32 [2, 2]" in text
    _ok("describe_tree")


if __name__ == "__main__":
    sys.exit(pytest.main([__file__, "-v"]))
