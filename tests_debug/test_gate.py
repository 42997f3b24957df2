"""
tests_debug/test_gate.py
========================
Exclusion mutuelle du flux physique : un seul tenseur ouvert à la fois,
même quand plusieurs threads matérialisent des feuilles en parallèle.

Chaque flux simulé journalise open / read / close dans une trace partagée ;
la trace doit être une suite de blocs open(X) read(X)* close(X) sans
entrelacement.
"""

import io
import sys
import threading
import time
from concurrent.futures import ThreadPoolExecutor
from pathlib import Path

import numpy as np
import pytest

# Ajouter le dossier racine pour les imports
sys.path.insert(0, str(Path(__file__).parent.parent))

from sources.base import TensorRecord
from sources.gate import ReaderGate
from sources.memory import MemoryTensorSource
from unmarshal import LeafMaterializer


def _ok(name: str):
    print(f"  [OK] {name}")


class _Trace:
    def __init__(self):
        self.events = []
        self._lock = threading.Lock()

    def log(self, kind: str, name: str):
        with self._lock:
            self.events.append((kind, name))


class _TracingStream:
    """Flux lent (petits morceaux + yield) qui journalise chaque opération."""

    def __init__(self, name: str, data: bytes, trace: _Trace):
        self.name = name
        self._buf = io.BytesIO(data)
        self._trace = trace
        trace.log("open", name)

    def read(self, n: int = -1) -> bytes:
        time.sleep(0)
        chunk = self._buf.read(8 if n is None or n < 0 else min(n, 8))
        self._trace.log("read", self.name)
        return chunk

    def close(self):
        self._trace.log("close", self.name)


def _tracing_records(count: int, trace: _Trace):
    records, expected = [], {}
    for i in range(count):
        name = f"blk.{i}.w"
        arr = np.arange(16, dtype=np.float32) + i
        data = arr.tobytes()
        records.append(TensorRecord(
            name, len(data), (16,),
            (lambda n=name, d=data: _TracingStream(n, d, trace)), "F32"))
        expected[name] = arr
    return records, expected


def _assert_not_interleaved(events):
    current = None
    for kind, name in events:
        if kind == "open":
            assert current is None, f"'{name}' ouvert pendant que '{current}' est ouvert"
            current = name
        elif kind == "read":
            assert current == name, f"lecture de '{name}' pendant '{current}'"
        else:
            assert current == name, f"fermeture de '{name}' pendant '{current}'"
            current = None
    assert current is None


# ---------------------------------------------------------------------------
# Tests
# ---------------------------------------------------------------------------

def test_concurrent_materialization_never_interleaves():
    trace = _Trace()
    records, expected = _tracing_records(32, trace)
    materializer = LeafMaterializer(ReaderGate())

    with ThreadPoolExecutor(max_workers=8) as pool:
        results = list(pool.map(materializer.materialize, records))

    for rec, arr in zip(records, results):
        np.testing.assert_array_equal(arr, expected[rec.name])
    assert sum(1 for kind, _ in trace.events if kind == "open") == 32
    _assert_not_interleaved(trace.events)
    _ok(f"{len(trace.events)} événements, aucun entrelacement")


def test_open_failure_releases_gate():
    gate = ReaderGate()

    def broken():
        raise OSError("disk gone")

    rec = TensorRecord("w", 4, (1,), broken, "F32")
    with pytest.raises(OSError):
        gate.open_exclusive(rec)
    assert not gate.busy

    ok = MemoryTensorSource().add("ok", np.float32(1).tobytes(), [])
    with gate.open_exclusive(ok) as stream:
        assert stream.read() == np.float32(1).tobytes()
    _ok("échec d'ouverture : gate libérée")


def test_close_is_idempotent():
    gate = ReaderGate()
    rec = MemoryTensorSource().add("w", b"\x00" * 4, [1])
    handle = gate.open_exclusive(rec)
    assert gate.busy
    gate.close(handle)
    handle.close()
    assert not gate.busy
    with pytest.raises(ValueError):
        handle.read()
    _ok("close() idempotent")


def test_waiter_blocks_until_release():
    gate = ReaderGate()
    src = MemoryTensorSource()
    first = src.add("a", b"\x00" * 4, [1])
    second = src.add("b", b"\x00" * 4, [1])

    acquired = threading.Event()
    handle = gate.open_exclusive(first)

    def waiter():
        with gate.open_exclusive(second):
            acquired.set()

    t = threading.Thread(target=waiter)
    t.start()
    assert not acquired.wait(0.05)
    handle.close()
    t.join(timeout=5)
    assert acquired.is_set()
    assert not gate.busy
    _ok("attente jusqu'à la libération")


if __name__ == "__main__":
    sys.exit(pytest.main([__file__, "-v"]))
