"""
sources/gate.py
===============
Accès exclusif au flux physique d'une source.

Le conteneur (fichier GGUF ouvert une seule fois, par exemple) n'a qu'un
curseur : si deux tenseurs étaient lus en même temps, leurs octets seraient
entrelacés. La ReaderGate sérialise donc les lectures :

    with gate.open_exclusive(record) as stream:
        data = stream.read(record.size)

open_exclusive() bloque tant qu'un autre flux est ouvert. La fermeture du
GatedStream libère le verrou exactement une fois. Si l'ouverture du flux brut
échoue, le verrou est libéré avant de propager l'erreur.
"""

import threading


class GatedStream:
    """Flux brut tenu sous le verrou d'une ReaderGate."""

    def __init__(self, gate: "ReaderGate", raw, name: str):
        self._gate = gate
        self._raw = raw
        self.name = name
        self.closed = False

    def read(self, n: int = -1) -> bytes:
        if self.closed:
            raise ValueError(f"read on closed stream for {self.name!r}")
        return self._raw.read(n)

    def close(self):
        if self.closed:
            return
        self.closed = True
        try:
            close = getattr(self._raw, "close", None)
            if close is not None:
                close()
        finally:
            self._gate._release(self)

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc, tb):
        self.close()
        return False


class ReaderGate:
    """
    Verrou « un seul flux ouvert à la fois » pour une source.

    L'ordre de service des appelants en attente est celui de threading.Lock ;
    aucune propriété de correction n'en dépend, les tenseurs étant indépendants.
    """

    def __init__(self, verbose: bool = False):
        self.verbose = verbose
        self._lock = threading.Lock()
        self._holder = None

    def open_exclusive(self, record) -> GatedStream:
        if self.verbose and self._lock.locked():
            print(f"[ReaderGate] [WAIT] '{record.name}' attend '{self._holder}'")
        self._lock.acquire()
        try:
            raw = record.open()
        except BaseException:
            self._lock.release()
            raise
        self._holder = record.name
        if self.verbose:
            print(f"[ReaderGate] [OPEN] '{record.name}' ({record.size} octets)")
        return GatedStream(self, raw, record.name)

    def close(self, handle: GatedStream):
        handle.close()

    @property
    def busy(self) -> bool:
        return self._lock.locked()

    def _release(self, handle: GatedStream):
        if self.verbose:
            print(f"[ReaderGate] [CLOSE] '{handle.name}'")
        self._holder = None
        self._lock.release()
