"""
unmarshal/
==========
Décodage structurel paresseux : une liste plate de tenseurs nommés
(`blk.3.attn_q.weight`) devient une structure Python imbriquée.

  - paths   : regroupement des tenseurs par segment de nom
  - views   : DataView / StructView / SliceView (navigation sans lecture)
  - leaf    : LeafMaterializer, octets → np.ndarray float32
  - schema  : Unmarshaler, remplissage de dataclasses / listes / dicts
  - driver  : decode(), unmarshal_on_device(), root_view()
  - config  : DecodeConfig
  - errors  : taxonomie des erreurs (DecodeError et sous-classes)
"""

from .errors import (
    AmbiguousLeaf,
    DecodeError,
    EmptyLeaf,
    MalformedIndex,
    NoSuchField,
    NoSuchIndex,
    ShortRead,
    SizeMismatch,
    UnsupportedTensorType,
)
from .config import DecodeConfig
from .paths import PathEntry, entries_from_records, next_keys, select_children
from .leaf import ArrayFuture, LeafMaterializer
from .views import DataView, Shape, SliceView, StructView
from .schema import Unmarshaler, unmarshal
from .driver import decode, describe_tree, root_view, send_to_device, unmarshal_on_device

__all__ = [
    "AmbiguousLeaf",
    "DecodeError",
    "EmptyLeaf",
    "MalformedIndex",
    "NoSuchField",
    "NoSuchIndex",
    "ShortRead",
    "SizeMismatch",
    "UnsupportedTensorType",
    "DecodeConfig",
    "PathEntry",
    "entries_from_records",
    "next_keys",
    "select_children",
    "ArrayFuture",
    "LeafMaterializer",
    "DataView",
    "Shape",
    "SliceView",
    "StructView",
    "Unmarshaler",
    "unmarshal",
    "decode",
    "describe_tree",
    "root_view",
    "send_to_device",
    "unmarshal_on_device",
]
