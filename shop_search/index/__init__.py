"""Virtual field index: spec resolution, list encoding and the index builder."""

from .spec import ALL, LIST, SIMPLE, VirtualFieldSpec, normalize_vfi_spec, vfi_column
from .entity import EntityType, ResolvedField, resolve_vfi_spec
from .encoding import decode_list, encode_list
from .builder import BuildReport, VirtualFieldIndexBuilder

__all__ = [
    "ALL",
    "LIST",
    "SIMPLE",
    "VirtualFieldSpec",
    "normalize_vfi_spec",
    "vfi_column",
    "EntityType",
    "ResolvedField",
    "resolve_vfi_spec",
    "decode_list",
    "encode_list",
    "BuildReport",
    "VirtualFieldIndexBuilder",
]
