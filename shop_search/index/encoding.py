"""Encoded form of list-valued virtual fields: >TypeName|id1|id2|...|"""

from typing import Iterable

LIST_MARKER = ">"
LIST_SEPARATOR = "|"


def encode_list(type_name: str, ids: Iterable[object]) -> str:
    """Encode member ids. An empty list encodes as '>TypeName||' so it stays distinct from unset."""
    parts = [str(i) for i in ids]
    if not parts:
        return f"{LIST_MARKER}{type_name}{LIST_SEPARATOR}{LIST_SEPARATOR}"
    return f"{LIST_MARKER}{type_name}{LIST_SEPARATOR}{LIST_SEPARATOR.join(parts)}{LIST_SEPARATOR}"


def is_encoded_list(value: object) -> bool:
    return isinstance(value, str) and value.startswith(LIST_MARKER) and LIST_SEPARATOR in value


def decode_list(value: str | None) -> tuple[str | None, list[int]]:
    """Return (type_name, member ids). Unset or malformed values decode to (None, [])."""
    if not is_encoded_list(value):
        return None, []
    type_name, _, rest = value[len(LIST_MARKER):].partition(LIST_SEPARATOR)
    ids = []
    for part in rest.split(LIST_SEPARATOR):
        if part.strip().isdigit():
            ids.append(int(part))
    return type_name, ids
