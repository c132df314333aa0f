"""Key encoding for edge records.

Each edge (source, target) is stored as two keys in one ordered keyspace:
- forward record:  {ns}>{source}|{target}
- backward record: {ns}<{target}|{source}

{ns} is the UTF-8 namespace followed by a NUL byte, or nothing for the
default (empty) namespace. All records of one node share the prefix
{ns}{dir}{id}|, and 0xFF never occurs in UTF-8, so {prefix}0xFF bounds a
node's records from above.

Ordering: the targets of one source sort in UTF-8 byte order. Across
sources the order is that of the raw keys, which matches identifier order
except when one identifier is a prefix of another. The byte after the
shorter one is then compared with "|" (0x7C), so ">a!|" < ">ab|" < ">a|".

Whole keys are limited to MAX_KEY_SIZE bytes, the LMDB maximum.
"""

from __future__ import annotations

from enum import Enum

from edgemap.config import MAX_KEY_SIZE
from edgemap.errors import EncodingError
from edgemap.store.base import KeyRange

SEPARATOR = b"|"
NAMESPACE_SEPARATOR = b"\x00"
HIGH_SENTINEL = b"\xff"

# value of both records; presence is the only content
SENTINEL_VALUE = b"1"


class Direction(str, Enum):
    FORWARD = ">"
    BACKWARD = "<"

    @property
    def marker(self) -> bytes:
        return self.value.encode("ascii")


_RESERVED_IN_IDENTIFIER = ("|", ">", "<")
_RESERVED_IN_NAMESPACE = ("\x00", ">", "<")


def _check_utf8(value: str) -> None:
    # lone surrogates are valid str but have no UTF-8 form
    try:
        value.encode("utf-8")
    except UnicodeEncodeError as exc:
        raise EncodingError(value, "not encodable as UTF-8") from exc


def _check_size(key: bytes) -> bytes:
    if len(key) > MAX_KEY_SIZE:
        raise EncodingError(
            key, f"key is {len(key)} bytes, limit is {MAX_KEY_SIZE}"
        )
    return key


def validate_identifier(value: object) -> str:
    """Check that ``value`` can be used as a source or target."""
    if not isinstance(value, str):
        raise EncodingError(value, "identifiers must be str")
    for char in _RESERVED_IN_IDENTIFIER:
        if char in value:
            raise EncodingError(value, f"identifier contains {char!r}")
    _check_utf8(value)
    return value


def validate_namespace(value: object) -> str:
    """Check that ``value`` can be used as a namespace."""
    if not isinstance(value, str):
        raise EncodingError(value, "namespaces must be str")
    for char in _RESERVED_IN_NAMESPACE:
        if char in value:
            raise EncodingError(value, f"namespace contains {char!r}")
    _check_utf8(value)
    return value


def namespace_prefix(namespace: str) -> bytes:
    """Construct the key prefix shared by every record of a namespace.

    Format: {namespace}\\x00, or b"" for the empty namespace
    """
    if not namespace:
        return b""
    return namespace.encode("utf-8") + NAMESPACE_SEPARATOR


def _record_key(
    namespace: str, direction: Direction, primary: str, secondary: str
) -> bytes:
    key = b"".join(
        (
            namespace_prefix(namespace),
            direction.marker,
            primary.encode("utf-8"),
            SEPARATOR,
            secondary.encode("utf-8"),
        )
    )
    return _check_size(key)


def encode_forward(namespace: str, source: str, target: str) -> bytes:
    """Construct a forward record key.

    Format: {ns}>{source}|{target}
    """
    return _record_key(namespace, Direction.FORWARD, source, target)


def encode_backward(namespace: str, source: str, target: str) -> bytes:
    """Construct a backward record key.

    Format: {ns}<{target}|{source}
    """
    return _record_key(namespace, Direction.BACKWARD, target, source)


def decode(
    direction: Direction, key: bytes, namespace: str = ""
) -> tuple[str, str]:
    """Split a record key into (primary, secondary).

    For forward records that is (source, target), for backward records
    (target, source).
    """
    head = namespace_prefix(namespace) + direction.marker
    if not key.startswith(head):
        raise EncodingError(
            key, f"not a {direction.name.lower()} key of {namespace!r}"
        )
    primary, sep, secondary = key[len(head):].partition(SEPARATOR)
    if not sep:
        raise EncodingError(key, "missing separator")
    return primary.decode("utf-8"), secondary.decode("utf-8")


def decode_edge(key: bytes, namespace: str = "") -> tuple[str, str]:
    """Decode a forward or backward record key to (source, target)."""
    marker = key[len(namespace_prefix(namespace)):][:1]
    if marker == Direction.FORWARD.marker:
        return decode(Direction.FORWARD, key, namespace)
    target, source = decode(Direction.BACKWARD, key, namespace)
    return source, target


def prefix_range(
    namespace: str, direction: Direction, identifier: str
) -> KeyRange:
    """Range holding every record of one node in one direction."""
    prefix = b"".join(
        (
            namespace_prefix(namespace),
            direction.marker,
            identifier.encode("utf-8"),
            SEPARATOR,
        )
    )
    _check_size(prefix)
    return KeyRange(gte=prefix, lt=prefix + HIGH_SENTINEL)


def direction_range(namespace: str, direction: Direction) -> KeyRange:
    """Range holding every record of a namespace in one direction."""
    prefix = namespace_prefix(namespace) + direction.marker
    return KeyRange(gte=prefix, lt=prefix + HIGH_SENTINEL)
