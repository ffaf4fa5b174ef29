"""
=============================================================================
HTTP HEADERS
=============================================================================

Immutable, case-insensitive, multi-valued header collection.

=============================================================================
HEADER RULES (RFC 7230)
=============================================================================

    ┌─────────────────────────────────────────────────────────────────────┐
    │                       HOW HEADERS BEHAVE                            │
    ├─────────────────────────────────────────────────────────────────────┤
    │                                                                      │
    │  1. NAMES ARE CASE-INSENSITIVE                                      │
    │     "Content-Length" == "content-length" == "CONTENT-LENGTH"        │
    │     We match on the lowercase name but keep the spelling the        │
    │     caller used first, so what goes on the wire looks familiar.    │
    │                                                                      │
    │  2. A NAME CAN HAVE SEVERAL VALUES                                  │
    │     Accept: text/html                                               │
    │     Accept: application/json                                        │
    │     Stored as  {"Accept": ["text/html", "application/json"]}        │
    │                                                                      │
    │  3. MULTIPLE VALUES SERIALIZE WITH ", "                             │
    │     Accept: text/html, application/json                             │
    │                                                                      │
    └─────────────────────────────────────────────────────────────────────┘

Names are sent exactly as the caller spelled them; only lookups are
case-folded.

=============================================================================
"""

from collections.abc import Mapping
from typing import Dict, Iterable, Iterator, List, Optional, Tuple, Union

HeaderValue = Union[str, int]
HeadersInit = Union[
    "Headers",
    Mapping[str, Union[HeaderValue, Iterable[HeaderValue]]],
    Iterable[Tuple[str, HeaderValue]],
    None,
]

# Separator used when several values of one header are sent as one line.
VALUE_SEPARATOR = ", "


def _coerce_values(value) -> List[str]:
    if isinstance(value, (str, bytes, int)):
        value = [value]
    values = []
    for item in value:
        if isinstance(item, bytes):
            item = item.decode("latin-1")
        values.append(str(item))
    return values


class Headers(Mapping):
    """
    Ordered mapping of header name → list of values.

    Instances never change. Every "mutator" returns a new Headers:

        headers = Headers({"Accept": "text/html"})
        headers = headers.with_header("User-Agent", "demo/1.0")
        headers = headers.with_added("Accept", "application/json")

        headers.get("accept")       # "text/html, application/json"
        headers.get_all("ACCEPT")   # ["text/html", "application/json"]
        "user-agent" in headers     # True
    """

    __slots__ = ("_items", "_names")

    def __init__(self, headers: HeadersInit = None):
        # lowercase name → (display name, values)
        items: Dict[str, Tuple[str, List[str]]] = {}

        if isinstance(headers, Headers):
            items = {key: (name, list(values)) for key, (name, values) in headers._items.items()}
        elif isinstance(headers, Mapping):
            for name, value in headers.items():
                _append(items, name, _coerce_values(value))
        elif headers is not None:
            for name, value in headers:
                _append(items, name, _coerce_values(value))

        self._items = items

    @classmethod
    def from_pairs(cls, pairs: Iterable[Tuple[str, str]]) -> "Headers":
        """Build from raw (name, value) pairs, e.g. as parsed off the wire."""
        return cls(list(pairs))

    # =========================================================================
    # MAPPING PROTOCOL
    # =========================================================================

    def __getitem__(self, name: str) -> List[str]:
        return list(self._items[name.lower()][1])

    def __iter__(self) -> Iterator[str]:
        return (display for display, _ in self._items.values())

    def __len__(self) -> int:
        return len(self._items)

    def __contains__(self, name: object) -> bool:
        return isinstance(name, str) and name.lower() in self._items

    def __eq__(self, other: object) -> bool:
        if isinstance(other, Headers):
            return self.serialize() == other.serialize()
        if isinstance(other, Mapping):
            return self == Headers(other)
        return NotImplemented

    def __hash__(self):
        return hash(tuple(self.serialize()))

    def __repr__(self) -> str:
        return f"Headers({self.to_dict()!r})"

    # =========================================================================
    # ACCESSORS
    # =========================================================================

    def get(self, name: str, default: Optional[str] = None) -> Optional[str]:
        """
        Get the serialized value of a header (case-insensitive).

        Multiple values are joined with ", ". Returns ``default`` when
        the header is absent.
        """
        entry = self._items.get(name.lower())
        if entry is None:
            return default
        return VALUE_SEPARATOR.join(entry[1])

    def get_all(self, name: str) -> List[str]:
        """Get every value of a header, in the order they were added."""
        entry = self._items.get(name.lower())
        return list(entry[1]) if entry else []

    def has(self, name: str) -> bool:
        """Explicit presence check; same as ``name in headers``."""
        return name in self

    # =========================================================================
    # COPY-ON-WRITE MUTATORS
    # =========================================================================

    def with_header(self, name: str, value) -> "Headers":
        """Return a copy where ``name`` has exactly the given value(s)."""
        copy = Headers(self)
        key = name.lower()
        display = copy._items[key][0] if key in copy._items else name
        copy._items[key] = (display, _coerce_values(value))
        return copy

    def with_added(self, name: str, value) -> "Headers":
        """Return a copy with value(s) appended to ``name``."""
        copy = Headers(self)
        _append(copy._items, name, _coerce_values(value))
        return copy

    def without(self, name: str) -> "Headers":
        """Return a copy without ``name``. Missing names are ignored."""
        copy = Headers(self)
        copy._items.pop(name.lower(), None)
        return copy

    # =========================================================================
    # SERIALIZATION
    # =========================================================================

    def serialize(self) -> List[Tuple[str, str]]:
        """One (name, joined value) pair per header, ready for the wire."""
        return [(display, VALUE_SEPARATOR.join(values)) for display, values in self._items.values()]

    def to_dict(self) -> Dict[str, str]:
        """Plain dict of name → joined value, as the transport expects."""
        return dict(self.serialize())


def _append(items: Dict[str, Tuple[str, List[str]]], name: str, values: List[str]) -> None:
    key = name.lower()
    if key in items:
        items[key][1].extend(values)
    else:
        items[key] = (name, values)
