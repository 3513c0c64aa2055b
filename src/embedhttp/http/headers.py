"""
=============================================================================
HEADER MULTIMAP
=============================================================================

HTTP header names are case-INSENSITIVE and a name may appear more than once:

    Set-Cookie: a=1\r\n
    Set-Cookie: b=2\r\n

Collapsing repeats into "a=1, b=2" is lossy (Set-Cookie values may contain
commas), so both request and response keep every value, in arrival order,
under one entry per name:

    ┌───────────────────┬──────────────────────────┐
    │  key (lowercase)  │  (display name, values)  │
    ├───────────────────┼──────────────────────────┤
    │  "set-cookie"     │  ("Set-Cookie", [a, b])  │
    │  "content-type"   │  ("content-type", [...]) │
    └───────────────────┴──────────────────────────┘

The display name is whatever spelling was used first; that is what goes on
the wire for responses.

HttpRequest holds a read-only copy (read_only_copy()); add, set and remove
on it raise TypeError, so a handler cannot rewrite what the client sent.

=============================================================================
"""

import re
from typing import Dict, Iterable, Iterator, List, Optional, Tuple


# RFC 7230 §3.2.6 token: request methods and header names.
TOKEN = r"[!#$%&'*+.^_`|~0-9A-Za-z-]+"
TOKEN_PATTERN = re.compile(TOKEN)


class Headers:
    """
    Case-insensitive, insertion-ordered header multimap.

    Example:
        headers = Headers()
        headers.add("Accept", "text/html")
        headers.add("accept", "application/json")
        headers.get_all("ACCEPT")   # ["text/html", "application/json"]
        headers.get_first("Accept") # "text/html"
        headers.get_first("X-Nope") # None
    """

    def __init__(self, items: Optional[Iterable[Tuple[str, str]]] = None):
        self._entries: Dict[str, Tuple[str, List[str]]] = {}
        self._read_only = False
        if items:
            for name, value in items:
                self.add(name, value)

    def add(self, name: str, value: str) -> "Headers":
        """Append a value for ``name``, keeping any existing values."""
        self._check_writable()
        key = name.lower()
        entry = self._entries.get(key)
        if entry is None:
            self._entries[key] = (name, [value])
        else:
            entry[1].append(value)
        return self

    def set(self, name: str, value: str) -> "Headers":
        """Replace all values for ``name`` with a single value."""
        self._check_writable()
        key = name.lower()
        display = self._entries[key][0] if key in self._entries else name
        self._entries[key] = (display, [value])
        return self

    def remove(self, name: str) -> None:
        self._check_writable()
        self._entries.pop(name.lower(), None)

    def get_first(self, name: str) -> Optional[str]:
        """First value for ``name``, or None when the header is absent."""
        entry = self._entries.get(name.lower())
        return entry[1][0] if entry else None

    def get_all(self, name: str) -> List[str]:
        """All values for ``name`` in insertion order (empty if absent)."""
        entry = self._entries.get(name.lower())
        return list(entry[1]) if entry else []

    def names(self) -> List[str]:
        """Display names in first-insertion order."""
        return [display for display, _ in self._entries.values()]

    def items(self) -> Iterator[Tuple[str, List[str]]]:
        """Yield ``(display_name, values)`` pairs."""
        for display, values in self._entries.values():
            yield display, list(values)

    def to_dict(self) -> Dict[str, List[str]]:
        return {display: list(values) for display, values in self._entries.values()}

    @property
    def read_only(self) -> bool:
        return self._read_only

    def read_only_copy(self) -> "Headers":
        """Copy that refuses add(), set() and remove()."""
        clone = self.copy()
        clone._read_only = True
        return clone

    def _check_writable(self) -> None:
        if self._read_only:
            raise TypeError("Headers are read-only")

    def copy(self) -> "Headers":
        clone = Headers()
        for display, values in self._entries.values():
            for value in values:
                clone.add(display, value)
        return clone

    def __contains__(self, name: object) -> bool:
        return isinstance(name, str) and name.lower() in self._entries

    def __len__(self) -> int:
        return len(self._entries)

    def __iter__(self) -> Iterator[str]:
        return iter(self.names())

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, Headers):
            return NotImplemented
        return {k: v for k, (_, v) in self._entries.items()} == {
            k: v for k, (_, v) in other._entries.items()
        }

    def __repr__(self) -> str:
        return f"Headers({self.to_dict()!r})"
