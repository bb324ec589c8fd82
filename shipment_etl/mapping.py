"""
Column Mapping

Case-insensitive source -> destination column mapping built for each batch.
"""

from collections.abc import MutableMapping
from typing import Dict, Iterator, Mapping, Optional, Tuple


class ColumnMapping(MutableMapping):
    """
    Ordered mapping from source column name to destination column name.

    Keys compare case-insensitively; the spelling of the first insert is kept.
    """

    def __init__(self, items: Optional[Mapping[str, str]] = None):
        self._entries: Dict[str, Tuple[str, str]] = {}
        if items:
            self.update(items)

    @staticmethod
    def _fold(key: str) -> str:
        return key.casefold()

    def __getitem__(self, key: str) -> str:
        return self._entries[self._fold(key)][1]

    def __setitem__(self, key: str, value: str) -> None:
        folded = self._fold(key)
        original = self._entries[folded][0] if folded in self._entries else key
        self._entries[folded] = (original, value)

    def __delitem__(self, key: str) -> None:
        del self._entries[self._fold(key)]

    def __iter__(self) -> Iterator[str]:
        return (original for original, _ in self._entries.values())

    def __len__(self) -> int:
        return len(self._entries)

    def __contains__(self, key: object) -> bool:
        return isinstance(key, str) and self._fold(key) in self._entries

    def __repr__(self) -> str:
        return f"ColumnMapping({dict(self.items())!r})"

    def sources_for(self, destination: str) -> list:
        """Source columns that map to ``destination`` (case-insensitive)."""
        target = destination.casefold()
        return [source for source, dest in self.items() if dest.casefold() == target]

    def describe(self) -> str:
        return ", ".join(f"{source}->{dest}" for source, dest in self.items())


def resolve_destination(source: str, mapping: Optional[Mapping[str, str]]) -> str:
    """
    Resolve the destination column for a source column.

    Looks up the forward mapping first, then accepts a mapping written the
    other way round (destination -> source), otherwise keeps the source name.

    Args:
        source: Source column name
        mapping: Source -> destination mapping (optional)

    Returns:
        Destination column name
    """
    if not mapping:
        return source

    if isinstance(mapping, ColumnMapping):
        if source in mapping:
            return mapping[source]
    else:
        for key, value in mapping.items():
            if key.casefold() == source.casefold():
                return value

    for key, value in mapping.items():
        if value.casefold() == source.casefold():
            return key

    return source


def apply_overrides(mapping: ColumnMapping, overrides: Optional[Mapping[str, str]]) -> ColumnMapping:
    """
    Overlay explicit source -> destination overrides onto a derived mapping.

    Only sources present in the batch are touched.

    Args:
        mapping: Mapping derived from the batch headers
        overrides: Operator supplied overrides (optional)

    Returns:
        New ColumnMapping with overrides applied
    """
    result = ColumnMapping(mapping)
    if not overrides:
        return result

    folded = {key.casefold(): value for key, value in overrides.items()}
    for source in list(result):
        override = folded.get(source.casefold())
        if override:
            result[source] = override

    return result
