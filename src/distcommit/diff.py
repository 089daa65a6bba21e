"""Find target entries that have no counterpart in the source listing."""

from __future__ import annotations

from collections.abc import Iterable, Iterator

from .listing import ListingCursor, ListingEntry


def iter_stale(
    source: Iterable[ListingEntry],
    target: Iterable[ListingEntry],
) -> Iterator[ListingEntry]:
    """Yield target entries whose key does not appear in *source*.

    Both inputs must be sorted ascending by key with the same ordering.
    The two sequences are merge-joined, so each is consumed once and
    lazily; nothing is materialised.
    """
    cursor = ListingCursor(source)
    for entry in target:
        key = entry.relative_path
        while cursor.peek_key() is not None and cursor.peek_key() < key:
            cursor.advance()
        if cursor.peek_key() == key:
            continue
        yield entry
