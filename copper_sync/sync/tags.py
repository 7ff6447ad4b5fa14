"""
Tag aggregation for browsing and cohort selection.

Builds a TagIndex mapping each tag to the contacts carrying it, in the
order they were discovered while paginating the source.
"""

from __future__ import annotations

from collections.abc import Iterable, Iterator
from enum import Enum

from copper_sync.sync.contact import Contact


class MatchMode(str, Enum):
    """How a multi-tag cohort combines its tags."""

    ANY = "any"  # Contact carries at least one of the tags
    ALL = "all"  # Contact carries every one of the tags


VALID_MATCH_MODES = {mode.value for mode in MatchMode}


class TagIndex:
    """
    Mapping from tag name to the contacts carrying that tag.

    Each tag's sequence holds a contact id at most once, even when the
    source returned the same contact twice. Contacts without tags are in
    no bucket. Iteration order of tags and of each bucket follows the
    input order, so equal inputs give equal indexes.

    Usage:
        index = build_tag_index(contacts)

        for tag, count in index.counts().items():
            print(tag, count)

        vips = index.contacts_for("VIP")
        cohort = index.select(["VIP", "Newsletter"], MatchMode.ALL)
    """

    def __init__(self) -> None:
        self._buckets: dict[str, list[Contact]] = {}
        self._seen: dict[str, set[str]] = {}

    def add(self, contact: Contact) -> None:
        """File a contact under each of its tags, skipping repeated ids."""
        for tag in contact.tags:
            seen = self._seen.setdefault(tag, set())
            if contact.key in seen:
                continue
            seen.add(contact.key)
            self._buckets.setdefault(tag, []).append(contact)

    def contacts_for(self, tag: str) -> list[Contact]:
        """Contacts carrying a tag, in discovery order (empty if unknown)."""
        return list(self._buckets.get(tag, []))

    def tags(self) -> list[str]:
        """All tag names, sorted."""
        return sorted(self._buckets)

    def counts(self) -> dict[str, int]:
        """Number of distinct contacts per tag, keyed in sorted tag order."""
        return {tag: len(self._buckets[tag]) for tag in self.tags()}

    def select(
        self, tags: Iterable[str], mode: MatchMode | str = MatchMode.ANY
    ) -> list[Contact]:
        """
        Select the contacts matching a set of tags.

        Args:
            tags: Tag names to combine
            mode: MatchMode.ANY for the union, MatchMode.ALL for the
                  intersection

        Returns:
            Matching contacts in discovery order, one per id
        """
        mode = MatchMode(mode)
        wanted = list(dict.fromkeys(tags))
        if not wanted:
            return []

        if mode is MatchMode.ALL:
            first, rest = wanted[0], wanted[1:]
            return [
                c
                for c in self._buckets.get(first, [])
                if all(c.key in self._seen.get(t, ()) for t in rest)
            ]

        selected: list[Contact] = []
        picked: set[str] = set()
        for tag in wanted:
            for contact in self._buckets.get(tag, []):
                if contact.key not in picked:
                    picked.add(contact.key)
                    selected.append(contact)
        return selected

    def as_dict(self) -> dict[str, list[Contact]]:
        """Copy of the underlying mapping."""
        return {tag: list(bucket) for tag, bucket in self._buckets.items()}

    def __contains__(self, tag: object) -> bool:
        return tag in self._buckets

    def __iter__(self) -> Iterator[str]:
        return iter(self._buckets)

    def __len__(self) -> int:
        return len(self._buckets)

    def __repr__(self) -> str:
        return f"TagIndex(tags={len(self._buckets)})"


def build_tag_index(contacts: Iterable[Contact]) -> TagIndex:
    """
    Build a TagIndex from a contact sequence. Pure, no I/O.

    Args:
        contacts: Contacts in discovery order, possibly with repeated ids

    Returns:
        The populated TagIndex
    """
    index = TagIndex()
    for contact in contacts:
        index.add(contact)
    return index
