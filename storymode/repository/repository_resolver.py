"""
Repository resolution for the Story Mode engine.

Given the repository items, the workbooks and the author's position, works
out which items are in scope, which of them a piece of text mentions, and in
what order their content should be read. Items are ordered from the least to
the most specific scope (library, shelf, book, chapter), so the most specific
content comes last.

Conflicts (one keyword matching several items) are reported, never resolved
by dropping items.
"""

from dataclasses import dataclass, field, replace
from typing import Any, Iterable, Mapping, Optional, Sequence, Union
import logging

from storymode.data_models import PositionContext, RepositoryItem, ScopeLevel, Workbook
from storymode.repository.scope_index import is_workbook_applicable, scope_level_for

logger = logging.getLogger(__name__)

RepositoryItems = Union[Mapping[str, RepositoryItem], Sequence[RepositoryItem]]


@dataclass(frozen=True)
class ResolvedRepositoryItem:
    """An in-scope item with the scope level used to order it."""
    item: RepositoryItem
    key: str
    source: ScopeLevel
    overridden_by: Optional[str] = None

    @property
    def rank(self) -> int:
        return self.source.rank


@dataclass
class KeywordResolution:
    """Every in-scope item matched through one keyword."""
    keyword: str
    items: list[ResolvedRepositoryItem] = field(default_factory=list)
    concatenated_content: str = ""
    has_conflicts: bool = False

    def to_dict(self) -> dict[str, Any]:
        return {
            "keyword": self.keyword,
            "items": [
                {"key": r.key, "name": r.item.name, "source": r.source.value}
                for r in self.items
            ],
            "concatenatedContent": self.concatenated_content,
            "hasConflicts": self.has_conflicts,
        }


@dataclass
class KeywordConflictReport:
    """Existing items that already claim one of a candidate's keywords."""
    has_conflicts: bool
    conflicting_items: list[RepositoryItem] = field(default_factory=list)


def _keyed_items(items: Optional[RepositoryItems]) -> dict[str, RepositoryItem]:
    if items is None:
        return {}
    if isinstance(items, Mapping):
        return dict(items)

    # Same-named items (often at different scopes) are all kept
    keyed: dict[str, RepositoryItem] = {}
    for item in items:
        key = item.key
        suffix = 2
        while key in keyed:
            key = f"{item.key}_{suffix}"
            suffix += 1
        if key != item.key:
            logger.warning(f"Duplicate repository item key '{item.key}' stored as '{key}'")
        keyed[key] = item
    return keyed


def sort_by_scope(items: Iterable[ResolvedRepositoryItem]) -> list[ResolvedRepositoryItem]:
    """Order items library first, chapter last; ties keep their order."""
    return sorted(items, key=lambda r: r.rank)


class RepositoryResolver:
    """
    Resolves repository items against the author's position.

    A pure function of its inputs: nothing is fetched, cached or mutated, so
    one resolver may be shared between threads.
    """

    def __init__(
        self,
        items: Optional[RepositoryItems] = None,
        workbooks: Optional[Sequence[Workbook]] = None,
        context: Optional[PositionContext] = None,
    ):
        self.items: dict[str, RepositoryItem] = _keyed_items(items)
        self.workbooks: list[Workbook] = list(workbooks or [])
        self.context: PositionContext = context or PositionContext()

    # -------------------------------------------------------------------------
    # Scope
    # -------------------------------------------------------------------------

    def get_items_in_scope(self) -> list[ResolvedRepositoryItem]:
        """All items visible from the current position, in storage order."""
        resolved = []
        for key, item in self.items.items():
            level = scope_level_for(item, self.context)
            if level is not None:
                resolved.append(ResolvedRepositoryItem(item=item, key=key, source=level))
        return resolved

    def get_items_by_workbook_tags(self, tags: Sequence[str]) -> list[ResolvedRepositoryItem]:
        """In-scope items carrying any of the given workbook tags."""
        wanted = set(tags)
        return [r for r in self.get_items_in_scope() if wanted.intersection(r.item.workbook_tags)]

    # -------------------------------------------------------------------------
    # Keywords
    # -------------------------------------------------------------------------

    def get_matching_keywords(self, text: str) -> list[KeywordResolution]:
        """
        Match in-scope items against text by keyword.

        Matching is a case-insensitive substring test. Each item joins the
        group of the first of its keywords found in the text; groups are keyed
        case-insensitively and reported under the first spelling seen.

        Returns:
            One KeywordResolution per matched keyword, in discovery order
        """
        lowered = text.casefold()
        groups: dict[str, tuple[str, list[ResolvedRepositoryItem]]] = {}

        for resolved in self.get_items_in_scope():
            for keyword in resolved.item.keywords:
                folded = keyword.casefold()
                if not folded or folded not in lowered:
                    continue
                groups.setdefault(folded, (keyword, []))[1].append(resolved)
                break

        resolutions = []
        for keyword, matched in groups.values():
            ordered = sort_by_scope(self.apply_workbook_overrides(matched))
            resolutions.append(KeywordResolution(
                keyword=keyword,
                items=ordered,
                concatenated_content="\n\n".join(r.item.content for r in ordered),
                has_conflicts=len(ordered) > 1,
            ))
            if len(ordered) > 1:
                logger.debug(f"Keyword '{keyword}' matches {len(ordered)} repository items")

        return resolutions

    def get_relevant_items(self, text: str) -> list[ResolvedRepositoryItem]:
        """
        Items worth sending along with text: those forced into context plus
        those the text mentions, each once, ordered by scope.
        """
        matched_keys = {
            r.key
            for resolution in self.get_matching_keywords(text)
            for r in resolution.items
        }
        relevant = [
            r for r in self.get_items_in_scope()
            if r.item.force_in_context or r.key in matched_keys
        ]
        return sort_by_scope(self.apply_workbook_overrides(relevant))

    # -------------------------------------------------------------------------
    # Workbooks
    # -------------------------------------------------------------------------

    def apply_workbook_overrides(
        self, items: Iterable[ResolvedRepositoryItem]
    ) -> list[ResolvedRepositoryItem]:
        """
        Replace each item's ordering scope with the master scope of the first
        applicable workbook sharing one of its tags. Items are not modified.
        """
        result = []
        for resolved in items:
            for workbook in self.workbooks:
                if (
                    workbook.master_scope is not None
                    and workbook.shares_tag_with(resolved.item)
                    and is_workbook_applicable(workbook, self.context)
                ):
                    resolved = replace(
                        resolved,
                        source=workbook.master_scope,
                        overridden_by=workbook.name,
                    )
                    break
            result.append(resolved)
        return result

    # -------------------------------------------------------------------------
    # Authoring checks
    # -------------------------------------------------------------------------

    @staticmethod
    def check_keyword_conflicts(
        candidate: RepositoryItem,
        existing: RepositoryItems,
        context: PositionContext,
    ) -> KeywordConflictReport:
        """
        Report in-scope existing items that share a keyword with the candidate.

        The candidate itself (same key) is never reported against itself.
        """
        wanted = {k.casefold() for k in candidate.keywords if k.strip()}
        resolver = RepositoryResolver(existing, [], context)

        conflicting = []
        for resolved in resolver.get_items_in_scope():
            if resolved.key == candidate.key:
                continue
            if wanted.intersection(k.casefold() for k in resolved.item.keywords):
                conflicting.append(resolved.item)

        return KeywordConflictReport(
            has_conflicts=bool(conflicting),
            conflicting_items=conflicting,
        )


def create_repository_resolver(
    items: Optional[RepositoryItems],
    workbooks: Optional[Sequence[Workbook]],
    context: Optional[PositionContext],
) -> RepositoryResolver:
    """Create a repository resolver for the current position."""
    return RepositoryResolver(items, workbooks, context)
