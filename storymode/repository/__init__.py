"""
Repository scope resolution for the Story Mode engine.

Works out which story elements are visible from the author's position and
which of them a piece of text mentions.
"""

from storymode.repository.scope_index import (
    ANCESTOR_IDS,
    is_scope_applicable,
    is_workbook_applicable,
    scope_level_for,
)
from storymode.repository.repository_resolver import (
    KeywordConflictReport,
    KeywordResolution,
    RepositoryResolver,
    ResolvedRepositoryItem,
    create_repository_resolver,
    sort_by_scope,
)
from storymode.repository.repository_store import (
    JsonCollectionStore,
    RepositoryItemStore,
    WorkbookStore,
)

__all__ = [
    "ANCESTOR_IDS",
    "is_scope_applicable",
    "is_workbook_applicable",
    "scope_level_for",
    "KeywordConflictReport",
    "KeywordResolution",
    "RepositoryResolver",
    "ResolvedRepositoryItem",
    "create_repository_resolver",
    "sort_by_scope",
    "JsonCollectionStore",
    "RepositoryItemStore",
    "WorkbookStore",
]
