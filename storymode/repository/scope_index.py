"""
Scope visibility for repository items and workbooks.

Pure functions of a record and the author's position. A scope applies when
every ancestor id it names (shelf, then book, then chapter) is set and equal
to the position's id at that level. Library scope always applies.
"""

from typing import Optional

from storymode.data_models import (
    PositionContext,
    RepositoryItem,
    ScopeContext,
    ScopeLevel,
    Workbook,
)

# Position ids that must match for each scope level, outermost first.
ANCESTOR_IDS: dict[ScopeLevel, tuple[str, ...]] = {
    ScopeLevel.LIBRARY: (),
    ScopeLevel.SHELF: ("shelf_id",),
    ScopeLevel.BOOK: ("shelf_id", "book_id"),
    ScopeLevel.CHAPTER: ("shelf_id", "book_id", "chapter_id"),
}


def is_scope_applicable(
    scope: ScopeLevel,
    scope_context: Optional[ScopeContext],
    context: PositionContext,
) -> bool:
    """Check whether a scope anchored at scope_context covers the position."""
    ids = ANCESTOR_IDS[scope]
    if not ids:
        return True
    if scope_context is None:
        return False
    for attr in ids:
        expected = getattr(scope_context, attr)
        if expected is None or expected != getattr(context, attr):
            return False
    return True


def scope_level_for(item: RepositoryItem, context: PositionContext) -> Optional[ScopeLevel]:
    """
    The level at which an item is visible from the position, or None.

    Items forced into context are always visible and report their own scope.
    """
    if item.force_in_context:
        return item.scope
    if is_scope_applicable(item.scope, item.scope_context, context):
        return item.scope
    return None


def is_workbook_applicable(workbook: Workbook, context: PositionContext) -> bool:
    """
    Check whether a workbook's master scope applies at the position.

    A master scope without an anchoring context applies everywhere.
    """
    if workbook.master_scope is None or workbook.master_scope_context is None:
        return True
    return is_scope_applicable(workbook.master_scope, workbook.master_scope_context, context)
