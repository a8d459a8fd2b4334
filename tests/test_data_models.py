"""
Unit tests for repository records in storymode/data_models.py.
"""

from storymode.data_models import (
    PositionContext,
    RepositoryCategory,
    RepositoryItem,
    ScopeContext,
    ScopeLevel,
    Workbook,
)


class TestScopeLevel:
    """Tests for scope level ranks."""

    def test_ranks_increase_with_specificity(self):
        assert [level.rank for level in ScopeLevel] == [0, 1, 2, 3]
        assert ScopeLevel.LIBRARY.rank < ScopeLevel.CHAPTER.rank

    def test_value_lookup(self):
        assert ScopeLevel("book") is ScopeLevel.BOOK


class TestPositionContext:
    """Tests for PositionContext serialization."""

    def test_from_camel_case(self):
        ctx = PositionContext.from_dict({"shelfId": "s1", "bookId": "b1", "chapterId": "c1"})
        assert ctx == PositionContext("s1", "b1", "c1")

    def test_from_snake_case(self):
        ctx = PositionContext.from_dict({"shelf_id": "s1"})
        assert ctx.shelf_id == "s1"
        assert ctx.book_id is None

    def test_from_none(self):
        assert PositionContext.from_dict(None) == PositionContext()

    def test_to_dict_uses_external_names(self):
        assert PositionContext("s1").to_dict() == {"shelfId": "s1", "bookId": None, "chapterId": None}


class TestRepositoryItem:
    """Tests for RepositoryItem."""

    def test_key_from_name(self):
        item = RepositoryItem(name="  Old  Stone Bridge ")
        assert item.key == "old_stone_bridge"

    def test_defaults(self):
        item = RepositoryItem(name="Mara")
        assert item.scope == ScopeLevel.LIBRARY
        assert item.category == RepositoryCategory.CHARACTER
        assert item.keywords == []
        assert not item.force_in_context

    def test_dict_round_trip(self):
        item = RepositoryItem(
            name="Broken Sword",
            content="It lies broken.",
            keywords=["sword", "blade"],
            force_in_context=True,
            category=RepositoryCategory.OBJECT,
            scope=ScopeLevel.CHAPTER,
            scope_context=ScopeContext("s1", "b1", "c1"),
            workbook_tags=["legends"],
            created=1,
            updated=2,
        )
        data = item.to_dict()
        assert data["forceInContext"] is True
        assert data["scopeContext"]["chapterId"] == "c1"
        assert data["workbookTags"] == ["legends"]
        assert RepositoryItem.from_dict(data) == item


class TestWorkbook:
    """Tests for Workbook."""

    def test_from_dict_with_master_scope(self):
        workbook = Workbook.from_dict({
            "id": "wb1",
            "name": "Legends",
            "description": None,
            "tags": ["legends"],
            "masterScope": "book",
            "masterScopeContext": {"shelfId": "s1", "bookId": "b1"},
        })
        assert workbook.master_scope == ScopeLevel.BOOK
        assert workbook.master_scope_context == ScopeContext("s1", "b1")
        assert workbook.description == ""

    def test_from_dict_without_master_scope(self):
        workbook = Workbook.from_dict({"name": "Loose", "tags": []})
        assert workbook.master_scope is None
        assert workbook.master_scope_context is None

    def test_to_dict(self):
        data = Workbook(name="Legends", tags=["a"], master_scope=ScopeLevel.LIBRARY).to_dict()
        assert data["masterScope"] == "library"
        assert data["masterScopeContext"] is None

    def test_shares_tag_with(self):
        workbook = Workbook(name="Legends", tags=["legends", "myths"])
        assert workbook.shares_tag_with(RepositoryItem(name="a", workbook_tags=["myths"]))
        assert not workbook.shares_tag_with(RepositoryItem(name="b", workbook_tags=["other"]))
