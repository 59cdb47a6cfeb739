"""End-to-end tests of the table engine facade."""

import pytest

from reflex_advanced_table.config import TableOptions
from reflex_advanced_table.datasource import DataSource
from reflex_advanced_table.editing import RowEditState
from reflex_advanced_table.exceptions import UnsupportedOperation
from reflex_advanced_table.memory import InMemoryDataSource
from reflex_advanced_table.models import DataSourceResult
from reflex_advanced_table.schema import ManualSchemaProvider
from reflex_advanced_table.table import AdvancedTable

SCHEMA = ManualSchemaProvider.from_dicts(
    [
        {"key": "id", "header": "ID"},
        {"key": "name", "editable": True},
        {"key": "category", "type": "select", "options": ["books", "games", "tools"]},
        {"key": "price", "type": "currency", "editable": True, "validation": {"min": 0}},
    ]
)


@pytest.mark.asyncio
async def test_filter_resets_page_and_refetches(memory_source):
    table = AdvancedTable(memory_source, SCHEMA, TableOptions(search_debounce=0))
    await table.load()
    table.controller.set_page(3)
    await table.settle()
    assert table.fetcher.page == 3

    table.controller.set_filter("category", "games")
    await table.settle()

    assert table.controller.page == 1
    assert table.fetcher.total == 19
    assert all(row["category"] == "games" for row in table.visible_rows())
    table.close()


@pytest.mark.asyncio
async def test_visible_rows_overlay_edits(memory_source):
    table = AdvancedTable(memory_source, SCHEMA)
    await table.load()
    await table.editor.edit_cell("p001", "name", "Edited")
    assert table.visible_rows()[0]["name"] == "Edited"
    assert table.fetcher.rows[0]["name"] == "Product 1"
    table.close()


@pytest.mark.asyncio
async def test_commit_row_persists_through_source(memory_source):
    table = AdvancedTable(memory_source, SCHEMA)
    await table.load()
    await table.editor.edit_cell("p002", "price", 99.0)
    await table.editor.commit_row("p002")
    await table.load()
    assert table.editor.row_state("p002") is RowEditState.CLEAN
    assert table.fetcher.rows[1]["price"] == 99.0
    table.close()


@pytest.mark.asyncio
async def test_editing_disabled_makes_columns_read_only(memory_source):
    table = AdvancedTable(memory_source, SCHEMA, TableOptions(editing=False))
    assert not any(column.editable for column in table.columns())
    with pytest.raises(ValueError):
        await table.editor.edit_cell("p001", "name", "x")
    table.close()


@pytest.mark.asyncio
async def test_delete_selected(memory_source):
    table = AdvancedTable(memory_source, SCHEMA)
    await table.load()
    table.selection.select("p001", "p002")
    await table.editor.edit_cell("p001", "name", "doomed")

    result = await table.delete_selected()

    assert result.affected == 2
    assert table.controller.selection == frozenset()
    assert not table.editor.is_row_edited("p001")
    assert table.fetcher.total == 55
    table.close()


@pytest.mark.asyncio
async def test_delete_selected_with_nothing_selected(memory_source):
    table = AdvancedTable(memory_source, SCHEMA)
    result = await table.delete_selected()
    assert result.success and result.affected == 0
    table.close()


@pytest.mark.asyncio
async def test_delete_selected_keeps_failed_ids_selected():
    class FlakySource(DataSource):
        def __init__(self):
            self.rows = [{"id": "a"}, {"id": "b"}]

        async def fetch(self, params):
            return DataSourceResult.build(self.rows, total=len(self.rows), page=1, page_size=20)

        async def delete(self, row_id):
            if row_id == "b":
                raise RuntimeError("locked")
            self.rows = [r for r in self.rows if r["id"] != row_id]

    table = AdvancedTable(FlakySource())
    table.selection.select("a", "b")
    result = await table.delete_selected()
    assert result.failed_ids == ["b"]
    assert table.controller.selection == {"b"}
    table.close()


@pytest.mark.asyncio
async def test_delete_selected_unsupported():
    class ReadOnly(DataSource):
        async def fetch(self, params):
            return DataSourceResult.build([], total=0, page=1, page_size=20)

    table = AdvancedTable(ReadOnly())
    table.selection.select("a")
    with pytest.raises(UnsupportedOperation):
        await table.delete_selected()
    table.close()


@pytest.mark.asyncio
async def test_create_row_refetches():
    source = InMemoryDataSource([])
    table = AdvancedTable(source, SCHEMA)
    created = await table.create_row({"name": "Fresh", "price": 1.0})
    assert table.fetcher.total == 1
    assert table.visible_rows()[0]["id"] == created["id"]
    table.close()
