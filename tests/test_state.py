"""Tests for the table state controller."""

import pytest

from reflex_advanced_table.models import Pagination, SortSpec
from reflex_advanced_table.state import TableStateController


@pytest.fixture
def controller():
    return TableStateController(page_size=20)


@pytest.fixture
def events(controller):
    received = []
    controller.subscribe(lambda state, changed: received.append((state, changed)))
    return received


def test_defaults(controller):
    state = controller.state
    assert state.pagination == Pagination(page=1, page_size=20)
    assert state.sorting == []
    assert state.filters == {}
    assert state.search == ""
    assert state.selection == set()
    assert controller.generation == 0


@pytest.mark.parametrize(
    "change",
    [
        lambda c: c.set_filter("status", "active"),
        lambda c: c.set_filter("active", False),
        lambda c: c.set_filter("price", {"min": 10, "max": 20}),
        lambda c: c.set_filters({"category": ["books", "games"]}),
        lambda c: c.set_search("lamp"),
    ],
)
def test_filter_or_search_change_resets_page(controller, events, change):
    controller.set_page(4)
    events.clear()

    change(controller)

    assert controller.page == 1
    state, changed = events[-1]
    # Listeners already see page 1.
    assert state.pagination.page == 1
    assert "pagination" in changed


def test_removing_filter_resets_page(controller):
    controller.set_filter("status", "active")
    controller.set_page(3)
    controller.set_filter("status", None)
    assert controller.page == 1
    assert "status" not in controller.state.filters


def test_falsy_filter_values_are_kept(controller):
    controller.set_filter("active", False)
    controller.set_filter("stock", 0)
    assert controller.state.filters == {"active": False, "stock": 0}


def test_false_replaces_zero_filter(controller, events):
    controller.set_filter("active", 0)
    controller.set_filter("active", False)
    assert controller.state.filters["active"] is False
    assert len(events) == 2

    controller.set_filters({"active": True, "price": {"min": 0}})
    controller.set_filters({"active": 1, "price": {"min": False}})
    assert controller.state.filters["active"] == 1
    assert controller.state.filters["price"]["min"] is False
    assert len(events) == 4


def test_unchanged_values_notify_nobody(controller, events):
    controller.set_page(1)
    controller.set_search("")
    controller.set_filter("missing", None)
    controller.set_sorting([])
    controller.set_selection([])
    assert events == []
    assert controller.generation == 0


def test_sorting_keeps_page_and_order(controller):
    controller.set_page(2)
    controller.set_sorting([("price", "desc"), {"field": "name"}])
    assert controller.page == 2
    assert controller.state.sorting == [SortSpec("price", "desc"), SortSpec("name", "asc")]


def test_max_sort_keys():
    controller = TableStateController(max_sort_keys=1)
    controller.set_sorting([SortSpec("price", "desc"), SortSpec("name")])
    assert controller.state.sorting == [SortSpec("price", "desc")]


def test_page_size_keeps_first_visible_row(controller):
    controller.set_page(3)  # rows 41..60
    controller.set_page_size(50)
    assert controller.page == 1
    controller.set_page(2)  # rows 51..100
    controller.set_page_size(10)
    assert controller.page == 6


def test_invalid_pagination(controller):
    with pytest.raises(ValueError):
        controller.set_page(0)
    with pytest.raises(ValueError):
        controller.set_page_size(0)


def test_selection_does_not_bump_generation(controller, events):
    controller.set_selection(["a", "b"])
    assert controller.generation == 0
    assert events[-1][1] == frozenset({"selection"})


def test_selection_cleared_on_query_change_when_not_preserved():
    controller = TableStateController(preserve_selection=False)
    controller.set_selection(["a"])
    controller.set_search("x")
    assert controller.selection == frozenset()


def test_selection_preserved_by_default(controller):
    controller.set_selection(["a"])
    controller.set_filter("status", "active")
    assert controller.selection == {"a"}


def test_state_snapshot_is_a_copy(controller):
    snapshot = controller.state
    snapshot.filters["x"] = 1
    snapshot.selection.add("a")
    assert controller.state.filters == {}
    assert controller.state.selection == set()


def test_unsubscribe(controller):
    received = []
    unsubscribe = controller.subscribe(lambda state, changed: received.append(changed))
    unsubscribe()
    controller.set_page(2)
    assert received == []


def test_reset(controller):
    controller.set_page_size(50)
    controller.set_filter("status", "active")
    controller.set_selection(["a"])
    controller.reset()
    state = controller.state
    assert state.pagination == Pagination(page=1, page_size=20)
    assert state.filters == {}
    assert state.selection == set()


def test_params(controller):
    controller.set_sorting([("price", "desc")])
    controller.set_filter("category", ["books"])
    controller.set_search("lamp")
    params = controller.params()
    assert params.pagination == Pagination(1, 20)
    assert params.sorting == (SortSpec("price", "desc"),)
    assert params.filters == {"category": ["books"]}
    assert params.search == "lamp"
