"""Tests for materialising sorted column order."""

from kanbn.column_sort import apply_column_sorting, sort_column, sorted_columns
from kanbn.models import Index, Sorter, Task


def _index(**options):
    return Index(
        name="P",
        options=options,
        columns={"Todo": ("charlie", "alpha", "bravo"), "Done": ("zulu", "yankee")},
    )


def _tasks():
    return [Task(name=name) for name in ("alpha", "bravo", "charlie", "yankee", "zulu")]


def test_sort_column():
    index = sort_column(_index(), _tasks(), "Todo", [Sorter("name")])
    assert index.columns["Todo"] == ("alpha", "bravo", "charlie")
    assert index.columns["Done"] == ("zulu", "yankee")


def test_sort_column_keeps_unloaded_ids_last():
    tasks = [Task(name="bravo"), Task(name="charlie")]
    index = sort_column(_index(), tasks, "Todo", [Sorter("name", order="descending")])
    assert index.columns["Todo"] == ("charlie", "bravo", "alpha")


def test_sorted_columns_ignores_missing_columns():
    index = _index(columnSorting={"Todo": [{"field": "name"}], "Gone": [{"field": "name"}]})
    assert list(sorted_columns(index)) == ["Todo"]


def test_apply_column_sorting_only_touches_listed_columns():
    index = _index(columnSorting={"Done": [{"field": "name", "order": "ascending"}]})
    result = apply_column_sorting(index, _tasks())
    assert result.columns["Done"] == ("yankee", "zulu")
    assert result.columns["Todo"] == ("charlie", "alpha", "bravo")


def test_apply_column_sorting_without_rules():
    index = _index()
    assert apply_column_sorting(index, _tasks()) == index
