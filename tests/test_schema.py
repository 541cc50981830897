"""Tests for schema validation."""

from datetime import date, datetime, timezone

import pytest

from kanbn import schema
from kanbn.errors import SchemaValidationError


def test_options_valid():
    schema.check(
        {
            "hiddenColumns": ["Archive"],
            "sprints": [{"start": date(2020, 1, 1), "name": "Sprint 1"}],
            "columnSorting": {"Todo": [{"field": "name", "order": "descending"}]},
            "customFields": [{"name": "reviewed", "type": "boolean"}],
        },
        schema.OPTIONS,
    )


def test_options_lists_every_problem():
    with pytest.raises(SchemaValidationError) as excinfo:
        schema.check(
            {
                "hiddenColumns": "Archive",
                "defaultTaskWorkload": "lots",
                "sprints": [{"name": "no start"}],
            },
            schema.OPTIONS,
        )
    errors = excinfo.value.errors
    assert len(errors) == 3
    assert errors[0].startswith("defaultTaskWorkload ")
    assert errors[1].startswith("hiddenColumns ")
    assert errors[2].startswith("sprints[0] ")
    assert "'start' is a required property" in errors[2]


def test_sorter_order_enum():
    with pytest.raises(SchemaValidationError, match="columnSorting.Todo\\[0\\].order"):
        schema.check({"columnSorting": {"Todo": [{"field": "name", "order": "up"}]}}, schema.OPTIONS)


def test_date_type_accepts_dates_and_datetimes():
    schema.check({"due": date(2020, 1, 1)}, schema.METADATA_OUT)
    schema.check({"due": datetime(2020, 1, 1, tzinfo=timezone.utc)}, schema.METADATA_OUT)


def test_metadata_out_rejects_string_dates():
    with pytest.raises(SchemaValidationError, match="due"):
        schema.check({"due": "2020-01-01"}, schema.METADATA_OUT)


def test_metadata_in_accepts_string_dates():
    schema.check({"due": "tomorrow", "tags": ["a"]}, schema.METADATA_IN)


def test_columns_must_hold_string_lists():
    schema.check({"Todo": ["a", "b"], "Done": []}, schema.COLUMNS)
    with pytest.raises(SchemaValidationError):
        schema.check({"Todo": "a"}, schema.COLUMNS)


def test_comments_allow_missing_author():
    schema.check([{"text": "hi", "author": None, "date": None}], schema.COMMENTS)


def test_error_message_is_joined_errors():
    with pytest.raises(SchemaValidationError) as excinfo:
        schema.check({"tags": [1, 2]}, schema.METADATA_IN)
    assert str(excinfo.value) == "\n".join(excinfo.value.errors)
    assert all(e.startswith("tags[") for e in excinfo.value.errors)
