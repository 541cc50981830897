"""Tests for the task document codec and task edits."""

from datetime import datetime, timezone

import pytest

from kanbn.errors import (
    DomainRuleError,
    EmptyDocumentError,
    MissingNameHeading,
    SchemaValidationError,
    SemanticDateError,
    SemanticNumberError,
    StructuralParseError,
)
from kanbn.model.task import (
    add_comment,
    add_relation,
    add_sub_task,
    add_tags,
    decode_task,
    encode_task,
    remove_relation,
    remove_sub_task,
    remove_tags,
    set_metadata,
    set_sub_task_completed,
)
from kanbn.models import Comment, Relation, SubTask, Task

WHEN = datetime(2020, 1, 1, tzinfo=timezone.utc)


def test_decode_name_only():
    task = decode_task("# Name")
    assert task == Task(name="Name")
    assert task.id == "name"


def test_decode_sub_tasks():
    task = decode_task("# Name\n\n## Sub-tasks\n\n- [ ] one\n- [x] two")
    assert task.sub_tasks == (SubTask(text="one", completed=False), SubTask(text="two", completed=True))
    assert task.description == ""


def test_decode_relations():
    task = decode_task("# Name\n\n## Relations\n\n- [blocks my-task](my-task.md)\n- my-task\n- [duplicate of other](other.md)")
    assert task.relations == (
        Relation(task="my-task", type="blocks"),
        Relation(task="my-task", type=""),
        Relation(task="other", type="duplicate of"),
    )


def test_decode_comments():
    text = (
        "# Name\n\n## Comments\n\n"
        "- author: Someone\n  date: 2020-01-01T00:00:00.000Z\n  First line\n  second line\n"
        "- Anonymous remark"
    )
    task = decode_task(text)
    assert task.comments == (
        Comment(text="First line\nsecond line", author="Someone", date=WHEN),
        Comment(text="Anonymous remark"),
    )


def test_decode_bad_comment_date():
    with pytest.raises(SemanticDateError, match="unable to parse comment date"):
        decode_task("# Name\n\n## Comments\n\n- date: whenever\n  text")


def test_decode_metadata():
    text = "---\ncreated: 2020-01-01T00:00:00.000Z\ndue: '2020-02-01'\nprogress: 0.5\ntags:\n  - Small\n---\n# Name\n"
    task = decode_task(text)
    assert task.metadata == {
        "created": WHEN,
        "due": datetime(2020, 2, 1, tzinfo=timezone.utc),
        "progress": 0.5,
        "tags": ["Small"],
    }


def test_decode_metadata_section_overrides_front_matter():
    text = "---\nassigned: a\ntags: [x]\n---\n# Name\n\n## Metadata\n\n```yaml\nassigned: b\n```\n"
    task = decode_task(text)
    assert task.metadata == {"assigned": "b", "tags": ["x"]}
    assert task.description == ""


def test_decode_bad_date():
    with pytest.raises(SemanticDateError, match="Unable to parse task: unable to parse due date"):
        decode_task("---\ndue: not a date\n---\n# Name\n")


def test_decode_bad_progress():
    with pytest.raises(SemanticNumberError, match="progress value is not numeric"):
        decode_task("---\nprogress: .nan\n---\n# Name\n")


def test_decode_bad_metadata_shape():
    with pytest.raises(SchemaValidationError, match="tags"):
        decode_task("---\ntags: Small\n---\n# Name\n")


def test_decode_assigned_must_be_text():
    with pytest.raises(SchemaValidationError, match="assigned"):
        decode_task("---\nassigned: 123\n---\n# Name\n")


def test_decode_sub_tasks_not_a_list():
    with pytest.raises(StructuralParseError, match="sub-tasks must contain a list"):
        decode_task("# Name\n\n## Sub-tasks\n\nnot a list")


def test_decode_description_keeps_other_sections():
    text = "Preamble\n\n# Name\n\nBody\n\n## Notes\n\nNote text\n\n## Sub-tasks\n\n- [ ] a\n\n# Extra\n\nMore"
    task = decode_task(text)
    assert task.name == "Name"
    assert task.description == "Preamble\n\nBody\n\n## Notes\n\nNote text\n\nMore"


def test_decode_errors():
    with pytest.raises(EmptyDocumentError):
        decode_task("")
    with pytest.raises(MissingNameHeading):
        decode_task("text only")
    with pytest.raises(TypeError):
        decode_task(5)


def test_encode_full():
    task = Task(
        name="My Task",
        description="Something to do",
        metadata={"created": WHEN, "tags": ["Small"]},
        sub_tasks=(SubTask("one"), SubTask("two", completed=True)),
        relations=(Relation("other", "blocks"), Relation("plain")),
        comments=(Comment("Hello\nworld", author="Me", date=WHEN),),
    )
    assert encode_task(task) == (
        "---\ncreated: 2020-01-01T00:00:00.000Z\ntags:\n- Small\n---\n\n"
        "# My Task\n\nSomething to do\n\n"
        "## Sub-tasks\n\n- [ ] one\n- [x] two\n\n"
        "## Relations\n\n- [blocks other](other.md)\n- [plain](plain.md)\n\n"
        "## Comments\n\n- author: Me\n  date: 2020-01-01T00:00:00.000Z\n  Hello\n  world\n"
    )


def test_encode_rejects_string_dates():
    with pytest.raises(SchemaValidationError, match="Unable to build task"):
        encode_task(Task(name="X", metadata={"due": "tomorrow"}))


def test_round_trip():
    task = Task(
        name="Round Trip",
        description="Body\n\n## Notes\n\nDetails",
        metadata={"created": WHEN, "progress": 0.25, "assigned": "someone", "tags": ["a", "b"]},
        sub_tasks=(SubTask("check", True),),
        relations=(Relation("other-task", "blocked by"),),
        comments=(Comment("First"), Comment("Second", author="X", date=WHEN)),
    )
    text = encode_task(task)
    assert decode_task(text) == task
    assert encode_task(decode_task(text)) == text


def test_set_metadata_removes_none():
    task = Task(name="X", metadata={"assigned": "me"})
    task = set_metadata(task, assigned=None, due=datetime(2020, 1, 1, 5, 0, 0, 999999))
    assert task.metadata == {"due": datetime(2020, 1, 1, 5, 0, 0, 999000, tzinfo=timezone.utc)}


def test_tags():
    task = add_tags(Task(name="X"), "a", "b", "a")
    assert task.metadata["tags"] == ["a", "b"]
    task = remove_tags(task, "a", "b")
    assert "tags" not in task.metadata
    with pytest.raises(DomainRuleError):
        remove_tags(task, "a")


def test_sub_task_edits():
    task = add_sub_task(Task(name="X"), " write tests ")
    assert task.sub_tasks == (SubTask("write tests"),)
    task = set_sub_task_completed(task, "write tests")
    assert task.sub_tasks[0].completed
    task = remove_sub_task(task, "write tests")
    assert task.sub_tasks == ()
    with pytest.raises(DomainRuleError):
        remove_sub_task(task, "write tests")
    with pytest.raises(DomainRuleError):
        add_sub_task(task, "  ")


def test_relation_edits():
    task = add_relation(Task(name="X"), "y", "blocks")
    assert add_relation(task, "y", "blocks") == task
    task = add_relation(task, "y", "duplicates")
    assert remove_relation(task, "y", "blocks").relations == (Relation("y", "duplicates"),)
    assert remove_relation(task, "y").relations == ()
    with pytest.raises(DomainRuleError):
        remove_relation(task, "z")


def test_add_comment():
    task = add_comment(Task(name="X"), " hi ", author="me", when=WHEN)
    assert task.comments == (Comment("hi", "me", WHEN),)
    with pytest.raises(DomainRuleError, match="Comment text cannot be empty"):
        add_comment(task, "")
