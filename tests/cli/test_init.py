"""Tests for 'kanbn init' command."""

import json
from argparse import Namespace

from kanbn.cli.board import init_board
from tests.conftest import read_index


def test_init_creates_board(tmp_path, capsys):
    args = Namespace(root=str(tmp_path), json=False, name=None, description=None, column=None)
    assert init_board(args) == 0

    out = capsys.readouterr().out
    assert "Initialised board Project Name" in out
    assert "Backlog, Todo, In Progress, Done" in out
    assert "# Project Name" in read_index(tmp_path)


def test_init_creates_board_json(tmp_path, capsys):
    args = Namespace(root=str(tmp_path), json=True, name="Work", description="Things", column=["A", "B"])
    assert init_board(args) == 0

    data = json.loads(capsys.readouterr().out)
    assert data["created"] is True
    assert data["name"] == "Work"
    assert data["columns"] == ["A", "B"]


def test_init_existing_board(board_root, capsys):
    args = Namespace(root=str(board_root), json=False, name="Renamed", description=None, column=["Review"])
    assert init_board(args) == 0

    out = capsys.readouterr().out
    assert "Updated board Renamed" in out
    text = read_index(board_root)
    assert "# Renamed" in text
    assert "## Review" in text
    assert "- [first-task](tasks/first-task.md)" in text


def test_init_idempotent(board_root, capsys):
    before = read_index(board_root)
    args = Namespace(root=str(board_root), json=True, name=None, description=None, column=None)
    assert init_board(args) == 0

    data = json.loads(capsys.readouterr().out)
    assert data["created"] is False
    assert data["name"] == "Test Board"
    assert read_index(board_root) == before
