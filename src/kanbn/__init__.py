"""Markdown kanban boards: document codecs, task queries and board storage."""
