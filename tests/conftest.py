"""
Shared pytest fixtures for worktrack tests.

Provides an in-memory recording store so engine tests don't touch disk,
and helpers for building items and on-disk work directories.
"""

from dataclasses import replace
from datetime import datetime, timezone
from pathlib import Path
from typing import Optional

import pytest

from worktrack.errors import WriteFailure
from worktrack.markdown_store import MarkdownStore
from worktrack.types import WorkItem


def make_item(
    id: str,
    summary: str = "",
    content: str = "",
    *,
    type: str = "plan",
    schedule: str = "now",
    tags: tuple[str, ...] = (),
    status: str = "active",
    related: Optional[list[str]] = None,
    **kwargs,
) -> WorkItem:
    metadata = {"status": status}
    if related is not None:
        metadata["related_items"] = list(related)
    return WorkItem(
        id=id,
        type=type,
        summary=summary,
        content=content,
        schedule=schedule,
        technical_tags=tuple(tags),
        created_at=datetime(2025, 3, 14, 9, 30, tzinfo=timezone.utc),
        metadata=metadata,
        **kwargs,
    )


class RecordingStore:
    """
    In-memory WorkItemStore that records every write.

    ``fail_on`` makes the Nth write (1-based) raise WriteFailure.
    """

    def __init__(self, items: Optional[list[WorkItem]] = None, fail_on: Optional[int] = None):
        self.items = {item.id: item for item in (items or [])}
        self.writes: list[WorkItem] = []
        self.fail_on = fail_on

    def list_all_work_items(self) -> list[WorkItem]:
        return [item for item in self.items.values() if not item.is_archived]

    def write_work_item(self, item: WorkItem) -> WorkItem:
        if self.fail_on is not None and len(self.writes) + 1 == self.fail_on:
            raise WriteFailure(f"disk full writing {item.id}", item_id=item.id, operation="write_work_item")
        filename = item.filename or item.default_filename()
        written = replace(item, filename=filename, filepath=Path("/mem") / filename)
        self.writes.append(written)
        self.items[item.id] = written
        return written

    def search_work_items(self, query: str) -> list[WorkItem]:
        q = query.lower()
        return [i for i in self.list_all_work_items() if q in i.summary.lower()]

    def get_work_item(self, id: str) -> Optional[WorkItem]:
        return self.items.get(id)


@pytest.fixture
def recording_store():
    """Factory for RecordingStore instances."""
    return RecordingStore


@pytest.fixture
def work_dir(tmp_path):
    """An empty work directory."""
    path = tmp_path / ".claude-work"
    path.mkdir()
    return path


@pytest.fixture
def markdown_store(work_dir):
    return MarkdownStore(work_dir)


def caching_pair() -> tuple[WorkItem, WorkItem]:
    """Two plans that describe the same caching work (score above 0.9)."""
    first = make_item(
        "plan-aaa111",
        "Add caching layer",
        "Introduce redis caching for the session lookup endpoint",
        tags=("performance", "backend"),
        filename="plan-add-caching-layer-2025-03-14-aaa111.md",
    )
    second = make_item(
        "plan-bbb222",
        "Add caching layer",
        "Introduce redis caching for the session lookup endpoint and profile results",
        tags=("performance", "backend"),
        filename="plan-add-caching-layer-2025-03-14-bbb222.md",
    )
    return first, second
