"""
Protocol for the storage backend used by the consolidation engine.

Implemented by:
- MarkdownStore (markdown files with YAML frontmatter in a work directory)
- in-memory recording stores in the test suite
"""

from typing import Optional, Protocol, runtime_checkable

from .types import WorkItem


@runtime_checkable
class WorkItemStore(Protocol):
    """Reads and writes work items. Single process, no locking."""

    def list_all_work_items(self) -> list[WorkItem]:
        """Every comparable item, regardless of schedule or type.

        Raises LoadFailure if the items cannot be enumerated.
        """
        ...

    def write_work_item(self, item: WorkItem) -> WorkItem:
        """Persist an item, returning it with its final location filled in.

        Raises WriteFailure if the item cannot be persisted.
        """
        ...

    def search_work_items(self, query: str) -> list[WorkItem]: ...

    def get_work_item(self, id: str) -> Optional[WorkItem]: ...
