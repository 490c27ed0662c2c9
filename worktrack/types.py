"""
Data types for the work tracker.

Work items are markdown files with YAML frontmatter. The types here are
read-only snapshots of those files: to change an item, build a new value
with ``dataclasses.replace`` and hand it to the store.
"""

import re
from dataclasses import dataclass, field, replace
from datetime import datetime
from enum import Enum
from pathlib import Path
from typing import Any, Optional


class ItemType(str, Enum):
    """The five work item types. Consolidation only compares like with like."""
    PLAN = "plan"
    PROPOSAL = "proposal"
    ANALYSIS = "analysis"
    UPDATE = "update"
    DECISION = "decision"


class Schedule(str, Enum):
    """Schedule buckets, most urgent first."""
    NOW = "now"
    NEXT = "next"
    LATER = "later"

    @property
    def priority(self) -> int:
        return _SCHEDULE_PRIORITY[self.value]


class Status(str, Enum):
    DRAFT = "draft"
    ACTIVE = "active"
    COMPLETED = "completed"
    ARCHIVED = "archived"


class MergeStrategy(str, Enum):
    """
    How an approved candidate is consolidated.

    COMBINE_DETAILED behaves like MERGE_CONTENT and REFERENCE_ONLY like
    COMBINE_SUMMARY; the score bands are kept separate so the behaviours
    can diverge without changing the classification.
    """
    MERGE_CONTENT = "merge_content"
    COMBINE_DETAILED = "combine_detailed"
    COMBINE_SUMMARY = "combine_summary"
    REFERENCE_ONLY = "reference_only"


_SCHEDULE_PRIORITY = {"now": 1, "next": 2, "later": 3}

# Unknown or missing schedules sort after every real bucket
UNSCHEDULED_PRIORITY = 4


def value_of(v: Any) -> Any:
    """Plain value for an enum member, anything else unchanged."""
    return v.value if isinstance(v, Enum) else v


def schedule_priority(schedule: str) -> int:
    """Numeric urgency of a schedule string (lower is more urgent)."""
    try:
        return Schedule(value_of(schedule)).priority
    except ValueError:
        return UNSCHEDULED_PRIORITY


_SLUG_RE = re.compile(r"[^a-z0-9-]+")


@dataclass(frozen=True)
class WorkItem:
    """
    A work item loaded from (or destined for) a markdown file.

    Attributes:
        id: Globally unique identifier
        type: One of ItemType's values
        summary: Short free-text description
        content: Markdown body after the frontmatter
        schedule: One of Schedule's values (other strings are "unscheduled")
        technical_tags: Tags such as "backend" or "api"; compared case-insensitively
        metadata: Type-specific frontmatter. Holds ``status`` and
            ``related_items`` plus whatever else the file carried, which
            is written back untouched.
        filename / filepath: Location on disk, owned by the store
    """
    id: str
    type: str
    summary: str = ""
    content: str = ""
    schedule: str = ""
    technical_tags: tuple[str, ...] = ()
    session_number: str = ""
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None
    git_context: dict[str, Any] = field(default_factory=dict)
    metadata: dict[str, Any] = field(default_factory=dict)
    filename: str = ""
    filepath: Optional[Path] = None

    @property
    def status(self) -> str:
        return self.metadata.get("status") or ""

    @property
    def related_items(self) -> tuple[str, ...]:
        return tuple(self.metadata.get("related_items") or ())

    @property
    def is_completed(self) -> bool:
        return self.status == Status.COMPLETED.value

    @property
    def is_archived(self) -> bool:
        return self.status == Status.ARCHIVED.value

    def with_status(self, status: str) -> "WorkItem":
        metadata = dict(self.metadata)
        metadata["status"] = value_of(status)
        return replace(self, metadata=metadata)

    def with_related(self, other_id: str) -> "WorkItem":
        """Append a related item ID. Existing entries are never removed or deduplicated."""
        metadata = dict(self.metadata)
        metadata["related_items"] = [*self.related_items, other_id]
        return replace(self, metadata=metadata)

    def default_filename(self) -> str:
        """{type}-{brief-description}-{date}-{short-id}.md"""
        words = self.summary.lower().split()[:4]
        description = _SLUG_RE.sub("-", "-".join(words)).strip("-")
        date = self.created_at.strftime("%Y-%m-%d") if self.created_at else "undated"
        short_id = self.id[-6:]
        return f"{value_of(self.type)}-{description}-{date}-{short_id}.md"

    def __str__(self) -> str:
        return f"[{value_of(self.type)}/{value_of(self.schedule)}] {self.summary}"


@dataclass(frozen=True)
class ConsolidationCandidate:
    """
    A scored, not-yet-applied consolidation proposal for one pair of items.

    Built fresh on every search and never persisted.
    """
    item1: WorkItem
    item2: WorkItem
    similarity_score: float
    reason: str
    merge_strategy: MergeStrategy

    def to_dict(self) -> dict[str, Any]:
        def brief(item: WorkItem) -> dict[str, Any]:
            return {
                "id": item.id,
                "type": value_of(item.type),
                "schedule": value_of(item.schedule),
                "summary": item.summary,
            }
        return {
            "similarity": round(self.similarity_score, 4),
            "reason": self.reason,
            "strategy": self.merge_strategy.value,
            "item1": brief(self.item1),
            "item2": brief(self.item2),
        }
