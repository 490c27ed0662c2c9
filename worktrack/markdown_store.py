"""
Work item store backed by markdown files.

Each file is YAML frontmatter followed by a markdown body::

    ---
    id: plan-123
    type: plan
    summary: Add caching layer
    schedule: now
    technical_tags: [performance, backend]
    metadata:
      status: active
      related_items: []
    ---

    Body text...

Directory layout under the work directory:

    items/now/ items/next/ items/later/   scheduled items
    items/unscheduled/                    items with an unknown schedule
    decisions/active/                     decisions, whatever their schedule
    items/merged/                         items archived by consolidation
"""

import logging
import re
from dataclasses import replace
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Optional

import yaml

from .errors import LoadFailure, WriteFailure
from .types import ItemType, Schedule, Status, WorkItem, value_of

logger = logging.getLogger(__name__)


_FRONTMATTER_RE = re.compile(r"^---\n(.*?)\n---\n(.*)$", re.DOTALL)

MERGED_DIR = Path("items") / "merged"
DECISIONS_DIR = Path("decisions") / "active"
UNSCHEDULED_DIR = Path("items") / "unscheduled"

# Directories scanned by list_all_work_items(); the merged archive is not
LIVE_DIRS = (
    *(Path("items") / s.value for s in Schedule),
    UNSCHEDULED_DIR,
    DECISIONS_DIR,
)


def parse_work_item(text: str, path: Optional[Path] = None) -> WorkItem:
    """
    Parse markdown with YAML frontmatter into a WorkItem.

    Raises:
        ValueError: If there is no frontmatter or it lacks an id
        yaml.YAMLError: If the frontmatter is not valid YAML
    """
    match = _FRONTMATTER_RE.match(text.replace("\r\n", "\n"))
    if not match:
        raise ValueError("invalid markdown format: no frontmatter found")

    data = yaml.safe_load(match.group(1))
    if not isinstance(data, dict):
        raise ValueError("frontmatter is not a mapping")
    if not data.get("id"):
        raise ValueError("frontmatter has no id")

    tags = data.get("technical_tags") or []
    if isinstance(tags, str):
        tags = [tags]

    return WorkItem(
        id=str(data["id"]),
        type=str(data.get("type") or ""),
        summary=str(data.get("summary") or ""),
        content=match.group(2).strip(),
        schedule=str(data.get("schedule") or ""),
        technical_tags=tuple(str(t) for t in tags),
        session_number=str(data.get("session_number") or ""),
        created_at=_as_datetime(data.get("created_at")),
        updated_at=_as_datetime(data.get("updated_at")),
        git_context=dict(data.get("git_context") or {}),
        metadata=dict(data.get("metadata") or {}),
        filename=path.name if path else "",
        filepath=path,
    )


def render_work_item(item: WorkItem) -> str:
    """Serialize a WorkItem to frontmatter + body."""
    frontmatter = {
        "id": item.id,
        "type": value_of(item.type),
        "summary": item.summary,
        "schedule": value_of(item.schedule),
        "technical_tags": list(item.technical_tags),
        "session_number": item.session_number,
        "created_at": item.created_at,
        "updated_at": item.updated_at,
        "git_context": item.git_context,
        "metadata": item.metadata,
    }
    header = yaml.safe_dump(
        frontmatter,
        default_flow_style=False,
        sort_keys=False,
        allow_unicode=True,
        indent=2,
    )
    body = item.content if item.content.endswith("\n") else item.content + "\n"
    return f"---\n{header}---\n\n{body}"


def _as_datetime(value: Any) -> Optional[datetime]:
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        return value
    try:
        return datetime.fromisoformat(str(value).replace("Z", "+00:00"))
    except ValueError:
        logger.debug("Ignoring unparseable timestamp %r", value)
        return None


class MarkdownStore:
    """
    Reads and writes work items under a work directory.

    Relocation (schedule change or archival) writes the new file before
    removing the old one, so an interrupted move leaves a duplicate
    rather than losing content.
    """

    def __init__(self, work_dir: Path):
        self.work_dir = Path(work_dir)

    def directory_for(self, item: WorkItem) -> Path:
        """Where an item lives, from its status, type and schedule."""
        if item.status == Status.ARCHIVED.value:
            return self.work_dir / MERGED_DIR
        if value_of(item.type) == ItemType.DECISION.value:
            return self.work_dir / DECISIONS_DIR
        schedule = value_of(item.schedule)
        if schedule in {s.value for s in Schedule}:
            return self.work_dir / "items" / schedule
        return self.work_dir / UNSCHEDULED_DIR

    def read_work_item(self, path: Path) -> WorkItem:
        return parse_work_item(Path(path).read_text(encoding="utf-8"), Path(path))

    def _list_dir(self, directory: Path) -> list[WorkItem]:
        if not directory.exists():
            return []
        try:
            paths = sorted(p for p in directory.iterdir() if p.suffix == ".md")
        except OSError as e:
            raise LoadFailure(f"list_all_work_items: cannot read {directory}: {e}") from e

        items = []
        for path in paths:
            try:
                items.append(self.read_work_item(path))
            except (OSError, UnicodeDecodeError, ValueError, yaml.YAMLError) as e:
                logger.warning("Skipping unreadable work item %s: %s", path, e)
        return items

    def list_all_work_items(self) -> list[WorkItem]:
        items = []
        for rel in LIVE_DIRS:
            items.extend(self._list_dir(self.work_dir / rel))
        logger.debug("Loaded %d work items from %s", len(items), self.work_dir)
        return items

    def list_merged_items(self) -> list[WorkItem]:
        return self._list_dir(self.work_dir / MERGED_DIR)

    def get_work_item(self, id: str) -> Optional[WorkItem]:
        for item in self.list_all_work_items():
            if item.id == id:
                return item
        return None

    def search_work_items(self, query: str) -> list[WorkItem]:
        """Case-insensitive substring search over summary, content and tags."""
        q = query.lower()
        return [
            item for item in self.list_all_work_items()
            if q in item.summary.lower()
            or q in item.content.lower()
            or any(q in tag.lower() for tag in item.technical_tags)
        ]

    def write_work_item(self, item: WorkItem) -> WorkItem:
        filename = item.filename or item.default_filename()
        directory = self.directory_for(item)
        target = directory / filename
        written = replace(
            item,
            filename=filename,
            filepath=target,
            updated_at=datetime.now(timezone.utc).replace(microsecond=0),
        )

        try:
            directory.mkdir(parents=True, exist_ok=True)
            target.write_text(render_work_item(written), encoding="utf-8")
        except (OSError, yaml.YAMLError) as e:
            raise WriteFailure(
                f"write_work_item: failed to write {item.id} to {target}: {e}",
                item_id=item.id,
                operation="write_work_item",
            ) from e

        previous = Path(item.filepath) if item.filepath else None
        if previous is not None and previous.resolve() != target.resolve():
            try:
                previous.unlink(missing_ok=True)
            except OSError as e:
                raise WriteFailure(
                    f"write_work_item: wrote {target} but could not remove old copy {previous}: {e}",
                    item_id=item.id,
                    operation="write_work_item",
                ) from e
            logger.info("Moved %s: %s -> %s", item.id, previous, target)

        logger.debug("Wrote %s to %s", item.id, target)
        return written
