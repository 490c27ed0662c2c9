"""
Consolidation of similar work items.

Pipeline:
- CandidateAnalyzer: score one pair and pick a merge strategy
- CandidateFinder: score every eligible pair, keep and rank the similar ones
- ConsolidationExecutor: apply an approved candidate through the store
- ConsolidationEngine: the three above wired to a store

Scoring is deterministic: the same items always yield the same candidates.
"""

import logging
from dataclasses import replace
from typing import Callable, Optional

from .config import ConsolidationConfig
from .errors import (
    ApprovalDenied,
    ConsolidationError,
    ItemNotFound,
    LoadFailure,
    StaleCandidate,
    UnknownStrategy,
    WriteFailure,
)
from .protocol import WorkItemStore
from .similarity import SimilarityScorer
from .text import TokenCache
from .types import (
    ConsolidationCandidate,
    MergeStrategy,
    Status,
    WorkItem,
    schedule_priority,
    value_of,
)

logger = logging.getLogger(__name__)


MERGED_FILENAME_PREFIX = "merged-"


class CandidateAnalyzer:
    """Combines the weighted sub-scores of a pair into one candidate."""

    def __init__(
        self,
        config: Optional[ConsolidationConfig] = None,
        scorer: Optional[SimilarityScorer] = None,
    ):
        self.config = config or ConsolidationConfig()
        self.scorer = scorer or SimilarityScorer(self.config)

    def analyze(
        self,
        item1: WorkItem,
        item2: WorkItem,
        cache: Optional[TokenCache] = None,
    ) -> ConsolidationCandidate:
        cfg = self.config
        weights = cfg.weights
        cache = cache or self.scorer.tokens()
        reasons = []

        summary_score = self.scorer.text_similarity(item1.summary, item2.summary, cache)
        if summary_score > cfg.summary_disclosure:
            reasons.append(f"Similar summaries ({summary_score * 100:.1f}%)")

        tag_score = self.scorer.tag_similarity(item1.technical_tags, item2.technical_tags)
        if tag_score > cfg.tags_disclosure:
            reasons.append(f"Overlapping tags ({tag_score * 100:.1f}%)")

        content_score = self.scorer.text_similarity(item1.content, item2.content, cache)
        if content_score > cfg.content_disclosure:
            reasons.append(f"Similar content ({content_score * 100:.1f}%)")

        schedule_score = self.scorer.schedule_compatibility(item1.schedule, item2.schedule)
        if schedule_score > cfg.schedule_disclosure:
            reasons.append("Compatible schedules")

        score = (
            weights.summary * summary_score
            + weights.tags * tag_score
            + weights.content * content_score
            + weights.schedule * schedule_score
        )
        # Guard against float drift past the ends of [0, 1]
        score = min(1.0, max(0.0, score))

        return ConsolidationCandidate(
            item1=item1,
            item2=item2,
            similarity_score=score,
            reason=", ".join(reasons),
            merge_strategy=self.classify(score),
        )

    def classify(self, score: float) -> MergeStrategy:
        cfg = self.config
        if score > cfg.merge_content_threshold:
            return MergeStrategy.MERGE_CONTENT
        if score > cfg.combine_detailed_threshold:
            return MergeStrategy.COMBINE_DETAILED
        if score > cfg.combine_summary_threshold:
            return MergeStrategy.COMBINE_SUMMARY
        return MergeStrategy.REFERENCE_ONLY


def is_comparable(item1: WorkItem, item2: WorkItem) -> bool:
    """Same type and neither completed."""
    if value_of(item1.type) != value_of(item2.type):
        return False
    return not (item1.is_completed or item2.is_completed)


class CandidateFinder:
    """Scores every comparable pair and ranks those above the acceptance threshold."""

    def __init__(self, analyzer: Optional[CandidateAnalyzer] = None):
        self.analyzer = analyzer or CandidateAnalyzer()

    def find(self, items: list[WorkItem]) -> list[ConsolidationCandidate]:
        threshold = self.analyzer.config.acceptance_threshold
        # Each text is tokenized once per pass, not once per pair
        cache = self.analyzer.scorer.tokens()
        candidates = []
        compared = 0

        for i in range(len(items)):
            for j in range(i + 1, len(items)):
                if not is_comparable(items[i], items[j]):
                    continue
                compared += 1
                candidate = self.analyzer.analyze(items[i], items[j], cache)
                if candidate.similarity_score > threshold:
                    candidates.append(candidate)

        # sorted() is stable: ties keep their pair enumeration order
        candidates = sorted(candidates, key=lambda c: c.similarity_score, reverse=True)
        logger.debug(
            "Compared %d pairs of %d items, %d candidates above %.2f",
            compared, len(items), len(candidates), threshold,
        )
        return candidates


def _merged_content(primary: WorkItem, secondary: WorkItem) -> str:
    return (
        f"{primary.content}\n"
        "\n"
        "## Merged Content\n"
        "\n"
        "The following content was merged from a similar work item:\n"
        "\n"
        f"{secondary.content}\n"
        "\n"
        "---\n"
        f"*Merged from item: {secondary.id}*\n"
        "*Original item archived with references preserved*"
    )


def _archived_content(item: WorkItem, merged_into: str) -> str:
    return (
        "# MERGED ITEM - ARCHIVED\n"
        "\n"
        f"This item was merged into: {merged_into}\n"
        "\n"
        "Original content preserved below:\n"
        "\n"
        "---\n"
        "\n"
        f"{item.content}"
    )


def _forward_reference(other: WorkItem) -> str:
    return (
        "\n"
        "\n"
        "## Related Work\n"
        "\n"
        f"This item is related to: {other.summary}\n"
        f"- Summary: {other.summary}\n"
        f"- Schedule: {value_of(other.schedule)}\n"
        f"- ID: {other.id}"
    )


def _backward_reference(other: WorkItem) -> str:
    return (
        "\n"
        "\n"
        "## Related Work\n"
        "\n"
        f"This item is related to: {other.summary} (ID: {other.id})"
    )


def merge_items(primary: WorkItem, secondary: WorkItem) -> WorkItem:
    """
    The primary item after absorbing the secondary.

    - summary: the longer of the two
    - tags: union, deduplicated case-insensitively, sorted
    - content: primary's, then a "Merged Content" section with secondary's
    - schedule: the more urgent of the two
    - related items: secondary's ID appended
    """
    summary = primary.summary
    if len(secondary.summary) > len(primary.summary):
        summary = secondary.summary

    tags: dict[str, str] = {}
    for tag in (*primary.technical_tags, *secondary.technical_tags):
        tags.setdefault(tag.lower(), tag)

    schedule = primary.schedule
    if schedule_priority(secondary.schedule) < schedule_priority(primary.schedule):
        schedule = secondary.schedule

    return replace(
        primary.with_related(secondary.id),
        summary=summary,
        technical_tags=tuple(sorted(tags.values())),
        content=_merged_content(primary, secondary),
        schedule=schedule,
    )


def archive_item(item: WorkItem, merged_into: str) -> WorkItem:
    """The secondary item marked archived, bannered, and renamed for the merged archive."""
    filename = item.filename or item.default_filename()
    if not filename.startswith(MERGED_FILENAME_PREFIX):
        filename = MERGED_FILENAME_PREFIX + filename
    return replace(
        item.with_status(Status.ARCHIVED),
        content=_archived_content(item, merged_into),
        filename=filename,
    )


class ConsolidationExecutor:
    """
    Applies approved candidates.

    Items are never mutated in place: each step builds new WorkItem
    values and the store persists them. Writes are sequential and not
    rolled back; a failure stops the remaining steps of that candidate.
    """

    def __init__(self, store: WorkItemStore):
        self.store = store
        self._handlers = self._strategy_handlers()
        missing = set(MergeStrategy) - set(self._handlers)
        if missing:
            names = ", ".join(sorted(s.value for s in missing))
            raise TypeError(f"merge strategies without a handler: {names}")

    def _strategy_handlers(self) -> dict[MergeStrategy, Callable[[ConsolidationCandidate], list[WorkItem]]]:
        return {
            MergeStrategy.MERGE_CONTENT: self._merge_content,
            MergeStrategy.COMBINE_DETAILED: self._merge_content,
            MergeStrategy.COMBINE_SUMMARY: self._cross_reference,
            MergeStrategy.REFERENCE_ONLY: self._cross_reference,
        }

    def execute(self, candidate: ConsolidationCandidate, approved: bool) -> list[WorkItem]:
        """
        Apply a candidate's strategy.

        Returns:
            The items as written, in write order

        Raises:
            ApprovalDenied: If not approved (nothing is written)
            UnknownStrategy: If the strategy has no handler
            WriteFailure: If a write fails; earlier writes stay applied
        """
        if not approved:
            raise ApprovalDenied("consolidation not approved by user")

        try:
            handler = self._handlers[MergeStrategy(candidate.merge_strategy)]
        except (KeyError, ValueError):
            raise UnknownStrategy(f"unknown merge strategy: {candidate.merge_strategy!r}") from None

        return handler(candidate)

    def _write(self, item: WorkItem, operation: str) -> WorkItem:
        try:
            return self.store.write_work_item(item)
        except (OSError, WriteFailure) as e:
            raise WriteFailure(
                f"{operation}: {e}", item_id=item.id, operation=operation,
            ) from e

    def _merge_content(self, candidate: ConsolidationCandidate) -> list[WorkItem]:
        primary, secondary = candidate.item1, candidate.item2
        strategy = value_of(candidate.merge_strategy)

        # The primary must be durable before the secondary is archived:
        # a crash in between leaves a duplicate, never a loss.
        merged = self._write(merge_items(primary, secondary), f"{strategy}: write merged item")
        archived = self._write(archive_item(secondary, merged.id), f"{strategy}: archive secondary item")

        logger.info(
            "Merged %s into %s (%s, score %.3f); archived to %s",
            secondary.id, primary.id, strategy, candidate.similarity_score, archived.filepath,
        )
        return [merged, archived]

    def _cross_reference(self, candidate: ConsolidationCandidate) -> list[WorkItem]:
        primary, secondary = candidate.item1, candidate.item2
        strategy = value_of(candidate.merge_strategy)

        forward = replace(
            primary.with_related(secondary.id),
            content=primary.content + _forward_reference(secondary),
        )
        backward = replace(
            secondary.with_related(primary.id),
            content=secondary.content + _backward_reference(primary),
        )
        written = [
            self._write(forward, f"{strategy}: write updated item"),
            self._write(backward, f"{strategy}: write related item"),
        ]

        logger.info(
            "Linked %s <-> %s (%s, score %.3f)",
            primary.id, secondary.id, strategy, candidate.similarity_score,
        )
        return written


class ConsolidationEngine:
    """
    Finds and applies consolidations over one store.

    The engine remembers what it wrote during its lifetime, so a batch of
    candidates computed up front is applied against current item state:
    later candidates see earlier merges, and candidates naming an item
    that was archived meanwhile are refused.
    """

    def __init__(
        self,
        store: WorkItemStore,
        config: Optional[ConsolidationConfig] = None,
    ):
        self.store = store
        self.config = config or ConsolidationConfig()
        self.analyzer = CandidateAnalyzer(self.config)
        self.finder = CandidateFinder(self.analyzer)
        self.executor = ConsolidationExecutor(store)
        self._written: dict[str, WorkItem] = {}

    def _load(self) -> list[WorkItem]:
        try:
            return self.store.list_all_work_items()
        except LoadFailure:
            raise
        except (OSError, ValueError) as e:
            raise LoadFailure(f"failed to load work items: {e}") from e

    def find_candidates(self) -> list[ConsolidationCandidate]:
        """Ranked candidates over every item in the store. Never mutates anything."""
        return self.finder.find(self._load())

    def _current(self, item: WorkItem) -> WorkItem:
        current = self._written.get(item.id, item)
        if current.is_archived:
            raise StaleCandidate(f"{item.id} was archived by an earlier consolidation")
        return current

    def perform_consolidation(
        self,
        candidate: ConsolidationCandidate,
        approved: bool,
    ) -> list[WorkItem]:
        if not approved:
            raise ApprovalDenied("consolidation not approved by user")
        candidate = replace(
            candidate,
            item1=self._current(candidate.item1),
            item2=self._current(candidate.item2),
        )
        written = self.executor.execute(candidate, approved)
        for item in written:
            self._written[item.id] = item
        return written

    def merge_pair(self, id1: str, id2: str) -> ConsolidationCandidate:
        """
        Score two specific items, bypassing the acceptance threshold.

        The first ID is the primary. Items of different types may be
        paired explicitly; completed items may not.
        """
        if id1 == id2:
            raise ValueError(f"cannot consolidate {id1} with itself")
        items = {item.id: item for item in self._load()}
        pair = []
        for id in (id1, id2):
            if id not in items:
                raise ItemNotFound(f"work item not found: {id}")
            item = items[id]
            if item.is_completed:
                raise ConsolidationError(f"{id} is completed and cannot be consolidated")
            pair.append(item)
        return self.analyzer.analyze(pair[0], pair[1])
