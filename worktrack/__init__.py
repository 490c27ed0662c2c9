"""
Work item consolidation.

Finds work items (markdown files with YAML frontmatter) that describe the
same piece of work and merges or cross-references them.

Quick Start:
    from worktrack import ConsolidationEngine, MarkdownStore

    engine = ConsolidationEngine(MarkdownStore(Path(".claude-work")))
    for candidate in engine.find_candidates():
        print(candidate.similarity_score, candidate.merge_strategy)

CLI Usage:
    consolidate analyze
    consolidate interactive
    consolidate merge <id1> <id2>

Environment Variables:
    WORK_DIR            - Work directory (default: .claude-work)
    WORKTRACK_VERBOSE   - Set to 1 for debug logging
"""

from .config import ConsolidationConfig, ScoreWeights
from .consolidation import (
    CandidateAnalyzer,
    CandidateFinder,
    ConsolidationEngine,
    ConsolidationExecutor,
)
from .markdown_store import MarkdownStore
from .similarity import SimilarityScorer
from .text import normalize
from .types import (
    ConsolidationCandidate,
    ItemType,
    MergeStrategy,
    Schedule,
    Status,
    WorkItem,
)

__all__ = [
    "CandidateAnalyzer",
    "CandidateFinder",
    "ConsolidationCandidate",
    "ConsolidationConfig",
    "ConsolidationEngine",
    "ConsolidationExecutor",
    "ItemType",
    "MarkdownStore",
    "MergeStrategy",
    "Schedule",
    "ScoreWeights",
    "SimilarityScorer",
    "Status",
    "WorkItem",
    "normalize",
]
