"""
Configuration for the consolidation engine.

Scoring rules (stop words, schedule compatibility, weights, thresholds)
are immutable data handed to the scorer and analyzer at construction, so
tests and users can substitute them without touching module state.

Overrides are stored as a TOML file in the work directory.
"""

import math
import os
import tomllib
from dataclasses import dataclass, field, fields
from datetime import datetime, timezone
from pathlib import Path
from types import MappingProxyType
from typing import Any, Mapping, Optional

import tomli_w


CONFIG_FILENAME = "worktrack.toml"
CONFIG_VERSION = 1

DEFAULT_WORK_DIR = ".claude-work"
WORK_DIR_ENV = "WORK_DIR"


DEFAULT_STOP_WORDS = frozenset({
    "the", "a", "an", "and", "or", "but",
    "in", "on", "at", "to", "for", "of",
    "with", "by", "is", "are", "was", "were",
    "be", "been", "have", "has", "had", "do",
    "does", "did", "will", "would", "could", "should",
    "may", "might", "must", "can", "this", "that",
    "these", "those", "we", "us", "our", "you",
    "your", "i", "me", "my", "it", "its",
})


def _symmetric(pairs: dict[tuple[str, str], float]) -> Mapping[tuple[str, str], float]:
    table = {}
    for (a, b), score in pairs.items():
        table[(a, b)] = score
        table[(b, a)] = score
    return MappingProxyType(table)


# Equal schedules always score 1.0; pairs missing here score 0.0
DEFAULT_SCHEDULE_COMPATIBILITY = _symmetric({
    ("now", "next"): 0.7,
    ("next", "later"): 0.8,
    ("now", "later"): 0.3,
})


@dataclass(frozen=True)
class ScoreWeights:
    """Weight of each sub-score in the composite. Must sum to 1.0."""
    summary: float = 0.40
    tags: float = 0.25
    content: float = 0.25
    schedule: float = 0.10

    def __post_init__(self):
        values = [getattr(self, f.name) for f in fields(self)]
        if any(v < 0 for v in values):
            raise ValueError(f"Score weights must be non-negative: {self}")
        if not math.isclose(sum(values), 1.0, abs_tol=1e-9):
            raise ValueError(f"Score weights must sum to 1.0, got {sum(values):.4f}")


@dataclass(frozen=True)
class ConsolidationConfig:
    """
    Rule tables and thresholds for similarity scoring.

    Disclosure thresholds decide when a sub-score is mentioned in the
    candidate's reason. The acceptance threshold decides which pairs
    become candidates at all. The three strategy thresholds split the
    composite score into the four merge strategy bands.
    """
    weights: ScoreWeights = field(default_factory=ScoreWeights)

    summary_disclosure: float = 0.7
    tags_disclosure: float = 0.5
    content_disclosure: float = 0.5
    schedule_disclosure: float = 0.5

    acceptance_threshold: float = 0.6

    merge_content_threshold: float = 0.9
    combine_detailed_threshold: float = 0.8
    combine_summary_threshold: float = 0.7

    min_token_length: int = 3
    stop_words: frozenset[str] = DEFAULT_STOP_WORDS
    schedule_compatibility: Mapping[tuple[str, str], float] = field(
        default_factory=lambda: DEFAULT_SCHEDULE_COMPATIBILITY
    )

    def __post_init__(self):
        bands = (
            self.merge_content_threshold,
            self.combine_detailed_threshold,
            self.combine_summary_threshold,
        )
        if list(bands) != sorted(bands, reverse=True):
            raise ValueError(f"Strategy thresholds must be descending: {bands}")
        if self.min_token_length < 1:
            raise ValueError("min_token_length must be at least 1")


# Scalar fields that may be overridden from the [consolidation] table
_SCALAR_FIELDS = (
    "summary_disclosure",
    "tags_disclosure",
    "content_disclosure",
    "schedule_disclosure",
    "acceptance_threshold",
    "merge_content_threshold",
    "combine_detailed_threshold",
    "combine_summary_threshold",
    "min_token_length",
)


@dataclass
class StoreConfig:
    """Work directory plus the consolidation settings that apply to it."""
    path: Path
    version: int = CONFIG_VERSION
    created: str = field(default_factory=lambda: datetime.now(timezone.utc).isoformat())
    consolidation: ConsolidationConfig = field(default_factory=ConsolidationConfig)

    @property
    def config_path(self) -> Path:
        return self.path / CONFIG_FILENAME

    def exists(self) -> bool:
        return self.config_path.exists()


def get_work_dir(explicit: Optional[Path] = None) -> Path:
    """
    Resolve the work directory.

    Priority:
    1. Explicit path (--work-dir)
    2. WORK_DIR environment variable
    3. .claude-work in the current directory
    """
    if explicit is not None:
        return Path(explicit)
    env = os.environ.get(WORK_DIR_ENV)
    if env:
        return Path(env)
    return Path(DEFAULT_WORK_DIR)


def load_config(work_dir: Path) -> StoreConfig:
    """
    Load configuration from a work directory.

    Raises:
        FileNotFoundError: If config doesn't exist
        ValueError: If config is invalid
    """
    config_path = work_dir / CONFIG_FILENAME

    if not config_path.exists():
        raise FileNotFoundError(f"Config not found: {config_path}")

    with open(config_path, "rb") as f:
        data = tomllib.load(f)

    version = data.get("store", {}).get("version", 1)
    if version > CONFIG_VERSION:
        raise ValueError(f"Config version {version} is newer than supported ({CONFIG_VERSION})")

    section = data.get("consolidation", {})
    overrides: dict[str, Any] = {k: section[k] for k in _SCALAR_FIELDS if k in section}
    if "weights" in section:
        overrides["weights"] = ScoreWeights(**section["weights"])
    if "stop_words" in section:
        overrides["stop_words"] = frozenset(w.lower() for w in section["stop_words"])

    return StoreConfig(
        path=work_dir,
        version=version,
        created=data.get("store", {}).get("created", ""),
        consolidation=ConsolidationConfig(**overrides),
    )


def save_config(config: StoreConfig) -> None:
    """
    Save configuration to the work directory.

    Creates the directory if it doesn't exist. The schedule compatibility
    table is not persisted.
    """
    config.path.mkdir(parents=True, exist_ok=True)

    c = config.consolidation
    consolidation: dict[str, Any] = {k: getattr(c, k) for k in _SCALAR_FIELDS}
    consolidation["stop_words"] = sorted(c.stop_words)
    consolidation["weights"] = {f.name: getattr(c.weights, f.name) for f in fields(c.weights)}

    data = {
        "store": {
            "version": config.version,
            "created": config.created,
        },
        "consolidation": consolidation,
    }

    with open(config.config_path, "wb") as f:
        tomli_w.dump(data, f)


def load_or_default_config(work_dir: Path) -> StoreConfig:
    """
    Load the config if the work directory has one, otherwise use defaults.

    Nothing is written: read-only commands must not touch the work directory.
    """
    if (work_dir / CONFIG_FILENAME).exists():
        return load_config(work_dir)
    return StoreConfig(path=work_dir)
