"""Tests for configuration loading and saving."""

from pathlib import Path

import pytest

from worktrack.config import (
    CONFIG_FILENAME,
    DEFAULT_SCHEDULE_COMPATIBILITY,
    ConsolidationConfig,
    ScoreWeights,
    StoreConfig,
    get_work_dir,
    load_config,
    load_or_default_config,
    save_config,
)


class TestDefaults:

    def test_weights_sum_to_one(self):
        w = ScoreWeights()
        assert (w.summary, w.tags, w.content, w.schedule) == (0.40, 0.25, 0.25, 0.10)

    def test_thresholds(self):
        c = ConsolidationConfig()
        assert c.acceptance_threshold == 0.6
        assert (c.merge_content_threshold, c.combine_detailed_threshold, c.combine_summary_threshold) == (0.9, 0.8, 0.7)
        assert (c.summary_disclosure, c.tags_disclosure, c.content_disclosure, c.schedule_disclosure) == (0.7, 0.5, 0.5, 0.5)

    def test_rule_tables_are_immutable(self):
        c = ConsolidationConfig()
        with pytest.raises(TypeError):
            c.schedule_compatibility[("now", "later")] = 1.0
        with pytest.raises(AttributeError):
            c.stop_words.add("cache")
        assert DEFAULT_SCHEDULE_COMPATIBILITY[("later", "now")] == 0.3

    def test_config_is_frozen(self):
        with pytest.raises(AttributeError):
            ConsolidationConfig().acceptance_threshold = 0.1


class TestWorkDir:

    def test_explicit_wins(self, monkeypatch):
        monkeypatch.setenv("WORK_DIR", "/from/env")
        assert get_work_dir(Path("/explicit")) == Path("/explicit")

    def test_env(self, monkeypatch):
        monkeypatch.setenv("WORK_DIR", "/from/env")
        assert get_work_dir() == Path("/from/env")

    def test_default(self, monkeypatch):
        monkeypatch.delenv("WORK_DIR", raising=False)
        assert get_work_dir() == Path(".claude-work")


class TestPersistence:

    def test_defaults_without_file(self, work_dir):
        cfg = load_or_default_config(work_dir)
        assert cfg.consolidation == ConsolidationConfig()
        assert not (work_dir / CONFIG_FILENAME).exists()

    def test_missing_file(self, work_dir):
        with pytest.raises(FileNotFoundError):
            load_config(work_dir)

    def test_save_and_load(self, work_dir):
        consolidation = ConsolidationConfig(
            weights=ScoreWeights(summary=0.5, tags=0.2, content=0.2, schedule=0.1),
            acceptance_threshold=0.55,
            min_token_length=4,
            stop_words=frozenset({"foo", "bar"}),
        )
        save_config(StoreConfig(path=work_dir, consolidation=consolidation))
        loaded = load_config(work_dir).consolidation
        assert loaded.weights == consolidation.weights
        assert loaded.acceptance_threshold == 0.55
        assert loaded.min_token_length == 4
        assert loaded.stop_words == {"foo", "bar"}
        assert loaded.schedule_compatibility == DEFAULT_SCHEDULE_COMPATIBILITY

    def test_partial_override(self, work_dir):
        (work_dir / CONFIG_FILENAME).write_text(
            "[store]\nversion = 1\n\n[consolidation]\nacceptance_threshold = 0.75\n"
        )
        loaded = load_or_default_config(work_dir).consolidation
        assert loaded.acceptance_threshold == 0.75
        assert loaded.weights == ScoreWeights()
        assert "the" in loaded.stop_words

    def test_newer_version_rejected(self, work_dir):
        (work_dir / CONFIG_FILENAME).write_text("[store]\nversion = 99\n")
        with pytest.raises(ValueError, match="newer"):
            load_config(work_dir)

    def test_invalid_weights_rejected(self, work_dir):
        (work_dir / CONFIG_FILENAME).write_text(
            "[consolidation.weights]\nsummary = 0.9\ntags = 0.9\ncontent = 0.0\nschedule = 0.0\n"
        )
        with pytest.raises(ValueError, match="sum to 1.0"):
            load_config(work_dir)
