#!/usr/bin/env python3
"""
Tests for configuration loading and the dependency container.

Run with: pytest tests/test_deps.py -v
"""
import threading
import time
from unittest.mock import patch

from handlers.store import TaskStore
from sample_events import FakeLambdaContext, sqs_event, sqs_record
from task_service.app import build_pipeline
from task_service.runtime.deps import Config, create_deps, load_config


# =============================================================================
# TEST: Config
# =============================================================================

class TestLoadConfig:
    """Tests for environment-driven configuration."""

    def test_defaults(self, monkeypatch):
        for key in ("LOG_LEVEL", "BATCH_MAX_WORKERS", "BATCH_DEADLINE_MARGIN_MS", "SEED_SAMPLE_TASKS"):
            monkeypatch.delenv(key, raising=False)
        config = load_config()
        assert config.log_level == "INFO"
        assert config.batch_max_workers == 1
        assert config.batch_deadline_margin_ms == 3000
        assert config.seed_sample_tasks is True
        assert not config.external_api_configured

    def test_log_level_is_upper_cased(self, monkeypatch):
        monkeypatch.setenv("LOG_LEVEL", " warning ")
        assert load_config().log_level == "WARNING"

    def test_unknown_log_level_falls_back(self, monkeypatch):
        monkeypatch.setenv("LOG_LEVEL", "verbose")
        assert load_config().log_level == "INFO"
        print("✓ Unknown LOG_LEVEL falls back to INFO")

    def test_invalid_integer_falls_back(self, monkeypatch):
        monkeypatch.setenv("BATCH_MAX_WORKERS", "many")
        monkeypatch.setenv("BATCH_DEADLINE_MARGIN_MS", "-5")
        config = load_config()
        assert config.batch_max_workers == 1
        assert config.batch_deadline_margin_ms == 0


# =============================================================================
# TEST: Deps under concurrency
# =============================================================================

def _slow_store_init():
    original_init = TaskStore.__init__

    def slow_init(self, seed=True):
        time.sleep(0.05)
        original_init(self, seed)

    return patch.object(TaskStore, "__init__", slow_init)


class TestDepsConcurrency:
    """Collaborators are built once even when first touched from worker threads."""

    def test_store_built_once_across_threads(self):
        deps = create_deps(config=Config())
        barrier = threading.Barrier(4, timeout=5)
        seen = []

        def touch():
            barrier.wait()
            seen.append(deps.store)

        with _slow_store_init():
            threads = [threading.Thread(target=touch) for _ in range(4)]
            for t in threads:
                t.start()
            for t in threads:
                t.join()

        assert len(seen) == 4
        assert all(store is seen[0] for store in seen)
        print("✓ Store built once across threads")

    def test_parallel_batch_on_cold_deps_keeps_every_task(self):
        deps = create_deps(config=Config(batch_max_workers=4))
        pipeline = build_pipeline(deps)
        names = [f"parallel {i}" for i in range(4)]
        raw = sqs_event(*(sqs_record(f"m{i}", {"name": name}) for i, name in enumerate(names)))

        with _slow_store_init():
            response = pipeline.handle(raw, FakeLambdaContext())

        assert response == {"batchItemFailures": []}
        stored = {task.name for task in deps.store.list()}
        assert set(names) <= stored
        print("✓ Parallel batch keeps every created task")

