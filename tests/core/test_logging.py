"""Tests for load metrics and scoped log context."""

from __future__ import annotations

import os
import subprocess
import sys
import textwrap

from bulkload.core.logging import LoadMetrics, _add_load_context, log_context


class TestLoadMetrics:
    def test_timings_accumulate(self):
        metrics = LoadMetrics(table="person")
        metrics.record_timing("copy", 0.25)
        metrics.record_timing("copy", 0.5)

        assert metrics.timings == {"copy": 0.75}

    def test_finish_freezes_duration(self):
        metrics = LoadMetrics(table="person").finish()

        assert metrics.duration_seconds == metrics.duration_seconds
        assert metrics.to_dict()["table"] == "person"


class TestLogContext:
    def test_context_is_added_and_removed(self):
        with log_context(load_id="abc", table="person"):
            event = _add_load_context(None, "info", {"event": "x"})

        assert event == {"event": "x", "load_id": "abc", "table": "person"}
        assert _add_load_context(None, "info", {"event": "y"}) == {"event": "y"}

    def test_nested_contexts_merge(self):
        with log_context(load_id="abc"), log_context(attempt=2):
            event = _add_load_context(None, "info", {})

        assert event == {"load_id": "abc", "attempt": 2}


class TestImportSideEffects:
    def test_import_keeps_application_logging(self):
        """Importing the package leaves the host's root logger untouched."""
        script = textwrap.dedent(
            """
            import logging

            handler = logging.StreamHandler()
            handler.set_name("app")
            root = logging.getLogger()
            root.addHandler(handler)
            root.setLevel(logging.DEBUG)

            import bulkload  # noqa: F401

            print([h.get_name() for h in root.handlers], root.level)
            """
        )
        env = {**os.environ, "PYTHONPATH": os.pathsep.join(sys.path)}

        completed = subprocess.run(
            [sys.executable, "-c", script], capture_output=True, text=True, env=env, check=True
        )

        assert completed.stdout.strip() == "['app'] 10"
