"""
Shared fixtures: small factories for the slim PR / run / job dicts the scripts pass around.
"""

import logging

import pytest

from audit_log import ColorFormatter


@pytest.fixture
def make_pr():
    def _make(number, title, state="MERGED", labels=()):
        return {
            "number": number,
            "title": title,
            "state": state,
            "url": f"https://github.com/o/r/pull/{number}",
            "labels": list(labels),
        }
    return _make


@pytest.fixture
def make_run():
    counter = iter(range(1, 10_000))

    def _make(name="CI", conclusion="success", status="completed", event="push", **extra):
        run = {
            "id": next(counter),
            "name": name,
            "status": status,
            "conclusion": conclusion,
            "event": event,
            "head_branch": "main",
            "run_started_at": None,
            "updated_at": None,
        }
        run.update(extra)
        return run
    return _make


@pytest.fixture
def make_job():
    counter = iter(range(1, 10_000))

    def _make(name, conclusion="success", run_id=1):
        return {"id": next(counter), "run_id": run_id, "name": name, "status": "completed", "conclusion": conclusion}
    return _make


@pytest.fixture(autouse=True)
def no_token(monkeypatch):
    monkeypatch.delenv("GITHUB_TOKEN", raising=False)


@pytest.fixture(autouse=True)
def reset_logging():
    """Scripts attach a stdout handler in main(); detach it so it never outlives the captured stream."""
    yield
    root = logging.getLogger()
    for h in [h for h in root.handlers if isinstance(h.formatter, ColorFormatter)]:
        root.removeHandler(h)
