"""
End-to-end runs of the two scripts with the GitHub fetchers patched out.
Each test runs in its own working directory so ./cache and ./data stay local.
"""

import json
from unittest.mock import patch

import pytest
import requests

import flaky_jobs
import missing_backports
from audit_config import build_parser, read_config, resolve_token
from fetch_github import GitHubError


@pytest.fixture(autouse=True)
def workdir(tmp_path, monkeypatch):
    monkeypatch.chdir(tmp_path)
    return tmp_path


# ============================================================================
# Configuration
# ============================================================================

class TestConfig:

    def test_defaults(self):
        args = build_parser("x", runs=True).parse_args([])
        assert (args.owner, args.repo, args.limit, args.branch) == ("opensearch-project", "OpenSearch-Dashboards", 300, None)
        assert args.use_cache is False
        assert args.auth is None

    def test_flags(self):
        args = build_parser("x", runs=True).parse_args(
            ["--owner", "me", "--repo", "proj", "--useCache", "--limit", "20", "--branch", "2.x", "--auth", "t"])
        assert (args.owner, args.repo, args.use_cache, args.limit, args.branch, args.auth) == ("me", "proj", True, 20, "2.x", "t")

    def test_run_flags_only_for_flake_tool(self):
        with pytest.raises(SystemExit):
            build_parser("x").parse_args(["--limit", "3"])

    def test_config_file_overrides_defaults(self, workdir):
        (workdir / "config.json").write_text(json.dumps({"owner": "acme", "limit": 50, "unknown": 1}), encoding="utf-8")
        assert read_config() == {"owner": "acme", "limit": 50}
        args = build_parser("x", runs=True).parse_args(["--limit", "7"])
        assert (args.owner, args.repo, args.limit) == ("acme", "OpenSearch-Dashboards", 7)

    def test_resolve_token(self, monkeypatch):
        assert resolve_token(None) is None
        monkeypatch.setenv("GITHUB_TOKEN", " env-token\n")
        assert resolve_token(None) == "env-token"
        assert resolve_token("flag-token") == "flag-token"


# ============================================================================
# missing_backports
# ============================================================================

PRS = [
    {"number": 99, "title": "Fix crash", "state": "MERGED", "url": "u99", "labels": ["backport 2.x"]},
    {"number": 100, "title": "[Backport 2.x] Fix crash (#99)", "state": "MERGED", "url": "u100", "labels": []},
    {"number": 50, "title": "Add feature X", "state": "MERGED", "url": "u50", "labels": ["backport main"]},
    {"number": 51, "title": "Open work", "state": "OPEN", "url": "u51", "labels": ["backport main"]},
]


class TestMissingBackports:

    @patch("missing_backports.fetch_all_prs", return_value=PRS)
    def test_report(self, mock_fetch, workdir, capsys):
        assert missing_backports.main(["--owner", "o", "--repo", "r"]) == 0

        mock_fetch.assert_called_once_with("o", "r", None)
        report = (workdir / "data" / "missing_backport_log.md").read_text(encoding="utf-8")
        assert "- Add feature X  " in report
        assert '["backport main"]' in report
        assert "ID: 50 | [Verify](https://github.com/o/r/pulls?q=Add%20feature%20X)" in report
        assert "ID: 99" not in report
        out = capsys.readouterr().out
        assert "Total            : 4" in out
        assert "To Backport      : 2" in out
        assert "Missing Backports: 1" in out
        # cache only written with --useCache
        assert not (workdir / "cache" / "prs.json").exists()

    @patch("missing_backports.fetch_all_prs", return_value=PRS)
    def test_use_cache_writes_then_reads(self, mock_fetch, workdir):
        assert missing_backports.main(["--useCache"]) == 0
        assert json.loads((workdir / "cache" / "prs.json").read_text(encoding="utf-8")) == PRS

        assert missing_backports.main(["--useCache"]) == 0
        mock_fetch.assert_called_once()

    @patch("missing_backports.fetch_all_prs", side_effect=requests.ConnectionError("unreachable"))
    def test_fetch_error_exit_status(self, _fetch, workdir):
        assert missing_backports.main([]) == 1
        assert not (workdir / "data").exists()

    @patch("missing_backports.fetch_all_prs", side_effect=GitHubError("Bad credentials"))
    def test_graphql_error_exit_status(self, _fetch):
        assert missing_backports.main([]) == 1

    @patch("missing_backports.fetch_all_prs", return_value=PRS)
    def test_custom_out(self, _fetch, workdir):
        assert missing_backports.main(["--out", "reports/backports.md"]) == 0
        assert (workdir / "reports" / "backports.md").exists()

    @patch("missing_backports.explain_match", wraps=missing_backports.explain_match)
    @patch("missing_backports.fetch_all_prs", return_value=PRS)
    def test_explain(self, _fetch, mock_explain):
        assert missing_backports.main(["--explain", "99:100"]) == 0
        mock_explain.assert_called_once_with(PRS[0], PRS[1])

    def test_explain_bad_value(self):
        with pytest.raises(SystemExit):
            missing_backports.main(["--explain", "99"])


# ============================================================================
# flaky_jobs
# ============================================================================

RUNS = [
    {"id": 1, "name": "Build", "status": "completed", "conclusion": "failure", "event": "push"},
    {"id": 2, "name": "Build", "status": "completed", "conclusion": "success", "event": "push"},
    {"id": 3, "name": "Lint", "status": "in_progress", "conclusion": None, "event": "pull_request"},
]
JOBS = [
    {"id": 10, "run_id": 1, "name": "Run backwards compatibility tests (7.10)", "conclusion": "failure"},
    {"id": 11, "run_id": 1, "name": "Run backwards compatibility tests (7.9)", "conclusion": "failure"},
    {"id": 12, "run_id": 1, "name": "Build artifacts", "conclusion": "success"},
]


class TestFlakyJobs:

    @patch("flaky_jobs.list_jobs_for_runs", return_value=JOBS)
    @patch("flaky_jobs.list_workflow_runs", return_value=RUNS)
    def test_stats(self, mock_runs, mock_jobs, workdir, capsys):
        assert flaky_jobs.main(["--owner", "o", "--repo", "r", "--limit", "10", "--branch", "main"]) == 0

        mock_runs.assert_called_once_with("o", "r", None, limit=10, branch="main")
        # only the failed run's jobs are fetched
        assert mock_jobs.call_args.args[2] == [RUNS[0]]
        out = capsys.readouterr().out
        assert "failure: 1, 33.33%" in out
        assert "in_progress: 1, 33.33%" in out
        assert "1 of 2 (50.00%)" in out
        assert "2 of 3 jobs or 66.67%" in out
        assert "Backwards compatibility tests on all versions" in out
        assert "Lint" not in out.split("By failure count:")[1]
        assert json.loads((workdir / "cache" / "jobs.json").read_text(encoding="utf-8")) == JOBS

    @patch("flaky_jobs.list_jobs_for_runs")
    @patch("flaky_jobs.list_workflow_runs")
    def test_use_cache(self, mock_runs, mock_jobs, workdir):
        (workdir / "cache").mkdir()
        (workdir / "cache" / "workflowRuns.json").write_text(json.dumps(RUNS), encoding="utf-8")
        (workdir / "cache" / "jobs.json").write_text(json.dumps(JOBS), encoding="utf-8")

        assert flaky_jobs.main(["--useCache"]) == 0
        mock_runs.assert_not_called()
        mock_jobs.assert_not_called()

    @patch("flaky_jobs.list_jobs_for_runs", return_value=[])
    @patch("flaky_jobs.list_workflow_runs", return_value=[])
    def test_empty_data_does_not_divide_by_zero(self, _runs, _jobs, capsys):
        assert flaky_jobs.main([]) == 0
        assert "0 of 0 jobs or 0.00%" in capsys.readouterr().out

    @patch("flaky_jobs.list_workflow_runs", side_effect=requests.HTTPError("401 Client Error"))
    def test_fetch_error_exit_status(self, _runs):
        assert flaky_jobs.main([]) == 1

    def test_malformed_cache_exit_status(self, workdir):
        (workdir / "cache").mkdir()
        (workdir / "cache" / "workflowRuns.json").write_text("{oops", encoding="utf-8")
        assert flaky_jobs.main(["--useCache"]) == 1

    def test_limit_must_be_positive(self):
        with pytest.raises(SystemExit):
            flaky_jobs.main(["--limit", "0"])
