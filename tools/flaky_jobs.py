"""
Failure statistics for recent GitHub Actions workflow runs and the jobs of the failed ones.

    python tools/flaky_jobs.py --auth $TOKEN --limit 500 --branch main
"""
import sys
import logging
from pathlib import Path

import requests

sys.path.insert(0, str(Path(__file__).resolve().parent.parent))

from audit_cache import JsonCache, cached_fetch
from audit_config import build_parser, resolve_token
from audit_log import Colors, colorize, setup_logging
from ci_stats import (
    average_durations,
    distribution,
    failed_job_ratio,
    failing_groups,
    group_stats,
    is_failure,
    job_group_key,
    percent,
    run_group_key,
)
from fetch_github import list_jobs_for_runs, list_workflow_runs

CACHE_DIR = "cache"
SPACER = "\n---\n"
OUTCOME_COLORS = {
    "failure": Colors.RED,
    "success": Colors.GREEN,
    "skipped": Colors.GREY,
    "in_progress": Colors.BLUE,
}

log = logging.getLogger("flaky_jobs")


def print_distribution(runs):
    print(colorize("Distribution of workflow runs:", Colors.RESET, bold=True))
    for outcome, count in distribution(runs).items():
        line = f"{outcome}: {count}, {percent(count, len(runs))}%"
        print(colorize(line, OUTCOME_COLORS.get(outcome, Colors.RESET), bold=True))


def print_failures(stats):
    print(colorize("By failure count:", Colors.RESET, bold=True))
    for name, s in failing_groups(stats).items():
        print(f"{colorize(name, Colors.BLUE)} {s['failures']} of {s['total']} ({percent(s['failures'], s['total'])}%)")


def print_durations(runs):
    print(colorize("Average run time per workflow:", Colors.RESET, bold=True))
    for name, sec in sorted(average_durations(runs, run_group_key).items(), key=lambda kv: kv[1], reverse=True):
        print(f"{colorize(name, Colors.BLUE)} {sec // 60}m{sec % 60:02d}s")


def main(argv=None):
    ap = build_parser(__doc__.strip().splitlines()[0], runs=True)
    args = ap.parse_args(argv)
    if args.limit < 1:
        ap.error("--limit must be at least 1")
    setup_logging(args.verbose)

    token = resolve_token(args.auth)
    cache = JsonCache(CACHE_DIR)
    try:
        runs = cached_fetch(
            cache, "workflowRuns",
            lambda: list_workflow_runs(args.owner, args.repo, token, limit=args.limit, branch=args.branch),
            use_cache=args.use_cache,
        )
        print()
        print_distribution(runs)
        print(SPACER)
        print_failures(group_stats(runs, run_group_key))
        print(SPACER)
        print_durations(runs)
        print(SPACER)

        failed_runs = [r for r in runs if is_failure(r)]
        jobs = cached_fetch(
            cache, "jobs",
            lambda: list_jobs_for_runs(args.owner, args.repo, failed_runs, token),
            use_cache=args.use_cache,
        )
    except (requests.RequestException, ValueError) as e:
        log.error(f"Failed to load workflow data: {e}")
        return 1

    failed, total = failed_job_ratio(jobs)
    print(f"{colorize('Jobs that failed in the failed workflows:', Colors.BLUE)} "
          f"{failed} of {total} jobs or {percent(failed, total)}%")
    print(SPACER)
    print_failures(group_stats(jobs, job_group_key))
    return 0


if __name__ == "__main__":
    sys.exit(main())
