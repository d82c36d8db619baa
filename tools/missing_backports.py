"""
Find merged PRs that carry a "backport <version>" label but have no matching
"[Backport <version>] ..." PR, and write them to a Markdown report.

    python tools/missing_backports.py --auth $TOKEN
    python tools/missing_backports.py --useCache --explain 4428:4430
"""
import sys
import json
import argparse
import logging
from pathlib import Path

import requests

sys.path.insert(0, str(Path(__file__).resolve().parent.parent))

from audit_cache import JsonCache, cached_fetch
from audit_config import build_parser, resolve_token
from audit_log import setup_logging
from backport_match import candidate_set, collect_missing, explain_match, validation_set, write_report
from fetch_github import GitHubError, fetch_all_prs

CACHE_DIR = "cache"
LOG_FILE = "data/missing_backport_log.md"

log = logging.getLogger("missing_backports")


def pr_pair(value):
    try:
        src, dest = value.split(":", 1)
        return int(src), int(dest)
    except ValueError:
        raise argparse.ArgumentTypeError(f"expected SRC:DEST pull request numbers, got {value!r}") from None


def explain(prs, pair):
    by_number = {pr["number"]: pr for pr in prs}
    src, dest = pair
    if src not in by_number or dest not in by_number:
        log.warning(f"Cannot explain #{src} -> #{dest}: not in the fetched data")
        return
    details = explain_match(by_number[src], by_number[dest])
    log.info(f"Why #{dest} is or is not a backport of #{src}: {json.dumps(details)}")


def main(argv=None):
    ap = build_parser(__doc__.strip().splitlines()[0])
    ap.add_argument("--out", default=LOG_FILE, help="Markdown report path")
    ap.add_argument("--explain", type=pr_pair, metavar="SRC:DEST", help="log how PR SRC is matched against PR DEST")
    args = ap.parse_args(argv)
    setup_logging(args.verbose)

    log.info("Started script")
    token = resolve_token(args.auth)
    cache = JsonCache(CACHE_DIR)
    try:
        prs = cached_fetch(
            cache, "prs",
            lambda: fetch_all_prs(args.owner, args.repo, token),
            use_cache=args.use_cache,
            # the backport audit only keeps a cache when asked to
            write=args.use_cache,
        )
    except (requests.RequestException, GitHubError, ValueError) as e:
        log.error(f"Failed to load pull requests: {e}")
        return 1

    log.info("Get all PRs with backport labels")
    to_validate = validation_set(prs)
    log.info("Get all backport PRs")
    candidates = candidate_set(prs)

    if args.explain:
        explain(prs, args.explain)

    log.info("Calculate PRs with missing backports")
    missing = collect_missing(to_validate, candidates, args.owner, args.repo)
    out = write_report(missing, Path(args.out))

    print("\n".join([
        "",
        f"Total            : {len(prs)}",
        f"To Backport      : {len(to_validate)}",
        f"Missing Backports: {len(missing)}",
        "",
        f"Check {out} for missing backport PR's",
    ]))
    return 0


if __name__ == "__main__":
    sys.exit(main())
