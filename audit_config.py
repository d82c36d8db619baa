import os
import json
import argparse

DEFAULTS = {
    "owner": "opensearch-project",
    "repo": "OpenSearch-Dashboards",
    "limit": 300,
    "branch": None,
}


def read_config(path="config.json"):
    """Optional per-checkout overrides of DEFAULTS. A missing file means no overrides."""
    if not os.path.exists(path):
        return {}
    with open(path, "r", encoding="utf-8") as f:
        cfg = json.load(f)
    return {k: v for k, v in cfg.items() if k in DEFAULTS}


def resolve_token(auth=None):
    # --auth wins, then GITHUB_TOKEN; None means anonymous (low rate limit)
    token = (auth or os.environ.get("GITHUB_TOKEN", "")).strip()
    return token or None


def build_parser(description, runs=False, config_path="config.json"):
    """
    Flags shared by every audit script. runs=True adds the workflow-run flags
    (--limit, --branch) used by the flake audit.
    """
    d = dict(DEFAULTS, **read_config(config_path))
    ap = argparse.ArgumentParser(description=description)
    ap.add_argument("--auth", default=None, help="GitHub token (default: $GITHUB_TOKEN)")
    ap.add_argument("--owner", default=d["owner"])
    ap.add_argument("--repo", default=d["repo"])
    ap.add_argument("--useCache", dest="use_cache", action="store_true", help="read ./cache instead of calling the API")
    ap.add_argument("-v", "--verbose", action="store_true")
    if runs:
        ap.add_argument("--limit", type=int, default=d["limit"], help="maximum workflow runs to fetch")
        ap.add_argument("--branch", default=d["branch"])
    return ap
