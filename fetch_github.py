import time
import logging
import requests

from audit_log import progress, end_progress

BASE = "https://api.github.com"
PAGE_SIZE = 100
LABELS_PER_PR = 20

log = logging.getLogger(__name__)


class GitHubError(RuntimeError):
    """GraphQL answered 200 but carried an ``errors`` payload."""


def headers(token=None):
    h = {"Accept": "application/vnd.github+json", "X-GitHub-Api-Version": "2022-11-28"}
    if token:
        h["Authorization"] = f"Bearer {token}"
    return h


def _rate_limit_wait(r):
    reset = r.headers.get("X-RateLimit-Reset")
    return max(0, int(reset) - int(time.time())) + 1 if reset else 60


def _send(method, url, token=None, **kwargs):
    """
    One request against the API.
    On a 403 "rate limit" answer we wait for the window to reset and retry exactly once.
    Anything else that is not 2xx raises: a failed fetch aborts the script.
    """
    r = method(url, headers=headers(token), timeout=60, **kwargs)
    if r.status_code == 403 and "rate limit" in r.text.lower():
        wait = _rate_limit_wait(r)
        log.warning(f"Rate limited, sleeping {wait}s before retrying {url}")
        time.sleep(wait)
        r = method(url, headers=headers(token), timeout=60, **kwargs)
    r.raise_for_status()
    return r.json()


def gh_get(url, params=None, token=None):
    return _send(requests.get, url, token=token, params=params or {})


def gh_graphql(query, variables=None, token=None):
    payload = _send(requests.post, f"{BASE}/graphql", token=token, json={"query": query, "variables": variables or {}})
    if payload.get("errors"):
        messages = "; ".join(e.get("message", "unknown error") for e in payload["errors"])
        raise GitHubError(f"GraphQL query failed: {messages}")
    return payload["data"]


def paginate(fetch_page, first, limit=None, keep=None, label="records"):
    """
    Generic "fetch page, stop when empty or limit reached" loop.

    fetch_page(token) -> (batch, next_token). The token is a page index for REST
    endpoints and an opaque cursor for GraphQL.
    The limit is checked after a whole page has been appended, so the result can
    exceed it by less than one page.
    """
    items = []
    token = first
    page = 1
    while True:
        progress(f"loading {label} for page {page}")
        batch, token = fetch_page(token)
        if not batch:
            break
        items.extend(x for x in batch if keep is None or keep(x))
        if limit is not None and len(items) >= limit:
            break
        page += 1
    end_progress()
    return items


PRS_QUERY = """
query($owner: String!, $repo: String!, $first: Int!, $after: String, $labels: Int!) {
  repository(owner: $owner, name: $repo) {
    pullRequests(first: $first, after: $after) {
      edges {
        cursor
        node {
          title
          url
          state
          number
          labels(first: $labels) {
            edges { node { name } }
          }
        }
      }
    }
  }
}
"""


def slim_pr(node):
    edges = (node.get("labels") or {}).get("edges") or []
    return {
        "number": node["number"],
        "title": node.get("title") or "",
        "state": node.get("state"),
        "url": node.get("url"),
        "labels": [e["node"]["name"] for e in edges if e and e.get("node")],
    }


def fetch_all_prs(owner, repo, token=None):
    """Every pull request of the repository, in the API's default order."""

    def fetch_page(cursor):
        data = gh_graphql(
            PRS_QUERY,
            {"owner": owner, "repo": repo, "first": PAGE_SIZE, "after": cursor, "labels": LABELS_PER_PR},
            token=token,
        )
        edges = [e for e in data["repository"]["pullRequests"]["edges"] or [] if e]
        prs = [slim_pr(e["node"]) for e in edges if e.get("node")]
        return prs, (edges[-1]["cursor"] if edges else None)

    return paginate(fetch_page, None, label="pull requests")


def slim_run(r):
    return {
        "id": r["id"],
        "name": r.get("name"),
        "status": r.get("status"),
        "conclusion": r.get("conclusion"),
        "event": r.get("event"),
        "head_branch": r.get("head_branch"),
        "run_started_at": r.get("run_started_at"),
        "updated_at": r.get("updated_at"),
    }


def list_workflow_runs(owner, repo, token=None, limit=300, branch=None):
    url = f"{BASE}/repos/{owner}/{repo}/actions/runs"
    params = {"per_page": min(limit, PAGE_SIZE)}
    if branch:
        params["branch"] = branch

    def fetch_page(page):
        payload = gh_get(url, dict(params, page=page), token=token)
        return [slim_run(r) for r in payload.get("workflow_runs", [])], page + 1

    # issue-triggered runs are bots reacting to issues, not CI
    return paginate(fetch_page, 1, limit=limit, keep=lambda r: r["event"] != "issues", label="workflow runs")


def slim_job(j):
    return {
        "id": j["id"],
        "run_id": j.get("run_id"),
        "name": j.get("name") or "",
        "status": j.get("status"),
        "conclusion": j.get("conclusion"),
        "started_at": j.get("started_at"),
        "completed_at": j.get("completed_at"),
    }


def list_run_jobs(owner, repo, run_id, token=None):
    url = f"{BASE}/repos/{owner}/{repo}/actions/runs/{run_id}/jobs"

    def fetch_page(page):
        payload = gh_get(url, {"per_page": PAGE_SIZE, "page": page}, token=token)
        return [slim_job(j) for j in payload.get("jobs", [])], page + 1

    return paginate(fetch_page, 1, label=f"jobs of run {run_id}")


def list_jobs_for_runs(owner, repo, runs, token=None):
    jobs = []
    for run in runs:
        log.debug(f"Fetching jobs for workflow run {run['id']}")
        jobs.extend(list_run_jobs(owner, repo, run["id"], token=token))
    return jobs
