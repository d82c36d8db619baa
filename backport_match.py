import re
import json
from types import MappingProxyType
from urllib.parse import quote

# "[Backport 2.x] Fix crash", "[Manual Backport main] ..." -> group 2 is the rest of the title
BACKPORT_PREFIX_RE = re.compile(r"\[[^\]]*Backport (\d[^\]\s]*|main)\] ?(.*)", re.I)
NAMESPACE_RE = re.compile(r"^\[[^\]]*\]\s*(.*)")
PR_REF_SUFFIX_RE = re.compile(r"^(.*)\(#\d{4}\)$")
BACKPORT_LABEL_RE = re.compile(r"backport (\d|main)", re.I)

REPORT_HEADER = "# Missing backport PR's\n\n"


def _reduce(title):
    s = title.strip()
    m = BACKPORT_PREFIX_RE.search(s)
    if m:
        s = m.group(2)
    else:
        m = NAMESPACE_RE.match(s)
        if m:
            s = m.group(1)
    m = PR_REF_SUFFIX_RE.match(s.strip())
    if m:
        s = m.group(1)
    return s.strip()


def normalize_title(title):
    """
    Search string for a PR title: drops a "[Backport x]" prefix (or any leading
    "[namespace]") and a trailing "(#1234)". Reductions repeat until nothing
    changes, so normalize_title(normalize_title(t)) == normalize_title(t).
    """
    s = title or ""
    while True:
        reduced = _reduce(s)
        if reduced == s:
            return s
        s = reduced


def is_backport_label(name):
    return bool(name) and BACKPORT_LABEL_RE.search(name) is not None


def backport_labels(pr):
    return [name for name in pr.get("labels", []) if is_backport_label(name)]


def is_backport_pr(pr):
    return BACKPORT_PREFIX_RE.search(pr.get("title") or "") is not None


def _contains(haystack, needle):
    return needle.lower().strip() in haystack.lower().strip()


def explain_match(pr, back_pr):
    """Every predicate is_backport_of looks at, for debugging one pair."""
    search = normalize_title(pr["title"])
    back_title = back_pr.get("title") or ""
    return {
        "search_string": search,
        "title_in_back_title": bool(search) and _contains(back_title, search),
        "id_in_back_title": _contains(back_title, f"#{pr['number']}"),
        "has_backport_prefix": is_backport_pr(back_pr),
    }


def is_backport_of(pr, back_pr):
    e = explain_match(pr, back_pr)
    return (e["title_in_back_title"] or e["id_in_back_title"]) and e["has_backport_prefix"]


def validation_set(prs):
    # merged (or any other non-open, non-closed state) PRs that ask for a backport
    return [pr for pr in prs if pr.get("state") not in ("OPEN", "CLOSED") and backport_labels(pr)]


def candidate_set(prs):
    return [pr for pr in prs if is_backport_pr(pr) and pr.get("state") in ("OPEN", "MERGED")]


def verify_url(owner, repo, pr):
    q = quote(normalize_title(pr["title"]), safe="!~*'()")
    return f"https://github.com/{owner}/{repo}/pulls?q={q}"


def collect_missing(to_validate, candidates, owner, repo):
    """
    PR number -> {"pr", "verify_url", "labels"} for every PR with at least one
    backport label that no candidate satisfies. Each PR appears once and each
    label once per PR, in the order the labels were met.
    """
    missing = {}
    for pr in to_validate:
        for label in backport_labels(pr):
            if any(is_backport_of(pr, back_pr) for back_pr in candidates):
                continue
            rec = missing.setdefault(pr["number"], {"pr": pr, "verify_url": verify_url(owner, repo, pr), "labels": []})
            if label not in rec["labels"]:
                rec["labels"].append(label)
    return MappingProxyType({n: dict(rec, labels=tuple(rec["labels"])) for n, rec in missing.items()})


def render_entry(rec):
    pr = rec["pr"]
    return "\n".join([
        f"- {pr['title']}  ",
        f"    Missing backports: {json.dumps(list(rec['labels']), separators=(',', ':'), ensure_ascii=False)}  ",
        f"    ID: {pr['number']} | [Verify]({rec['verify_url']})\n",
    ])


def render_report(missing):
    return REPORT_HEADER + "".join(render_entry(rec) for rec in missing.values())


def write_report(missing, path):
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(render_report(missing), encoding="utf-8")
    return path
