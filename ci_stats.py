from dateutil import parser as dtp

BACKWARDS_COMPAT_PREFIX = "Run backwards compatibility tests"
BACKWARDS_COMPAT_GROUP = "Backwards compatibility tests on all versions"


def is_failure(item):
    return item.get("conclusion") == "failure"


def run_group_key(run):
    return run.get("name") or "No name"


def job_group_key(job):
    name = job.get("name") or ""
    # one bucket for the whole version matrix
    if name.startswith(BACKWARDS_COMPAT_PREFIX):
        return BACKWARDS_COMPAT_GROUP
    return name


def group_stats(items, key):
    """
    key(item) -> {"total": n, "failures": m}, most failures first.
    Ties keep the order in which the keys were first seen.
    """
    groups = {}
    for it in items:
        g = groups.setdefault(key(it), {"total": 0, "failures": 0})
        g["total"] += 1
        if is_failure(it):
            g["failures"] += 1
    return dict(sorted(groups.items(), key=lambda kv: kv[1]["failures"], reverse=True))


def failing_groups(stats):
    return {k: v for k, v in stats.items() if v["failures"] > 0}


def distribution(runs):
    out = {}
    for r in runs:
        outcome = r.get("conclusion") or r.get("status") or "No status"
        out[outcome] = out.get(outcome, 0) + 1
    return out


def percent(count, total):
    """count*100/total with two decimals; an empty denominator reads as 0.00."""
    if not total:
        return "0.00"
    return f"{count * 100 / total:.2f}"


def failed_job_ratio(jobs):
    failed = sum(1 for j in jobs if is_failure(j))
    return failed, len(jobs)


def run_duration_sec(run):
    """Wall time from start to last update, or None while timestamps are missing."""
    start, end = run.get("run_started_at"), run.get("updated_at")
    if not start or not end:
        return None
    return max(0, int((dtp.parse(end) - dtp.parse(start)).total_seconds()))


def average_durations(runs, key):
    durs = {}
    for r in runs:
        d = run_duration_sec(r)
        if d is None:
            continue
        durs.setdefault(key(r), []).append(d)
    return {k: int(sum(v) / len(v)) for k, v in durs.items()}
