import json
import logging
from pathlib import Path

log = logging.getLogger(__name__)


class JsonCache:
    """
    Flat file cache: one JSON array per kind, ``<directory>/<kind>.json``.
    Entries are read whole and overwritten whole; the last writer wins.
    """

    def __init__(self, directory="cache"):
        self.directory = Path(directory)

    def path(self, kind):
        return self.directory / f"{kind}.json"

    def load(self, kind):
        """
        Cached collection, or None when the file cannot be read.
        A file that exists but holds broken JSON raises json.JSONDecodeError.
        """
        p = self.path(kind)
        try:
            text = p.read_text(encoding="utf-8")
        except OSError as e:
            log.error(f"Could not load cache data from {p}: {e}")
            return None
        data = json.loads(text)
        if not isinstance(data, list):
            raise ValueError(f"{p} does not hold a JSON array")
        return data

    def save(self, kind, items):
        p = self.path(kind)
        p.parent.mkdir(parents=True, exist_ok=True)
        p.write_text(json.dumps(items, ensure_ascii=False), encoding="utf-8")
        return p


def cached_fetch(cache, kind, fetch, use_cache=False, write=True):
    """
    Cache and network are interchangeable sources of the same collection.
    With use_cache the cache is tried first; on a miss we fall back to fetch().
    Fresh network data is written back when write is set.
    """
    if use_cache:
        log.info(f"Loading cache data for {kind}")
        items = cache.load(kind)
        if items is not None:
            return items
        log.warning(f"No usable cache for {kind}, fetching from GitHub")

    log.info(f"Loading github data for {kind}")
    items = fetch()
    if write:
        p = cache.save(kind, items)
        log.info(f"Data written to {p}")
    return items
