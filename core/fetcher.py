"""
fetcher.py -- Loads scan snapshot documents from disk or over HTTP(S).

Both sources end in the same place: a parsed JSON document handed to
core.snapshot.decode_snapshot(). Every failure is raised as SnapshotError
naming the source; nothing here returns a partial snapshot.
"""

import json
import logging
from pathlib import Path
from typing import Any

import requests

from .errors import SnapshotError
from .models import ScanSnapshot
from .snapshot import decode_snapshot

logger = logging.getLogger("remediator.fetcher")

DEFAULT_TIMEOUT = 30

# Module-level session shared across all fetcher calls for connection pooling.
# max_redirects=3 replaces the requests default of 30: a snapshot URL is a
# known artifact location and should not bounce through redirect chains.
_session = requests.Session()
_session.max_redirects = 3


def is_url(source: str) -> bool:
    return source.startswith(("http://", "https://"))


def fetch_document(url: str, timeout: int = DEFAULT_TIMEOUT) -> Any:
    """GET a JSON document. Raises SnapshotError on network, HTTP or JSON failure."""
    try:
        resp = _session.get(url, timeout=timeout)
        resp.raise_for_status()
        return resp.json()
    except requests.RequestException as e:
        logger.warning("Snapshot fetch failed for %s: %s", url, e)
        raise SnapshotError(url, str(e)) from e
    except ValueError as e:
        raise SnapshotError(url, f"response is not JSON: {e}") from e


def read_document(path: str) -> Any:
    """Read and parse a JSON document from a local file."""
    try:
        with Path(path).open(encoding="utf-8") as f:
            return json.load(f)
    except OSError as e:
        raise SnapshotError(path, e.strerror or str(e)) from e
    except ValueError as e:
        raise SnapshotError(path, f"invalid JSON: {e}") from e


def load_snapshot(source: str, timeout: int = DEFAULT_TIMEOUT) -> ScanSnapshot:
    """Load and decode a snapshot from a path or an http(s) URL."""
    document = fetch_document(source, timeout) if is_url(source) else read_document(source)
    logger.debug("Loaded snapshot document from %s", source)
    return decode_snapshot(document, source)
