from __future__ import annotations

import hashlib
import logging
import os
import re
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

from .models import CacheDecision


log = logging.getLogger(__name__)

_HEX_DIGEST_RE = re.compile(r"^[0-9a-f]{64}$")

REASON_NO_CACHE = "no cache"
REASON_CHANGED = "content changed"
REASON_UNCHANGED = "unchanged"
REASON_FORCED = "forced"
REASON_DISABLED = "cache disabled"
REASON_CACHE_ERROR = "cache error"


def compute_hash(fragment: str) -> str:
    return hashlib.sha256(fragment.encode("utf-8")).hexdigest()


@dataclass(frozen=True)
class GateResult:
    """Outcome of the cache gate for one competition.

    `markup` is what the parser should read: the cached fragment on a hit, the fresh
    fragment on a miss, and the full page when the cache layer failed (`degraded`).
    """

    markup: str
    decision: CacheDecision
    skipped: bool = False
    degraded: bool = False


class HtmlCache:
    """Per-competition store of the last parsed table fragment and its hash.

    Each entry is two files, `<id>.html` and `<id>.html.hash`. Both are written to
    temporary paths first and renamed into place, so an interrupted write leaves the
    previous pair intact.
    """

    def __init__(self, cache_dir: Path):
        self.cache_dir = Path(cache_dir)

    def fragment_path(self, competition_id: str) -> Path:
        return self.cache_dir / f"{_safe_cache_key(competition_id)}.html"

    def hash_path(self, competition_id: str) -> Path:
        return self.cache_dir / f"{_safe_cache_key(competition_id)}.html.hash"

    def read_hash(self, competition_id: str) -> Optional[str]:
        path = self.hash_path(competition_id)
        if not path.exists():
            return None
        try:
            value = path.read_text(encoding="utf-8").strip()
        except (OSError, UnicodeDecodeError) as exc:
            log.warning("Unreadable cache hash for %s, treating as cold cache: %s", competition_id, exc)
            return None
        if not _HEX_DIGEST_RE.match(value):
            log.warning("Corrupt cache hash for %s, treating as cold cache", competition_id)
            return None
        return value

    def read_fragment(self, competition_id: str) -> Optional[str]:
        path = self.fragment_path(competition_id)
        if not path.exists():
            return None
        try:
            return path.read_bytes().decode("utf-8")
        except (OSError, UnicodeDecodeError) as exc:
            log.warning("Unreadable cached fragment for %s: %s", competition_id, exc)
            return None

    def should_scrape(self, competition_id: str, fragment: str) -> CacheDecision:
        cached_hash = self.read_hash(competition_id)
        if not cached_hash:
            return CacheDecision(should_scrape=True, reason=REASON_NO_CACHE)
        if compute_hash(fragment) != cached_hash:
            return CacheDecision(should_scrape=True, reason=REASON_CHANGED)
        return CacheDecision(should_scrape=False, reason=REASON_UNCHANGED)

    def write(self, competition_id: str, fragment: str, digest: Optional[str] = None) -> None:
        self.cache_dir.mkdir(parents=True, exist_ok=True)
        digest = digest or compute_hash(fragment)

        fragment_path = self.fragment_path(competition_id)
        hash_path = self.hash_path(competition_id)
        fragment_tmp = fragment_path.with_name(fragment_path.name + ".tmp")
        hash_tmp = hash_path.with_name(hash_path.name + ".tmp")

        try:
            # Bytes, not text mode: a served fragment must be byte-identical to what was stored.
            fragment_tmp.write_bytes(fragment.encode("utf-8"))
            hash_tmp.write_bytes(digest.encode("utf-8"))
            os.replace(fragment_tmp, fragment_path)
            os.replace(hash_tmp, hash_path)
        except OSError:
            for tmp in (fragment_tmp, hash_tmp):
                try:
                    tmp.unlink(missing_ok=True)
                except OSError as cleanup_exc:
                    log.debug("Could not remove %s: %s", tmp, cleanup_exc)
            raise

    def gate(self, competition_id: str, fragment: str, *, page_markup: str, force: bool = False, use_cache: bool = True) -> GateResult:
        """Decide what to parse for a freshly extracted fragment.

        Any cache-layer failure degrades to parsing the full page rather than skipping.
        """
        if force:
            return GateResult(markup=fragment, decision=CacheDecision(should_scrape=True, reason=REASON_FORCED))
        if not use_cache:
            return GateResult(markup=fragment, decision=CacheDecision(should_scrape=True, reason=REASON_DISABLED))

        try:
            decision = self.should_scrape(competition_id, fragment)
            if decision.should_scrape:
                return GateResult(markup=fragment, decision=decision)
            cached = self.read_fragment(competition_id)
        except (OSError, UnicodeError) as exc:
            log.warning("Cache error for %s, parsing full page: %s", competition_id, exc)
            return GateResult(
                markup=page_markup,
                decision=CacheDecision(should_scrape=True, reason=REASON_CACHE_ERROR),
                degraded=True,
            )

        if cached is None:
            return GateResult(markup=fragment, decision=CacheDecision(should_scrape=True, reason=REASON_NO_CACHE))
        if compute_hash(cached) != compute_hash(fragment):
            # The stored fragment no longer matches its hash file.
            log.warning("Cached fragment for %s does not match its hash, treating as cold cache", competition_id)
            return GateResult(markup=fragment, decision=CacheDecision(should_scrape=True, reason=REASON_NO_CACHE))
        return GateResult(markup=cached, decision=decision, skipped=True)

    def persist(self, competition_id: str, fragment: str) -> bool:
        """Store the fragment after a successful parse. Returns False if the write failed."""
        try:
            self.write(competition_id, fragment)
        except OSError as exc:
            log.warning("Could not write cache for %s: %s", competition_id, exc)
            return False
        return True


def _safe_cache_key(competition_id: str) -> str:
    key = re.sub(r"[^A-Za-z0-9._-]+", "_", competition_id or "").strip("._")
    if key:
        return key
    return hashlib.sha1((competition_id or "").encode("utf-8")).hexdigest()[:16]
