from __future__ import annotations

import pytest

from svnl import cache as cache_mod
from svnl.cache import (
    REASON_CACHE_ERROR,
    REASON_CHANGED,
    REASON_DISABLED,
    REASON_FORCED,
    REASON_NO_CACHE,
    REASON_UNCHANGED,
    HtmlCache,
    compute_hash,
)


FRAGMENT = '<table><tr><td>Nimi</td><td>Seura</td></tr>\r\n<tr><td>Jääskeläinen</td><td>Äänekosken Voima</td></tr></table>'
PAGE = f"<html><body><h1>Kisa</h1>{FRAGMENT}</body></html>"


@pytest.fixture
def html_cache(tmp_path) -> HtmlCache:
    return HtmlCache(tmp_path / "html")


def test_compute_hash_is_sha256_hex():
    digest = compute_hash("abc")
    assert digest == "ba7816bf8f01cfea414140de5dae2223b00361a396177a9cb410ff61f20015ad"


class TestShouldScrape:
    def test_cold_cache(self, html_cache):
        decision = html_cache.should_scrape("svnl-kisa", FRAGMENT)
        assert decision.should_scrape is True
        assert decision.reason == REASON_NO_CACHE

    def test_unchanged_after_write(self, html_cache):
        html_cache.write("svnl-kisa", FRAGMENT)
        decision = html_cache.should_scrape("svnl-kisa", FRAGMENT)
        assert decision.should_scrape is False
        assert decision.reason == REASON_UNCHANGED

    def test_single_byte_change_is_detected(self, html_cache):
        html_cache.write("svnl-kisa", FRAGMENT)
        decision = html_cache.should_scrape("svnl-kisa", FRAGMENT.replace("Seura", "seura"))
        assert decision.should_scrape is True
        assert decision.reason == REASON_CHANGED

    def test_corrupt_hash_is_a_cold_cache(self, html_cache):
        html_cache.write("svnl-kisa", FRAGMENT)
        html_cache.hash_path("svnl-kisa").write_text("not a digest", encoding="utf-8")
        assert html_cache.should_scrape("svnl-kisa", FRAGMENT).reason == REASON_NO_CACHE

    def test_empty_hash_is_a_cold_cache(self, html_cache):
        html_cache.write("svnl-kisa", FRAGMENT)
        html_cache.hash_path("svnl-kisa").write_text("", encoding="utf-8")
        assert html_cache.should_scrape("svnl-kisa", FRAGMENT).reason == REASON_NO_CACHE


class TestGate:
    def test_hit_serves_byte_identical_fragment(self, html_cache):
        html_cache.write("svnl-kisa", FRAGMENT)
        gate = html_cache.gate("svnl-kisa", FRAGMENT, page_markup=PAGE)

        assert gate.skipped is True
        assert gate.degraded is False
        assert gate.markup == FRAGMENT
        assert html_cache.fragment_path("svnl-kisa").read_bytes() == FRAGMENT.encode("utf-8")

    def test_miss_serves_fresh_fragment(self, html_cache):
        gate = html_cache.gate("svnl-kisa", FRAGMENT, page_markup=PAGE)
        assert gate.skipped is False
        assert gate.markup == FRAGMENT
        assert gate.decision.reason == REASON_NO_CACHE

    def test_force_bypasses_matching_hash(self, html_cache):
        html_cache.write("svnl-kisa", FRAGMENT)
        gate = html_cache.gate("svnl-kisa", FRAGMENT, page_markup=PAGE, force=True)
        assert gate.skipped is False
        assert gate.decision.reason == REASON_FORCED

    def test_disabled_cache(self, html_cache):
        html_cache.write("svnl-kisa", FRAGMENT)
        gate = html_cache.gate("svnl-kisa", FRAGMENT, page_markup=PAGE, use_cache=False)
        assert gate.skipped is False
        assert gate.decision.reason == REASON_DISABLED

    def test_missing_fragment_with_valid_hash_is_a_miss(self, html_cache):
        html_cache.write("svnl-kisa", FRAGMENT)
        html_cache.fragment_path("svnl-kisa").unlink()
        gate = html_cache.gate("svnl-kisa", FRAGMENT, page_markup=PAGE)
        assert gate.skipped is False
        assert gate.markup == FRAGMENT

    def test_fragment_not_matching_its_hash_is_a_miss(self, html_cache):
        html_cache.write("svnl-kisa", FRAGMENT)
        html_cache.fragment_path("svnl-kisa").write_bytes(b"<table>garbage</table>")
        gate = html_cache.gate("svnl-kisa", FRAGMENT, page_markup=PAGE)

        assert gate.skipped is False
        assert gate.markup == FRAGMENT
        assert gate.decision.reason == REASON_NO_CACHE

    def test_half_written_pair_is_a_miss(self, html_cache):
        # New fragment next to the old hash, then the page reverts to the old content.
        html_cache.write("svnl-kisa", FRAGMENT)
        html_cache.fragment_path("svnl-kisa").write_bytes(FRAGMENT.replace("Voima", "Veto").encode("utf-8"))
        gate = html_cache.gate("svnl-kisa", FRAGMENT, page_markup=PAGE)

        assert gate.skipped is False
        assert gate.markup == FRAGMENT

    def test_cache_error_degrades_to_full_page(self, html_cache, monkeypatch):
        def boom(competition_id, fragment):
            raise PermissionError("denied")

        monkeypatch.setattr(html_cache, "should_scrape", boom)
        gate = html_cache.gate("svnl-kisa", FRAGMENT, page_markup=PAGE)

        assert gate.degraded is True
        assert gate.skipped is False
        assert gate.markup == PAGE
        assert gate.decision.reason == REASON_CACHE_ERROR


class TestWrite:
    def test_writes_pair(self, html_cache):
        html_cache.write("svnl-kisa", FRAGMENT)
        assert html_cache.read_fragment("svnl-kisa") == FRAGMENT
        assert html_cache.read_hash("svnl-kisa") == compute_hash(FRAGMENT)
        assert not list(html_cache.cache_dir.glob("*.tmp"))

    def test_failed_write_keeps_previous_pair(self, html_cache, monkeypatch):
        html_cache.write("svnl-kisa", FRAGMENT)

        def fail_replace(src, dst):
            raise OSError("disk full")

        monkeypatch.setattr(cache_mod.os, "replace", fail_replace)
        assert html_cache.persist("svnl-kisa", "<table>uusi</table>") is False

        monkeypatch.undo()
        assert html_cache.read_fragment("svnl-kisa") == FRAGMENT
        assert html_cache.read_hash("svnl-kisa") == compute_hash(FRAGMENT)
        assert not list(html_cache.cache_dir.glob("*.tmp"))

    def test_unsafe_ids_stay_inside_cache_dir(self, html_cache):
        path = html_cache.fragment_path("../../etc/passwd")
        assert path.parent == html_cache.cache_dir
