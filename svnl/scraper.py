from __future__ import annotations

import json
import time
from dataclasses import replace
from pathlib import Path
from typing import Callable, Iterable, Optional
from urllib.parse import urljoin

import requests
from lxml import html

from .cache import REASON_DISABLED, GateResult, HtmlCache
from .config import DEFAULT_LOAD_MORE_CLICKS, DEFAULT_POLITE_DELAY_S, REQUEST_TIMEOUT_S, SVNL_ARCHIVE_URL, SVNL_BASE_URL, USER_AGENT
from .errors import FetchError, ScrapeError
from .models import CATEGORY_LOCAL, CATEGORY_NATIONALS, CacheDecision, Competition, CompetitionResult, ScrapeMetadata
from .parser import parse_competition_page
from .tables import extract_competition_tables, load_document
from .util import norm_cell
from .validate import validate_competition_result


ProgressCallback = Callable[[str], None]

# Archive sections, in the order they are listed.
ARCHIVE_SECTIONS = (
    ("Kansalliset kilpailut", CATEGORY_LOCAL),
    ("SM-kilpailut", CATEGORY_NATIONALS),
)
RESULT_LINK_MARKER = "/Tulosarkisto/"


def fetch_page(url: str, *, session: Optional[requests.Session] = None, competition_id: Optional[str] = None) -> str:
    sess = session or requests.Session()
    headers = {"User-Agent": USER_AGENT}
    try:
        resp = sess.get(url, headers=headers, timeout=REQUEST_TIMEOUT_S)
        resp.raise_for_status()
    except requests.RequestException as exc:
        raise FetchError(f"Failed to fetch {url}: {exc}", competition_id=competition_id, context={"url": url}) from exc
    if "charset" not in (resp.headers.get("Content-Type") or "").lower():
        resp.encoding = "utf-8"
    return resp.text


def parse_archive_page(markup: str, *, base_url: str = SVNL_BASE_URL) -> list[Competition]:
    doc = load_document(markup)
    seen: set[str] = set()
    out: list[Competition] = []

    for section_name, category in ARCHIVE_SECTIONS:
        heading = next((h2 for h2 in doc.xpath("//h2") if norm_cell(h2.text_content()) == section_name), None)
        if heading is None:
            continue
        for container in heading.itersiblings():
            if container.tag == "h2":
                break
            for link in container.xpath(f".//a[contains(@href, '{RESULT_LINK_MARKER}')]"):
                href = link.get("href") or ""
                if href in seen:
                    continue
                seen.add(href)
                out.append(_competition_from_link(link, href=href, category=category, base_url=base_url))

    return out


def _competition_from_link(link: html.HtmlElement, *, href: str, category: str, base_url: str) -> Competition:
    name = (link.get("aria-label") or "").strip() or norm_cell(link.text_content())
    date = ""
    article = next(link.iterancestors("article"), None)
    if article is not None:
        time_el = article.xpath(".//time")
        if time_el:
            date = norm_cell(time_el[0].text_content())

    slug = [p for p in href.split("/") if p]
    comp_id = f"svnl-{slug[-1] if slug else ''}"
    url = href if href.startswith("http") else urljoin(base_url, href)
    return Competition(id=comp_id, url=url, name=name, date=date, category=category)


def discover_competitions(
    *,
    session: Optional[requests.Session] = None,
    archive_url: str = SVNL_ARCHIVE_URL,
    load_more_clicks: int = DEFAULT_LOAD_MORE_CLICKS,
    on_progress: Optional[ProgressCallback] = None,
) -> list[Competition]:
    if load_more_clicks > 0:
        raise ValueError("Loading more archive pages needs a browser; only the first archive page can be read (clicks=0)")

    _progress(on_progress, "Loading SVNL archive page...")
    markup = fetch_page(archive_url, session=session)
    _progress(on_progress, "Extracting competition links...")
    competitions = parse_archive_page(markup)
    _progress(on_progress, f"Found {len(competitions)} competitions")
    return competitions


def save_competitions(path: Path, competitions: Iterable[Competition]) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    payload = [c.to_dict() for c in competitions]
    path.write_text(json.dumps(payload, ensure_ascii=False, indent=2), encoding="utf-8")


def load_competitions(path: Path) -> list[Competition]:
    if not path.exists():
        raise FileNotFoundError(f"No saved competitions at {path}. Run 'discover' first.")
    data = json.loads(path.read_text(encoding="utf-8"))
    return [Competition.from_dict(row) for row in data]


def process_page(
    page_markup: str,
    competition: Competition,
    *,
    cache: Optional[HtmlCache],
    force: bool = False,
    use_cache: bool = True,
    on_progress: Optional[ProgressCallback] = None,
) -> list[CompetitionResult]:
    """Extract, gate, parse and validate one fetched competition page.

    Raises NoResultTable (or ScrapeError for unreadable markup); cache problems only
    lower fidelity and are reported through `metadata.degraded`.
    """
    fragment = extract_competition_tables(page_markup, competition_id=competition.id)

    if cache is None:
        gate = GateResult(markup=fragment, decision=CacheDecision(should_scrape=True, reason=REASON_DISABLED))
    else:
        gate = cache.gate(competition.id, fragment, page_markup=page_markup, force=force, use_cache=use_cache)

    if gate.skipped:
        _progress(on_progress, "✓ Skipped (unchanged)")
    elif gate.degraded:
        _progress(on_progress, "Warning: Cache error, parsing full HTML")
    else:
        _progress(on_progress, f"Parsing results ({gate.decision.reason})...")

    results = parse_competition_page(gate.markup, competition, header_markup=page_markup)

    if cache is not None and not gate.degraded:
        cache.persist(competition.id, gate.markup)

    out: list[CompetitionResult] = []
    for result in results:
        summary = validate_competition_result(result)
        metadata = ScrapeMetadata(
            competition_id=competition.id,
            skipped=gate.skipped,
            cached=gate.skipped,
            hash_match=gate.skipped,
            degraded=gate.degraded,
            validation=summary,
        )
        out.append(replace(result, metadata=metadata))

    lifter_count = sum(len(r.lifters) for r in out)
    warning_count = sum(len(r.metadata.validation.all_warnings) for r in out if r.metadata and r.metadata.validation)
    _progress(on_progress, f"Found {lifter_count} lifters")
    if warning_count:
        _progress(on_progress, f"{warning_count} validation warnings")
    return out


def scrape_competition(
    competition: Competition,
    *,
    cache: Optional[HtmlCache],
    session: Optional[requests.Session] = None,
    force: bool = False,
    use_cache: bool = True,
    on_progress: Optional[ProgressCallback] = None,
) -> list[CompetitionResult]:
    _progress(on_progress, f"Fetching {competition.name or competition.id}...")
    page_markup = fetch_page(competition.url, session=session, competition_id=competition.id)
    return process_page(page_markup, competition, cache=cache, force=force, use_cache=use_cache, on_progress=on_progress)


def scrape_competitions(
    competitions: list[Competition],
    *,
    cache: Optional[HtmlCache],
    session: Optional[requests.Session] = None,
    force: bool = False,
    use_cache: bool = True,
    delay_s: float = DEFAULT_POLITE_DELAY_S,
    on_progress: Optional[ProgressCallback] = None,
) -> list[CompetitionResult]:
    """Scrape competitions one after another; a failing competition does not stop the rest."""
    sess = session or requests.Session()
    results: list[CompetitionResult] = []
    scraped = 0
    skipped = 0
    failed = 0

    for i, comp in enumerate(competitions):
        prefix = f"[{i + 1}/{len(competitions)}]"
        label = comp.name or comp.id
        _progress(on_progress, f"{prefix} Re-scraping {label} (forced)" if force else f"{prefix} Checking {label}")

        try:
            comp_results = scrape_competition(
                comp, cache=cache, session=sess, force=force, use_cache=use_cache, on_progress=on_progress
            )
        except (ScrapeError, requests.RequestException) as exc:
            failed += 1
            _progress(on_progress, f"Error: {exc}")
        else:
            results.extend(comp_results)
            metadata = comp_results[0].metadata if comp_results else None
            if metadata is not None and metadata.skipped:
                skipped += 1
            else:
                scraped += 1

        if i < len(competitions) - 1:
            time.sleep(max(0.0, delay_s))

    if not force and (scraped or skipped):
        _progress(on_progress, f"Summary: {scraped} scraped, {skipped} skipped (unchanged)")
    if failed:
        _progress(on_progress, f"{failed} competitions failed")
    return results


def _progress(on_progress: Optional[ProgressCallback], message: str) -> None:
    if on_progress is not None:
        on_progress(message)
