from __future__ import annotations

import logging
import re
from dataclasses import dataclass, fields, replace
from typing import Callable, Optional, Sequence

from lxml import html

from .tables import row_text
from .util import fold_text


log = logging.getLogger(__name__)

_ATTEMPT_LABEL_RES = (re.compile(r"^1\.?$"), re.compile(r"^2\.?$"), re.compile(r"^3\.?$"))

# Three attempt columns; a "best" column may or may not follow.
ATTEMPT_RUN_WIDTH = 3

POSITIONAL_DEFAULTS: dict[str, int] = {
    "position": 0,
    "weight_class": 2,
    "body_weight": 3,
    "name": 4,
    "club": 5,
    "bench_start": 10,
    "total": 18,
    "points": 19,
}

HEADER_HINTS = (
    "sij",
    "nimi",
    "seura",
    "sarja",
    "paino",
    "ipf",
    "jalkakyykky",
    "penkkipunnerrus",
    "maastanosto",
)
HEADER_PREFIX_HINTS = ("jk", "pp", "mn")
SUB_HEADER_WORDS = ("paras", "pisteet", "yht", "yht.", "best")


def is_squat_label(text: str) -> bool:
    return "jalkakyykky" in text or text.startswith("jk")


def is_bench_label(text: str) -> bool:
    return "penkkipunnerrus" in text or text.startswith("pp")


def is_deadlift_label(text: str) -> bool:
    return "maastanosto" in text or text.startswith("mn")


_FIELD_PREDICATES: tuple[tuple[str, Callable[[str], bool]], ...] = (
    ("position", lambda t: "sij" in t),
    ("gender", lambda t: "m/n" in t or "sukupuoli" in t),
    ("weight_class", lambda t: "sarja" in t),
    ("body_weight", lambda t: "paino" in t and "kk" not in t),
    ("name", lambda t: "nimi" in t),
    ("birth_year", lambda t: t == "sv" or "syntymävuosi" in t),
    ("club", lambda t: "seura" in t),
    ("total", lambda t: "yhteistulos" in t or "tulos" in t),
    ("points", lambda t: "ipf" in t and "gl" in t),
)

_LIFTS: tuple[tuple[str, Callable[[str], bool]], ...] = (
    ("squat_start", is_squat_label),
    ("bench_start", is_bench_label),
    ("deadlift_start", is_deadlift_label),
)


@dataclass(frozen=True)
class ColumnMap:
    """Semantic field -> column index for one table. Indices never leave their table."""

    position: Optional[int] = None
    gender: Optional[int] = None
    weight_class: Optional[int] = None
    body_weight: Optional[int] = None
    name: Optional[int] = None
    birth_year: Optional[int] = None
    club: Optional[int] = None
    squat_start: Optional[int] = None
    bench_start: Optional[int] = None
    deadlift_start: Optional[int] = None
    total: Optional[int] = None
    points: Optional[int] = None

    def index(self, field_name: str) -> Optional[int]:
        """Mapped index, or the positional default of the legacy fixed layout."""
        value = getattr(self, field_name)
        if value is not None:
            return value
        return POSITIONAL_DEFAULTS.get(field_name)

    def defaulted_fields(self) -> list[str]:
        return [f.name for f in fields(self) if getattr(self, f.name) is None and f.name in POSITIONAL_DEFAULTS]


def header_cells(tr: html.HtmlElement) -> list[html.HtmlElement]:
    return tr.xpath("./th|./td")


def is_header_label(text: str) -> bool:
    if text.startswith(HEADER_HINTS + HEADER_PREFIX_HINTS) or text in SUB_HEADER_WORDS:
        return True
    if any(pattern.match(text) for pattern in _ATTEMPT_LABEL_RES):
        return True
    return any(predicate(text) for _, predicate in _FIELD_PREDICATES)


def is_header_row(tr: html.HtmlElement) -> bool:
    """A td-only row is a header when it holds a "1/2/3" run or nothing but header labels.

    A data row always carries a name or a weight that is no label, even when its club
    ("Painonnostoseura") or surname ("Mnatsakanyan") happens to start like one.
    """
    if tr.xpath("./th"):
        return True
    texts = [fold_text(cell.text_content()) for cell in header_cells(tr)]
    if find_attempt_run(texts, 0) is not None:
        return True
    labels = [text for text in texts if text]
    return bool(labels) and all(is_header_label(text) for text in labels)


def find_header_row_index(rows: Sequence[html.HtmlElement]) -> Optional[int]:
    for i, tr in enumerate(rows):
        text = fold_text(row_text(tr))
        if "nimi" in text and "seura" in text:
            return i
    return None


def header_grid(header_row: html.HtmlElement, sub_header_row: Optional[html.HtmlElement] = None) -> tuple[tuple[str, ...], Optional[tuple[str, ...]]]:
    """Folded header texts laid out on the table's column grid.

    A cell spanning several columns keeps its text in its first column and leaves the
    rest empty. Columns covered by a rowspan from the header row are empty in the
    sub-header row, so both rows share the data rows' indices.
    """
    top: list[str] = []
    covered: set[int] = set()
    for cell in header_cells(header_row):
        start = len(top)
        colspan = _span(cell.get("colspan"))
        top.append(fold_text(cell.text_content()))
        top.extend([""] * (colspan - 1))
        if _span(cell.get("rowspan")) > 1:
            covered.update(range(start, start + colspan))

    if sub_header_row is None:
        return (tuple(top), None)

    sub: list[str] = []
    for cell in header_cells(sub_header_row):
        while len(sub) in covered:
            sub.append("")
        colspan = _span(cell.get("colspan"))
        sub.append(fold_text(cell.text_content()))
        sub.extend([""] * (colspan - 1))
    while len(sub) < len(top) and len(sub) in covered:
        sub.append("")
    return (tuple(top), tuple(sub))


def is_attempt_run(texts: Sequence[str], start: int) -> bool:
    if start < 0 or start + ATTEMPT_RUN_WIDTH > len(texts):
        return False
    return all(pattern.match(texts[start + k] or "") for k, pattern in enumerate(_ATTEMPT_LABEL_RES))


def find_attempt_run(texts: Sequence[str], start: int, *, claimed: Sequence[int] = (), claim_width: int = ATTEMPT_RUN_WIDTH) -> Optional[int]:
    """First "1", "2", "3" run at or after `start` that does not overlap a claimed run."""
    for i in range(max(start, 0), len(texts) - ATTEMPT_RUN_WIDTH + 1):
        if is_attempt_run(texts, i) and not _overlaps_claimed(i, claimed, claim_width):
            return i
    return None


def numbered_attempt_start(texts: Sequence[str], label_index: int) -> int:
    # Some layouts put the numbered run right before the lift label; otherwise the label
    # column is the first attempt column.
    if label_index >= ATTEMPT_RUN_WIDTH and is_attempt_run(texts, label_index - ATTEMPT_RUN_WIDTH):
        return label_index - ATTEMPT_RUN_WIDTH
    return label_index


def detect_fields(header: Sequence[str]) -> dict[str, int]:
    found: dict[str, int] = {}
    for index, text in enumerate(header):
        for field_name, predicate in _FIELD_PREDICATES:
            if predicate(text):
                found[field_name] = index
    return found


def detect_lift_starts_in_header(header: Sequence[str]) -> dict[str, int]:
    found: dict[str, int] = {}
    for field_name, predicate in _LIFTS:
        label_index = _first_index(header, predicate)
        if label_index is not None:
            found[field_name] = numbered_attempt_start(header, label_index)
    return found


def detect_lift_starts_in_sub_header(header: Sequence[str], sub_header: Sequence[str]) -> dict[str, int]:
    """Anchor each lift's run after its parent label; a run once claimed is never reused."""
    found: dict[str, int] = {}
    claimed: list[int] = []
    search_from = 0
    for field_name, predicate in _LIFTS:
        label_index = _first_index(header, predicate)
        if label_index is None:
            continue
        start = find_attempt_run(sub_header, max(label_index, search_from), claimed=claimed)
        if start is None:
            continue
        found[field_name] = start
        claimed.append(start)
        search_from = start + ATTEMPT_RUN_WIDTH
    return found


def detect_sub_header_totals(sub_header: Sequence[str]) -> dict[str, int]:
    found: dict[str, int] = {}
    points = _first_index(sub_header, lambda t: "ipf" in t or "gl" in t or "pisteet" in t)
    if points is not None:
        found["points"] = points
    if points:
        found["total"] = points - 1
    else:
        total = _last_index(sub_header, lambda t: "tulos" in t or "yhteistulos" in t)
        if total is not None:
            found["total"] = total
    return found


def detect_unlabelled_bench(header: Sequence[str], cmap: ColumnMap) -> Optional[int]:
    # A header-only start may be the lift label itself, so its run can begin one column later.
    claimed = [s for s in (cmap.squat_start, cmap.deadlift_start) if s is not None]
    return find_attempt_run(header, 0, claimed=claimed, claim_width=ATTEMPT_RUN_WIDTH + 1)


def is_bench_only_layout(header: Sequence[str]) -> bool:
    has_bench = any("penkkipunnerrus" in t for t in header)
    has_squat = any("jalkakyykky" in t for t in header)
    has_deadlift = any("maastanosto" in t for t in header)
    return has_bench and not has_squat and not has_deadlift


def detect_column_map(header_row: html.HtmlElement, sub_header_row: Optional[html.HtmlElement] = None) -> ColumnMap:
    header, sub_header = header_grid(header_row, sub_header_row)
    return build_column_map(header, sub_header)


def build_column_map(header: Sequence[str], sub_header: Optional[Sequence[str]] = None) -> ColumnMap:
    """Apply the detectors in priority order; later detectors refine earlier ones."""
    cmap = ColumnMap(**detect_fields(header))
    cmap = replace(cmap, **detect_lift_starts_in_header(header))

    if sub_header is not None:
        cmap = replace(cmap, **detect_lift_starts_in_sub_header(header, sub_header))
        cmap = replace(cmap, **detect_sub_header_totals(sub_header))

    if cmap.bench_start is None:
        bench = detect_unlabelled_bench(header, cmap)
        if bench is not None:
            cmap = replace(cmap, bench_start=bench)

    if is_bench_only_layout(header):
        cmap = replace(cmap, squat_start=None, deadlift_start=None)

    defaulted = cmap.defaulted_fields()
    if defaulted:
        log.debug("No header signal for %s, using positional defaults", ", ".join(defaulted))
    return cmap


def _overlaps_claimed(start: int, claimed: Sequence[int], width: int) -> bool:
    return any(c <= start < c + width for c in claimed)


def _first_index(texts: Sequence[str], predicate: Callable[[str], bool]) -> Optional[int]:
    for i, text in enumerate(texts):
        if predicate(text):
            return i
    return None


def _last_index(texts: Sequence[str], predicate: Callable[[str], bool]) -> Optional[int]:
    for i in range(len(texts) - 1, -1, -1):
        if predicate(texts[i]):
            return i
    return None


def _span(value: Optional[str]) -> int:
    try:
        n = int((value or "1").strip())
    except ValueError:
        return 1
    return min(max(n, 1), 100)
