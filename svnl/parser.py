from __future__ import annotations

import re
from dataclasses import dataclass, replace
from typing import Iterable, Optional, Sequence

from lxml import html

from .columns import ColumnMap, detect_column_map, find_header_row_index, header_cells, is_header_row
from .models import (
    CATEGORY_LOCAL,
    CATEGORY_NATIONALS,
    EQUIPMENT_EQUIPPED,
    EQUIPMENT_RAW,
    EVENT_TYPE_BENCH,
    EVENT_TYPE_FULL,
    NO_ATTEMPT,
    NO_ATTEMPTS,
    Attempt,
    Competition,
    CompetitionResult,
    Lifter,
)
from .tables import load_document, row_text, table_rows
from .util import (
    clean_date,
    extract_age_class,
    extract_date_from_text,
    extract_location_from_text,
    fold_text,
    is_likely_date,
    norm_cell,
    normalize_weight_class,
    parse_birth_year,
    parse_date_range,
    parse_number,
)


# Row-walk states. The state only records what the last row was; the live context
# (gender, age class, equipment) is what carries over to data rows.
STATE_SCANNING = "scanning"
STATE_IN_DATA = "in-data"
STATE_SECTION_GENDER = "section-gender"
STATE_SECTION_AGE_CLASS = "section-age-class"
STATE_SECTION_EQUIPMENT = "section-equipment"

EQUIPPED_MARKER = "varuste"

_WOMEN_LABELS = {"naiset", "women"}
_MEN_LABELS = {"miehet", "men"}
_NON_COMPETITOR_NAMES = {"klassinen", "varuste", "naiset", "miehet"}
_NON_COMPETITOR_NAME_PARTS = ("etunimi", "ennätykset", "tuomari")
_LIFT_HEADER_WORDS = ("jalkakyykky", "penkkipunnerrus", "maastanosto")
_EMPTY_MARKERS = {"", "-"}
_WHITESPACE_RE = re.compile(r"\s")
_TITLE_XPATH = (
    "(//h1[contains(concat(' ', normalize-space(@class), ' '), ' entry-title ')] | //h1 | //title)[1]"
)


@dataclass(frozen=True)
class SectionContext:
    gender: Optional[str] = None
    age_class: Optional[str] = None
    equipment: str = EQUIPMENT_RAW
    state: str = STATE_SCANNING


@dataclass(frozen=True)
class Row:
    element: html.HtmlElement
    cells: tuple[Optional[html.HtmlElement], ...]  # on the column grid; spanned slots are None
    text: str  # folded text of the whole row

    @classmethod
    def from_element(cls, tr: html.HtmlElement) -> Row:
        cells: list[Optional[html.HtmlElement]] = []
        for cell in header_cells(tr):
            cells.append(cell)
            cells.extend([None] * (_colspan(cell) - 1))
        return cls(element=tr, cells=tuple(cells), text=fold_text(row_text(tr)))

    def cell(self, index: Optional[int]) -> Optional[html.HtmlElement]:
        if index is None or index < 0 or index >= len(self.cells):
            return None
        return self.cells[index]

    def cell_text(self, index: Optional[int]) -> str:
        cell = self.cell(index)
        return norm_cell(cell.text_content()) if cell is not None else ""

    def non_empty_cells(self) -> list[html.HtmlElement]:
        return [c for c in self.cells if c is not None and norm_cell(c.text_content()) not in _EMPTY_MARKERS]


def parse_competition_page(markup: str, competition: Competition, *, header_markup: Optional[str] = None) -> list[CompetitionResult]:
    """Parse result tables into one result group per equipment category.

    `header_markup` is the full page when `markup` is only the cached table fragment;
    the competition title lives outside the tables.
    """
    doc = load_document(markup, competition_id=competition.id)
    header_doc = load_document(header_markup, competition_id=competition.id) if header_markup else doc

    parsed = parse_event_info(header_doc, competition)
    lifters = parse_lifters(doc)

    if EQUIPPED_MARKER in parsed.name.lower():
        lifters = [replace(lifter, equipment=EQUIPMENT_EQUIPPED) for lifter in lifters]

    parsed = replace(parsed, event_type=detect_event_type(lifters))
    return split_by_equipment(parsed, lifters)


def split_by_equipment(competition: Competition, lifters: Sequence[Lifter]) -> list[CompetitionResult]:
    groups: dict[str, list[Lifter]] = {}
    for lifter in lifters:
        groups.setdefault(lifter.equipment, []).append(lifter)

    if len(groups) <= 1:
        return [CompetitionResult(competition=competition, lifters=tuple(lifters))]

    out: list[CompetitionResult] = []
    for equipment, group in groups.items():
        label = "Classic" if equipment == EQUIPMENT_RAW else "Equipped"
        out.append(
            CompetitionResult(
                competition=replace(competition, id=f"{competition.id}-{equipment}", name=f"{competition.name} ({label})"),
                lifters=tuple(group),
            )
        )
    return out


def detect_event_type(lifters: Iterable[Lifter]) -> str:
    for lifter in lifters:
        if any(a.weight > 0 for a in lifter.squat) or any(a.weight > 0 for a in lifter.deadlift):
            return EVENT_TYPE_FULL
    return EVENT_TYPE_BENCH


def parse_event_info(doc: html.HtmlElement, competition: Competition) -> Competition:
    """Read name, date, location and category from the page title.

    Title format: "PV-81, Kansallinen voimanostokilpailu, Pori, 30.12.2025".
    """
    title_el = doc.xpath(_TITLE_XPATH)
    title_text = norm_cell(title_el[0].text_content()) if title_el else ""
    parts = [p.strip() for p in title_text.split(",")]

    name = title_text or competition.name or competition.id
    date_text = ""
    location = ""
    category = competition.category or CATEGORY_LOCAL

    if len(parts) >= 2:
        last = parts[-1]
        date_text = last
        date_only = extract_date_from_text(last)
        if date_only:
            date_text = date_only
            location = extract_location_from_text(last, date_only)
            if not location and len(parts) >= 3:
                location = parts[-2]
        name_parts = parts[:-1]
        if location and name_parts and name_parts[-1] == location:
            name_parts.pop()
        name = ", ".join(name_parts)

        lower_title = title_text.lower()
        if "sm-" in lower_title or "suomen mestaruus" in lower_title:
            category = CATEGORY_NATIONALS

    date_text = clean_date(date_text)

    if not is_likely_date(date_text):
        time_el = doc.xpath("//time")
        if time_el:
            time_text = clean_date((time_el[0].get("datetime") or "").strip() or norm_cell(time_el[0].text_content()))
            if is_likely_date(time_text):
                date_text = time_text

    if not is_likely_date(date_text) and competition.date:
        date_text = competition.date

    start_date, end_date = parse_date_range(date_text)
    return replace(
        competition,
        name=name,
        date=date_text,
        start_date=start_date,
        end_date=end_date,
        location=location or None,
        category=category,
    )


def parse_lifters(doc: html.HtmlElement) -> list[Lifter]:
    lifters: list[Lifter] = []
    for table in doc.xpath("//table"):
        lifters.extend(parse_table(table))
    return lifters


def parse_table(table: html.HtmlElement) -> list[Lifter]:
    elements = table_rows(table)
    header_index = find_header_row_index(elements)
    if header_index is None:
        return []

    sub_header = None
    if header_index + 1 < len(elements) and is_header_row(elements[header_index + 1]):
        sub_header = elements[header_index + 1]
    cmap = detect_column_map(elements[header_index], sub_header)
    data_start = header_index + (2 if sub_header is not None else 1)

    rows = [Row.from_element(tr) for tr in elements]
    default_gender = default_table_gender(rows, data_start, cmap)
    ctx = SectionContext(
        gender=gender_before_index(rows, data_start) or default_gender,
        age_class=age_class_before_index(rows, data_start, cmap),
    )

    out: list[Lifter] = []
    for row in rows[data_start:]:
        ctx, lifter = classify_row(row, ctx, cmap, default_gender=default_gender)
        if lifter is not None:
            out.append(lifter)
    return out


def classify_row(row: Row, ctx: SectionContext, cmap: ColumnMap, *, default_gender: Optional[str] = None) -> tuple[SectionContext, Optional[Lifter]]:
    """One step of the row walk: returns the updated context and the lifter, if the row is one."""
    age_class = age_class_banner(row, cmap)
    if age_class:
        gender = "F" if age_class.startswith("N") else "M"
        return (replace(ctx, age_class=age_class, gender=gender, state=STATE_SECTION_AGE_CLASS), None)

    if len(row.non_empty_cells()) == 1:
        equipment = equipment_banner(row.text)
        if equipment:
            return (replace(ctx, equipment=equipment, state=STATE_SECTION_EQUIPMENT), None)
        label = gender_banner(row.text)
        if label:
            gender, banner_age_class = label
            return (replace(ctx, gender=gender, age_class=banner_age_class or ctx.age_class, state=STATE_SECTION_GENDER), None)
        literal = gender_literal(row.text)
        if literal:
            return (replace(ctx, gender=literal, state=STATE_SECTION_GENDER), None)

    lifter = extract_lifter(row, ctx, cmap, default_gender=default_gender)
    if lifter is None:
        return (ctx, None)
    return (replace(ctx, state=STATE_IN_DATA), lifter)


def equipment_banner(text: str) -> Optional[str]:
    if not text:
        return None
    if EQUIPPED_MARKER in text:
        return EQUIPMENT_EQUIPPED
    if "klassinen" in text or "classic" in text or text == "raw":
        return EQUIPMENT_RAW
    return None


def gender_banner(text: str) -> Optional[tuple[str, Optional[str]]]:
    """A banner naming an age class ("N23", "M40 ...") also sets the gender."""
    age_class = extract_age_class(text)
    if not age_class:
        return None
    return ("F" if age_class.startswith("N") else "M", age_class)


def gender_literal(text: str) -> Optional[str]:
    if text in _WOMEN_LABELS:
        return "F"
    if text in _MEN_LABELS:
        return "M"
    return None


def age_class_banner(row: Row, cmap: ColumnMap) -> Optional[str]:
    """Repeated lift-header rows inside a table announce a new age class."""
    age_class = extract_age_class(row.text)
    if not age_class:
        return None
    if not any(word in row.text for word in _LIFT_HEADER_WORDS):
        return None
    if row.cell_text(cmap.index("name")):
        return None
    if _looks_numeric(_position_text(row, cmap)):
        return None
    return age_class


def extract_lifter(row: Row, ctx: SectionContext, cmap: ColumnMap, *, default_gender: Optional[str] = None) -> Optional[Lifter]:
    required = [cmap.index(f) for f in ("name", "club", "position", "weight_class", "body_weight")]
    if cmap.gender is not None:
        required.append(cmap.gender)
    if len(row.cells) <= max(i for i in required if i is not None):
        return None

    name_text = row.cell_text(cmap.index("name"))
    if not name_text or is_non_competitor_name(name_text):
        return None

    position_text = _position_text(row, cmap)
    position = int(parse_number(position_text))
    if position == 0 and not _looks_numeric(position_text):
        return None

    name = name_text
    birth_year = parse_birth_year(row.cell_text(cmap.birth_year)) if cmap.birth_year is not None else 0
    if "/" in name_text:
        parts = [p.strip() for p in name_text.split("/")]
        name = parts[0]
        if not birth_year:
            birth_year = parse_birth_year(parts[1])

    weight_class_text = row.cell_text(cmap.index("weight_class"))

    return Lifter(
        name=name,
        birth_year=birth_year,
        gender=_row_gender(row, ctx, cmap, default_gender),
        age_class=extract_age_class(weight_class_text) or ctx.age_class or None,
        equipment=ctx.equipment,
        weight_class=normalize_weight_class(weight_class_text),
        body_weight=parse_number(row.cell_text(cmap.index("body_weight"))),
        club=row.cell_text(cmap.index("club")),
        squat=parse_attempts(row, cmap.squat_start),
        bench=parse_attempts(row, cmap.index("bench_start")),
        deadlift=parse_attempts(row, cmap.deadlift_start),
        total=parse_number(row.cell_text(cmap.index("total"))),
        points=parse_number(row.cell_text(cmap.index("points"))),
        position=position,
    )


def is_non_competitor_name(name: str) -> bool:
    lower = fold_text(name)
    if lower in _NON_COMPETITOR_NAMES:
        return True
    return any(part in lower for part in _NON_COMPETITOR_NAME_PARTS)


def parse_attempts(row: Row, start: Optional[int]) -> tuple[Attempt, Attempt, Attempt]:
    if start is None:
        return NO_ATTEMPTS
    return (parse_attempt(row.cell(start)), parse_attempt(row.cell(start + 1)), parse_attempt(row.cell(start + 2)))


def parse_attempt(cell: Optional[html.HtmlElement]) -> Attempt:
    if cell is None:
        return NO_ATTEMPT
    text = _WHITESPACE_RE.sub("", cell.text_content() or "")
    if text in {"", "-", "0"}:
        return NO_ATTEMPT
    weight = abs(parse_number(text))
    return Attempt(weight=weight, success=weight > 0 and not is_struck_through(cell))


def is_struck_through(cell: html.HtmlElement) -> bool:
    # Failed attempts are rendered with a line-through style on the cell or its content.
    if "line-through" in html.tostring(cell, encoding="unicode", with_tail=False):
        return True
    return bool(cell.xpath(".//s|.//del|.//strike"))


def default_table_gender(rows: Sequence[Row], data_start: int, cmap: ColumnMap) -> Optional[str]:
    """Gender for tables without a gender column when only one sex banner appears."""
    if cmap.gender is not None:
        return None
    women_index = _first_row_index(rows, lambda r: _row_gender_marker(r) == "F")
    men_index = _first_row_index(rows, lambda r: _row_gender_marker(r) == "M")
    if women_index is not None and men_index is None:
        return "F"
    if men_index is not None and women_index is None and has_lifters_between(rows, data_start, men_index, cmap):
        # Lifters above a lone men's banner are the women's section.
        return "F"
    return None


def gender_before_index(rows: Sequence[Row], end: int) -> Optional[str]:
    gender: Optional[str] = None
    for row in rows[:end]:
        marker = _row_gender_marker(row)
        if marker:
            gender = marker
    return gender


def age_class_before_index(rows: Sequence[Row], end: int, cmap: ColumnMap) -> Optional[str]:
    age_class: Optional[str] = None
    for row in rows[:end]:
        label = extract_age_class(row.text)
        if not label:
            continue
        if age_class_banner(row, cmap) or _is_standalone_age_class_row(row):
            age_class = label
    return age_class


def has_lifters_between(rows: Sequence[Row], start: int, end: int, cmap: ColumnMap) -> bool:
    for row in rows[start:end]:
        name_text = row.cell_text(cmap.index("name"))
        if name_text and _looks_numeric(_position_text(row, cmap)):
            return True
    return False


def _row_gender_marker(row: Row) -> Optional[str]:
    label = gender_banner(row.text)
    if label:
        return label[0]
    return gender_literal(row.text)


def _row_gender(row: Row, ctx: SectionContext, cmap: ColumnMap, default_gender: Optional[str]) -> str:
    # An explicit gender column always wins over the section context.
    text = row.cell_text(cmap.gender).upper() if cmap.gender is not None else ""
    if text.startswith("N"):
        return "F"
    if text.startswith("M"):
        return "M"
    return ctx.gender or default_gender or "M"


def _is_standalone_age_class_row(row: Row) -> bool:
    cells = row.non_empty_cells()
    if len(cells) != 1:
        return False
    return extract_age_class(cells[0].text_content()) is not None


def _position_text(row: Row, cmap: ColumnMap) -> str:
    return row.cell_text(cmap.index("position")).replace(".", "", 1)


def _looks_numeric(text: str) -> bool:
    return bool(text) and text[0].isdigit()


def _first_row_index(rows: Sequence[Row], predicate) -> Optional[int]:
    for i, row in enumerate(rows):
        if predicate(row):
            return i
    return None


def _colspan(cell: html.HtmlElement) -> int:
    try:
        n = int((cell.get("colspan") or "1").strip())
    except ValueError:
        return 1
    return min(max(n, 1), 100)
