from __future__ import annotations

import csv
import io
import json
import re
from pathlib import Path
from typing import Any, Iterable, Sequence

from .models import Attempt, CompetitionResult, Lifter
from .util import format_number


FORMAT_CSV = "csv"
FORMAT_JSON = "json"
FORMATS = (FORMAT_CSV, FORMAT_JSON)

_LIFT_FIELDS = ("squat", "bench", "deadlift")

CSV_FIELDNAMES: list[str] = [
    "competition_id",
    "competition_name",
    "competition_date",
    "competition_start_date",
    "competition_end_date",
    "event_type",
    "position",
    "name",
    "birth_year",
    "gender",
    "age_class",
    "equipment",
    "weight_class",
    "body_weight",
    "club",
    *[f"{lift}_{n}{suffix}" for lift in _LIFT_FIELDS for n in (1, 2, 3) for suffix in ("", "_success")],
    "total",
    "points",
]


def csv_row(result: CompetitionResult, lifter: Lifter) -> dict[str, Any]:
    comp = result.competition
    row: dict[str, Any] = {
        "competition_id": comp.id,
        "competition_name": comp.name,
        "competition_date": comp.date,
        "competition_start_date": comp.start_date or "",
        "competition_end_date": comp.end_date or "",
        "event_type": comp.event_type or "",
        "position": lifter.position,
        "name": lifter.name,
        "birth_year": lifter.birth_year or "",
        "gender": lifter.gender,
        "age_class": lifter.age_class or "",
        "equipment": lifter.equipment,
        "weight_class": lifter.weight_class,
        "body_weight": format_number(lifter.body_weight),
        "club": lifter.club,
        "total": format_number(lifter.total),
        "points": format_number(lifter.points),
    }
    for lift in _LIFT_FIELDS:
        attempts: Sequence[Attempt] = getattr(lifter, lift)
        for n, attempt in enumerate(attempts, start=1):
            row[f"{lift}_{n}"] = format_number(attempt.weight)
            row[f"{lift}_{n}_success"] = "true" if attempt.success else "false"
    return row


def write_csv(results: Iterable[CompetitionResult], f: Any) -> None:
    writer = csv.DictWriter(f, fieldnames=CSV_FIELDNAMES)
    writer.writeheader()
    for result in results:
        for lifter in result.lifters:
            writer.writerow(csv_row(result, lifter))


def to_csv(results: Iterable[CompetitionResult]) -> str:
    buf = io.StringIO(newline="")
    write_csv(results, buf)
    return buf.getvalue()


def to_json(results: Iterable[CompetitionResult]) -> str:
    return json.dumps([r.to_dict() for r in results], ensure_ascii=False, indent=2)


def load_results_json(path: Path) -> list[CompetitionResult]:
    data = json.loads(path.read_text(encoding="utf-8"))
    if isinstance(data, dict):
        data = [data]
    return [CompetitionResult.from_dict(item) for item in data]


def write_results(results: Sequence[CompetitionResult], path: Path, fmt: str = FORMAT_CSV) -> Path:
    if fmt not in FORMATS:
        raise ValueError(f"Unknown output format: {fmt!r}")
    path.parent.mkdir(parents=True, exist_ok=True)
    if fmt == FORMAT_CSV:
        with path.open("w", newline="", encoding="utf-8") as f:
            write_csv(results, f)
    else:
        path.write_text(to_json(results) + "\n", encoding="utf-8")
    return path


def write_results_per_competition(results: Sequence[CompetitionResult], out_dir: Path, fmt: str = FORMAT_CSV) -> list[Path]:
    """One file per competition; equipment groups of the same competition land in their own files."""
    written: list[Path] = []
    for result in results:
        path = out_dir / f"{safe_filename(result.competition.id)}.{fmt}"
        written.append(write_results([result], path, fmt))
    return written


def safe_filename(value: str) -> str:
    name = re.sub(r"[^A-Za-z0-9._-]+", "_", value or "").strip("._")
    return name or "competition"
