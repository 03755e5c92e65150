from __future__ import annotations

from dataclasses import dataclass, field, replace
from typing import Any, Optional


EQUIPMENT_RAW = "raw"
EQUIPMENT_EQUIPPED = "equipped"

EVENT_TYPE_FULL = "sbd"
EVENT_TYPE_BENCH = "b"

CATEGORY_NATIONALS = "nationals"
CATEGORY_LOCAL = "local"


@dataclass(frozen=True)
class Attempt:
    weight: float  # 0 = no attempt
    success: bool

    def to_dict(self) -> dict[str, Any]:
        return {"weight": self.weight, "success": self.success}


NO_ATTEMPT = Attempt(weight=0.0, success=False)
NO_ATTEMPTS: tuple[Attempt, Attempt, Attempt] = (NO_ATTEMPT, NO_ATTEMPT, NO_ATTEMPT)


@dataclass(frozen=True)
class Lifter:
    name: str
    birth_year: int  # 0 = unknown
    gender: str  # "M" | "F"
    age_class: Optional[str]
    equipment: str  # "raw" | "equipped"
    weight_class: str  # "-57", "84+"
    body_weight: float
    club: str
    squat: tuple[Attempt, Attempt, Attempt]
    bench: tuple[Attempt, Attempt, Attempt]
    deadlift: tuple[Attempt, Attempt, Attempt]
    total: float
    points: float
    position: int

    def to_dict(self) -> dict[str, Any]:
        return {
            "name": self.name,
            "birthYear": self.birth_year,
            "gender": self.gender,
            "ageClass": self.age_class,
            "equipment": self.equipment,
            "weightClass": self.weight_class,
            "bodyWeight": self.body_weight,
            "club": self.club,
            "squat": [a.to_dict() for a in self.squat],
            "bench": [a.to_dict() for a in self.bench],
            "deadlift": [a.to_dict() for a in self.deadlift],
            "total": self.total,
            "points": self.points,
            "position": self.position,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> Lifter:
        return cls(
            name=str(data.get("name") or ""),
            birth_year=int(data.get("birthYear") or 0),
            gender=str(data.get("gender") or "M"),
            age_class=data.get("ageClass") or None,
            equipment=str(data.get("equipment") or EQUIPMENT_RAW),
            weight_class=str(data.get("weightClass") or ""),
            body_weight=float(data.get("bodyWeight") or 0),
            club=str(data.get("club") or ""),
            squat=_attempts_from_list(data.get("squat")),
            bench=_attempts_from_list(data.get("bench")),
            deadlift=_attempts_from_list(data.get("deadlift")),
            total=float(data.get("total") or 0),
            points=float(data.get("points") or 0),
            position=int(data.get("position") or 0),
        )


@dataclass(frozen=True)
class Competition:
    id: str
    url: str
    name: str
    date: str
    category: str = CATEGORY_LOCAL  # "nationals" | "local"
    start_date: Optional[str] = None
    end_date: Optional[str] = None
    location: Optional[str] = None
    event_type: Optional[str] = None  # "sbd" | "b", set after parsing

    def to_dict(self) -> dict[str, Any]:
        out: dict[str, Any] = {
            "id": self.id,
            "url": self.url,
            "name": self.name,
            "date": self.date,
            "category": self.category,
        }
        if self.start_date:
            out["startDate"] = self.start_date
        if self.end_date:
            out["endDate"] = self.end_date
        if self.location:
            out["location"] = self.location
        if self.event_type:
            out["eventType"] = self.event_type
        return out

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> Competition:
        return cls(
            id=str(data["id"]),
            url=str(data.get("url") or ""),
            name=str(data.get("name") or ""),
            date=str(data.get("date") or ""),
            category=str(data.get("category") or CATEGORY_LOCAL),
            start_date=data.get("startDate") or None,
            end_date=data.get("endDate") or None,
            location=data.get("location") or None,
            event_type=data.get("eventType") or None,
        )


@dataclass(frozen=True)
class CacheDecision:
    should_scrape: bool
    reason: str  # "no cache" | "content changed" | "unchanged"


@dataclass(frozen=True)
class ValidationWarning:
    rule: str
    message: str
    lifter_name: Optional[str] = None
    competition_id: Optional[str] = None
    details: dict[str, Any] = field(default_factory=dict)
    severity: str = "warning"

    def with_competition(self, competition_id: str) -> ValidationWarning:
        return replace(self, competition_id=competition_id)

    def to_dict(self) -> dict[str, Any]:
        out: dict[str, Any] = {"severity": self.severity, "rule": self.rule, "message": self.message}
        if self.lifter_name is not None:
            out["lifterName"] = self.lifter_name
        if self.competition_id is not None:
            out["competitionId"] = self.competition_id
        if self.details:
            out["details"] = dict(self.details)
        return out


@dataclass(frozen=True)
class ValidationSummary:
    total_lifters: int
    lifters_with_warnings: int
    warnings_by_rule: dict[str, int]
    all_warnings: tuple[ValidationWarning, ...]

    def to_dict(self) -> dict[str, Any]:
        return {
            "totalLifters": self.total_lifters,
            "liftersWithWarnings": self.lifters_with_warnings,
            "warningsByRule": dict(self.warnings_by_rule),
            "allWarnings": [w.to_dict() for w in self.all_warnings],
        }


@dataclass(frozen=True)
class ScrapeMetadata:
    competition_id: str
    skipped: bool  # parsed from the cached fragment because the hash matched
    cached: bool
    hash_match: bool
    degraded: bool = False  # cache layer failed, full page was parsed
    validation: Optional[ValidationSummary] = None

    def to_dict(self) -> dict[str, Any]:
        out: dict[str, Any] = {
            "competitionId": self.competition_id,
            "skipped": self.skipped,
            "cached": self.cached,
            "hashMatch": self.hash_match,
            "degraded": self.degraded,
        }
        if self.validation is not None:
            out["validation"] = self.validation.to_dict()
        return out


@dataclass(frozen=True)
class CompetitionResult:
    competition: Competition
    lifters: tuple[Lifter, ...]
    metadata: Optional[ScrapeMetadata] = None

    def to_dict(self) -> dict[str, Any]:
        out: dict[str, Any] = {
            "competition": self.competition.to_dict(),
            "lifters": [lifter.to_dict() for lifter in self.lifters],
        }
        if self.metadata is not None:
            out["metadata"] = self.metadata.to_dict()
        return out

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> CompetitionResult:
        return cls(
            competition=Competition.from_dict(data["competition"]),
            lifters=tuple(Lifter.from_dict(row) for row in data.get("lifters") or []),
        )


def _attempts_from_list(values: Any) -> tuple[Attempt, Attempt, Attempt]:
    items = list(values or [])[:3]
    attempts = [
        Attempt(weight=float(v.get("weight") or 0), success=bool(v.get("success"))) for v in items if isinstance(v, dict)
    ]
    while len(attempts) < 3:
        attempts.append(NO_ATTEMPT)
    return (attempts[0], attempts[1], attempts[2])
