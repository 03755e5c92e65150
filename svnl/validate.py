"""Plausibility checks over parsed lifters.

Every rule is a plain function `rule(lifter, event_type) -> list[ValidationWarning]`.
Rules never mutate their input and never raise; a finding is a warning attached to the
result, not an error, so export always goes ahead.
"""

from __future__ import annotations

from collections import Counter
from typing import Callable, Sequence

from .models import EVENT_TYPE_BENCH, EVENT_TYPE_FULL, Attempt, CompetitionResult, Lifter, ValidationSummary, ValidationWarning
from .util import format_number


RULE_TOTAL = "total_calculation"
RULE_COMPLETENESS = "data_completeness"
RULE_RANGES = "reasonable_ranges"
RULE_PROGRESSION = "attempt_progression"

MIN_LIFT_KG = 20
MAX_LIFT_KG = 500
MIN_BODY_WEIGHT_KG = 30
MAX_BODY_WEIGHT_KG = 200

Rule = Callable[[Lifter, str], list[ValidationWarning]]


def best_lift(attempts: Sequence[Attempt]) -> float:
    return max([a.weight for a in attempts if a.success] + [0.0])


def check_total(lifter: Lifter, event_type: str) -> list[ValidationWarning]:
    if lifter.total == 0:
        # No total recorded: the lifter did not finish.
        return []

    full = event_type != EVENT_TYPE_BENCH
    best_squat = best_lift(lifter.squat) if full else 0.0
    best_bench = best_lift(lifter.bench)
    best_deadlift = best_lift(lifter.deadlift) if full else 0.0
    calculated = best_squat + best_bench + best_deadlift

    if round(calculated, 2) == round(lifter.total, 2):
        return []

    details: dict[str, object] = {"calculated": calculated, "recorded": lifter.total, "eventType": event_type}
    if full:
        message = (
            f"Total mismatch: calculated {format_number(round(calculated, 2))}kg "
            f"(S:{format_number(best_squat)} + B:{format_number(best_bench)} + D:{format_number(best_deadlift)}), "
            f"recorded {format_number(lifter.total)}kg"
        )
        details.update({"bestSquat": best_squat, "bestBench": best_bench, "bestDeadlift": best_deadlift})
    else:
        message = f"Total mismatch: calculated {format_number(round(calculated, 2))}kg (bench only), recorded {format_number(lifter.total)}kg"

    return [ValidationWarning(rule=RULE_TOTAL, message=message, lifter_name=lifter.name, details=details)]


def check_completeness(lifter: Lifter, event_type: str) -> list[ValidationWarning]:
    out: list[ValidationWarning] = []
    if not (lifter.name or "").strip():
        out.append(
            ValidationWarning(rule=RULE_COMPLETENESS, message="Missing name", lifter_name=lifter.name or "(empty)", details={"field": "name"})
        )
    if not (lifter.club or "").strip():
        out.append(ValidationWarning(rule=RULE_COMPLETENESS, message="Missing club", lifter_name=lifter.name, details={"field": "club"}))
    return out


def check_ranges(lifter: Lifter, event_type: str) -> list[ValidationWarning]:
    out: list[ValidationWarning] = []

    seen: set[float] = set()
    for attempt in (*lifter.squat, *lifter.bench, *lifter.deadlift):
        if attempt.weight <= 0 or attempt.weight in seen:
            continue
        seen.add(attempt.weight)
        if attempt.weight < MIN_LIFT_KG or attempt.weight > MAX_LIFT_KG:
            out.append(
                ValidationWarning(
                    rule=RULE_RANGES,
                    message=f"Unusual lift weight: {format_number(attempt.weight)}kg (expected {MIN_LIFT_KG}-{MAX_LIFT_KG}kg)",
                    lifter_name=lifter.name,
                    details={"weight": attempt.weight, "min": MIN_LIFT_KG, "max": MAX_LIFT_KG},
                )
            )

    # 0 means the body weight was not recorded.
    if lifter.body_weight > 0 and not (MIN_BODY_WEIGHT_KG <= lifter.body_weight <= MAX_BODY_WEIGHT_KG):
        out.append(
            ValidationWarning(
                rule=RULE_RANGES,
                message=f"Unusual body weight: {format_number(lifter.body_weight)}kg (expected {MIN_BODY_WEIGHT_KG}-{MAX_BODY_WEIGHT_KG}kg)",
                lifter_name=lifter.name,
                details={"bodyWeight": lifter.body_weight, "min": MIN_BODY_WEIGHT_KG, "max": MAX_BODY_WEIGHT_KG},
            )
        )
    return out


def check_progression(lifter: Lifter, event_type: str) -> list[ValidationWarning]:
    out: list[ValidationWarning] = []
    for lift_name, attempts in (("Squat", lifter.squat), ("Bench", lifter.bench), ("Deadlift", lifter.deadlift)):
        # Failed attempts are not part of the declared progression.
        made = [(i + 1, a.weight) for i, a in enumerate(attempts) if a.success and a.weight > 0]
        for (prev_no, prev_weight), (curr_no, curr_weight) in zip(made, made[1:]):
            if curr_weight < prev_weight:
                out.append(
                    ValidationWarning(
                        rule=RULE_PROGRESSION,
                        message=(
                            f"{lift_name} attempt {curr_no} ({format_number(curr_weight)}kg) "
                            f"is less than attempt {prev_no} ({format_number(prev_weight)}kg)"
                        ),
                        lifter_name=lifter.name,
                        details={
                            "lift": lift_name,
                            "attempt1": prev_no,
                            "weight1": prev_weight,
                            "attempt2": curr_no,
                            "weight2": curr_weight,
                        },
                    )
                )
    return out


DEFAULT_RULES: tuple[Rule, ...] = (check_total, check_completeness, check_ranges, check_progression)


def validate_lifter(lifter: Lifter, competition_id: str, event_type: str, *, rules: Sequence[Rule] = DEFAULT_RULES) -> list[ValidationWarning]:
    out: list[ValidationWarning] = []
    for rule in rules:
        out.extend(w.with_competition(competition_id) for w in rule(lifter, event_type))
    return out


def validate_competition_result(result: CompetitionResult, *, rules: Sequence[Rule] = DEFAULT_RULES) -> ValidationSummary:
    event_type = result.competition.event_type or EVENT_TYPE_FULL
    warnings: list[ValidationWarning] = []
    lifters_with_warnings = 0

    for lifter in result.lifters:
        lifter_warnings = validate_lifter(lifter, result.competition.id, event_type, rules=rules)
        if lifter_warnings:
            lifters_with_warnings += 1
            warnings.extend(lifter_warnings)

    return ValidationSummary(
        total_lifters=len(result.lifters),
        lifters_with_warnings=lifters_with_warnings,
        warnings_by_rule=dict(Counter(w.rule for w in warnings)),
        all_warnings=tuple(warnings),
    )
