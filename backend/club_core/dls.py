"""Duckworth-Lewis-Stern calculator, standard edition resource table."""

from __future__ import annotations

import math
from dataclasses import dataclass
from typing import Any, Dict, Optional

G50 = 245
MAX_OVERS = 50

# Resources remaining (%) by wickets lost, then overs remaining.
RESOURCE_TABLE: Dict[int, Dict[int, float]] = {
    0: {50: 100.0, 45: 95.0, 40: 89.3, 35: 82.7, 30: 75.1, 25: 66.5, 20: 56.6, 18: 52.4, 16: 48.0,
        14: 43.4, 12: 38.6, 10: 33.6, 8: 28.3, 6: 22.8, 5: 19.9, 4: 16.9, 3: 13.8, 2: 10.5, 1: 6.5, 0: 0.0},
    1: {50: 93.4, 45: 89.5, 40: 84.8, 35: 79.0, 30: 72.2, 25: 64.3, 20: 55.2, 18: 51.2, 16: 47.0,
        14: 42.6, 12: 38.0, 10: 33.2, 8: 28.0, 6: 22.6, 5: 19.7, 4: 16.8, 3: 13.7, 2: 10.4, 1: 6.5, 0: 0.0},
    2: {50: 85.1, 45: 82.0, 40: 78.4, 35: 73.6, 30: 67.9, 25: 61.0, 20: 52.8, 18: 49.2, 16: 45.4,
        14: 41.3, 12: 36.9, 10: 32.4, 8: 27.5, 6: 22.3, 5: 19.5, 4: 16.6, 3: 13.5, 2: 10.3, 1: 6.4, 0: 0.0},
    3: {50: 74.9, 45: 72.8, 40: 70.3, 35: 66.8, 30: 62.2, 25: 56.4, 20: 49.3, 18: 46.2, 16: 42.8,
        14: 39.2, 12: 35.2, 10: 31.1, 8: 26.6, 6: 21.7, 5: 19.0, 4: 16.3, 3: 13.3, 2: 10.2, 1: 6.3, 0: 0.0},
    4: {50: 62.7, 45: 61.5, 40: 60.1, 35: 57.9, 30: 54.7, 25: 50.3, 20: 44.6, 18: 42.0, 16: 39.2,
        14: 36.1, 12: 32.7, 10: 29.1, 8: 25.1, 6: 20.7, 5: 18.2, 4: 15.7, 3: 12.9, 2: 9.9, 1: 6.2, 0: 0.0},
    5: {50: 49.0, 45: 48.4, 40: 47.6, 35: 46.4, 30: 44.6, 25: 41.8, 20: 37.8, 18: 35.9, 16: 33.7,
        14: 31.3, 12: 28.6, 10: 25.7, 8: 22.4, 6: 18.7, 5: 16.6, 4: 14.4, 3: 11.9, 2: 9.3, 1: 5.9, 0: 0.0},
    6: {50: 34.9, 45: 34.6, 40: 34.3, 35: 33.8, 30: 33.0, 25: 31.6, 20: 29.2, 18: 28.0, 16: 26.6,
        14: 25.0, 12: 23.2, 10: 21.1, 8: 18.7, 6: 15.9, 5: 14.2, 4: 12.5, 3: 10.5, 2: 8.3, 1: 5.4, 0: 0.0},
    7: {50: 22.0, 45: 21.9, 40: 21.8, 35: 21.6, 30: 21.3, 25: 20.8, 20: 19.7, 18: 19.1, 16: 18.4,
        14: 17.5, 12: 16.4, 10: 15.2, 8: 13.7, 6: 11.9, 5: 10.8, 4: 9.6, 3: 8.2, 2: 6.6, 1: 4.5, 0: 0.0},
    8: {50: 11.9, 45: 11.9, 40: 11.8, 35: 11.8, 30: 11.7, 25: 11.5, 20: 11.1, 18: 10.9, 16: 10.6,
        14: 10.2, 12: 9.7, 10: 9.1, 8: 8.4, 6: 7.4, 5: 6.8, 4: 6.1, 3: 5.4, 2: 4.5, 1: 3.2, 0: 0.0},
    9: {50: 4.7, 45: 4.7, 40: 4.7, 35: 4.7, 30: 4.7, 25: 4.6, 20: 4.5, 18: 4.5, 16: 4.4,
        14: 4.3, 12: 4.2, 10: 4.0, 8: 3.7, 6: 3.4, 5: 3.1, 4: 2.9, 3: 2.6, 2: 2.2, 1: 1.7, 0: 0.0},
}


@dataclass
class RevisedTarget:
    target: int
    par_score: int
    resource_ratio: float
    team1_resources: float
    team2_resources: float


@dataclass
class DLSSituation:
    par_score: int
    target: int
    runs_ahead: int
    team2_score: int
    team2_overs_used: float
    team2_wickets_lost: int

    @property
    def runs_behind(self) -> int:
        return -self.runs_ahead

    @property
    def is_above_par(self) -> bool:
        return self.runs_ahead > 0

    @property
    def is_below_par(self) -> bool:
        return self.runs_ahead < 0

    @property
    def is_on_par(self) -> bool:
        return self.runs_ahead == 0


def _round_half_up(value: float) -> int:
    return int(math.floor(value + 0.5))


def resources_remaining(overs_remaining: float, wickets_lost: int) -> float:
    """Percentage of batting resources left, interpolated between table rows."""

    wickets = min(9, max(0, int(wickets_lost or 0)))
    overs = min(float(MAX_OVERS), max(0.0, float(overs_remaining or 0)))
    row = RESOURCE_TABLE[wickets]

    marks = sorted(row)
    lower = max(mark for mark in marks if mark <= overs)
    upper = min((mark for mark in marks if mark >= overs), default=MAX_OVERS)
    if lower == upper:
        return row[lower]
    fraction = (overs - lower) / (upper - lower)
    return row[lower] + (row[upper] - row[lower]) * fraction


def resources_used(total_overs: float, overs_bowled: float, wickets_lost: int) -> float:
    return resources_remaining(total_overs, 0) - resources_remaining(total_overs - overs_bowled, wickets_lost)


def par_score(
    team1_score: int,
    team1_overs: float,
    team2_overs_remaining: float,
    team2_wickets_lost: int,
    team2_total_overs: float,
) -> int:
    team1_resources = resources_remaining(team1_overs, 0)
    if not team1_resources:
        raise ValueError("First innings must have overs available")
    used = resources_remaining(team2_total_overs, 0) - resources_remaining(team2_overs_remaining, team2_wickets_lost)
    return _round_half_up(team1_score * (used / team1_resources))


def revised_target(
    team1_score: int,
    team1_overs: float,
    team2_original_overs: float,
    team2_revised_overs: float,
    team2_wickets_at_interruption: int = 0,
    team2_score_at_interruption: int = 0,
) -> RevisedTarget:
    """Target for the side batting second once its overs have been cut.

    With fewer resources than the first innings the target scales down;
    with more, runs are added using G50 scaled to the match length.
    ``team2_original_overs`` and ``team2_score_at_interruption`` are
    accepted for call compatibility; the standard edition ignores them.
    """

    team1_resources = resources_remaining(team1_overs, 0)
    if not team1_resources:
        raise ValueError("First innings must have overs available")
    team2_resources = resources_remaining(team2_revised_overs, team2_wickets_at_interruption)
    ratio = team2_resources / team1_resources

    if team2_resources >= team1_resources:
        adjusted_g50 = G50 * (team1_overs / MAX_OVERS)
        extra = _round_half_up((team2_resources - team1_resources) / 100 * adjusted_g50)
        target = team1_score + 1 + extra
    else:
        target = _round_half_up(team1_score * ratio) + 1

    return RevisedTarget(
        target=target,
        par_score=target - 1,
        resource_ratio=ratio,
        team1_resources=team1_resources,
        team2_resources=team2_resources,
    )


def dls_situation(
    team1_score: int,
    team1_overs: float,
    team2_score: int,
    team2_overs_used: float,
    team2_wickets_lost: int,
    team2_total_overs: float,
    revised: Optional[int] = None,
) -> DLSSituation:
    par = par_score(
        team1_score,
        team1_overs,
        team2_total_overs - team2_overs_used,
        team2_wickets_lost,
        team2_total_overs,
    )
    return DLSSituation(
        par_score=par,
        target=revised or team1_score + 1,
        runs_ahead=team2_score - par,
        team2_score=team2_score,
        team2_overs_used=team2_overs_used,
        team2_wickets_lost=team2_wickets_lost,
    )


def explain(situation: DLSSituation) -> str:
    if situation.is_above_par:
        return f"{abs(situation.runs_ahead)} runs ahead of DLS par"
    if situation.is_below_par:
        return f"{abs(situation.runs_behind)} runs behind DLS par"
    return "On DLS par score"


def parse_overs(value: Any, balls_per_over: int = 6) -> float:
    """``"10.3"`` (ten overs, three balls) to 10.5; numbers pass through."""

    if isinstance(value, (int, float)) and not isinstance(value, bool):
        return float(value)
    whole, _, balls = str(value or "").strip().partition(".")
    try:
        overs = int(whole or 0)
        extra = int(balls or 0)
    except ValueError as exc:
        raise ValueError(f"Invalid overs value '{value}'") from exc
    return overs + extra / balls_per_over
