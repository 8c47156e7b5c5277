"""Fixture generation for tournament formats."""

from __future__ import annotations

import datetime as dt
import math
import random
import string
from dataclasses import dataclass, field
from typing import Any, Dict, List, Mapping, Optional, Sequence

KNOCKOUT = "knockout"
LEAGUE = "league"
SUPER_LEAGUE = "super_league"
GROUP_KNOCKOUT = "group_knockout"
FORMATS = (KNOCKOUT, LEAGUE, SUPER_LEAGUE, GROUP_KNOCKOUT)

BYE = "BYE"


@dataclass
class FixturePlan:
    fixtures: List[Dict[str, Any]] = field(default_factory=list)
    groups: Dict[str, List[str]] = field(default_factory=dict)


def _team_id(team: Mapping[str, Any]) -> Optional[str]:
    value = team.get("id")
    return str(value) if value is not None else None


def _team_name(team: Mapping[str, Any]) -> str:
    return team.get("team_name") or team.get("name") or ""


def _fixture(home: Mapping[str, Any], away: Mapping[str, Any] | None, stage: str, **extra: Any) -> Dict[str, Any]:
    fixture = {
        "team1_id": _team_id(home),
        "team1_name": _team_name(home),
        "team2_id": _team_id(away) if away else None,
        "team2_name": _team_name(away) if away else BYE,
        "stage": stage,
        "status": "scheduled",
    }
    fixture.update(extra)
    return fixture


def _placeholder(team1: str, team2: str, stage: str, bracket_position: int) -> Dict[str, Any]:
    return {
        "team1_id": None,
        "team1_name": team1,
        "team2_id": None,
        "team2_name": team2,
        "stage": stage,
        "bracket_position": bracket_position,
        "status": "scheduled",
    }


def expected_match_count(
    format: str,
    team_count: int,
    home_and_away: bool = False,
    num_groups: int = 2,
    teams_qualify_per_group: int = 2,
) -> int:
    """Number of fixture rows the generator produces, byes and placeholders included."""

    n = team_count
    if n < 2:
        return 0
    if format == KNOCKOUT:
        count = math.ceil(n / 2)
        if n > 4:
            count += 2
        if n >= 4:
            count += 2
        elif n == 3:
            count += 1
        return count
    if format in (LEAGUE, SUPER_LEAGUE):
        single = n * (n - 1) // 2
        return single * 2 if home_and_away else single
    if format == GROUP_KNOCKOUT:
        groups = max(int(num_groups or 2), 1)
        sizes = [len(range(index, n, groups)) for index in range(groups)]
        count = sum(size * (size - 1) // 2 for size in sizes)
        if groups * int(teams_qualify_per_group or 2) >= 4:
            count += 4
        return count
    return 0


def round_robin(teams: Sequence[Mapping[str, Any]], home_and_away: bool = False) -> List[Dict[str, Any]]:
    """Circle-method schedule: the first team stays put while the rest rotate.

    Odd team counts get a phantom bye slot whose pairings are dropped.
    """

    slots: List[Optional[Mapping[str, Any]]] = list(teams)
    if len(slots) % 2:
        slots.append(None)
    size = len(slots)
    rounds = size - 1

    fixtures: List[Dict[str, Any]] = []
    rotating = slots[1:]
    for round_index in range(rounds):
        lineup = [slots[0]] + rotating
        for match in range(size // 2):
            home, away = lineup[match], lineup[size - 1 - match]
            if home is None or away is None:
                continue
            # Alternate the fixed team's home fixtures across rounds.
            if match == 0 and round_index % 2:
                home, away = away, home
            fixtures.append(_fixture(home, away, LEAGUE, round=round_index + 1))
        rotating = rotating[-1:] + rotating[:-1]

    if home_and_away:
        fixtures.extend(
            {
                **fixture,
                "team1_id": fixture["team2_id"],
                "team1_name": fixture["team2_name"],
                "team2_id": fixture["team1_id"],
                "team2_name": fixture["team1_name"],
                "round": fixture["round"] + rounds,
            }
            for fixture in list(fixtures)
        )
    return fixtures


def knockout(teams: Sequence[Mapping[str, Any]]) -> List[Dict[str, Any]]:
    n = len(teams)
    if n <= 2:
        stage = "final"
    elif n <= 4:
        stage = "semifinal"
    else:
        stage = "quarterfinal"

    fixtures: List[Dict[str, Any]] = []
    for index in range(n // 2):
        fixtures.append(_fixture(teams[index * 2], teams[index * 2 + 1], stage, bracket_position=index + 1))
    if n % 2:
        fixtures.append(_fixture(teams[-1], None, stage, bracket_position=n // 2 + 1, status="bye"))

    if stage == "quarterfinal":
        fixtures.append(_placeholder("Winner QF1", "Winner QF2", "semifinal", 1))
        fixtures.append(_placeholder("Winner QF3", "Winner QF4", "semifinal", 2))
    if n >= 4:
        fixtures.append(_placeholder("Winner SF1", "Winner SF2", "final", 1))
        fixtures.append(_placeholder("Loser SF1", "Loser SF2", "third_place", 1))
    elif n == 3:
        fixtures.append(_placeholder("Winner SF1", "Winner SF2", "final", 1))
    return fixtures


def group_letter(index: int) -> str:
    letters = string.ascii_uppercase
    if index < len(letters):
        return letters[index]
    return letters[index // len(letters) - 1] + letters[index % len(letters)]


def group_knockout(
    teams: Sequence[Mapping[str, Any]],
    num_groups: int = 2,
    teams_qualify_per_group: int = 2,
) -> FixturePlan:
    num_groups = max(int(num_groups or 2), 1)
    grouped: Dict[str, List[Mapping[str, Any]]] = {}
    for index, team in enumerate(teams):
        grouped.setdefault(group_letter(index % num_groups), []).append(team)

    plan = FixturePlan()
    for letter, members in grouped.items():
        plan.groups[letter] = [team_id for team_id in (_team_id(team) for team in members) if team_id]
        for i in range(len(members)):
            for j in range(i + 1, len(members)):
                plan.fixtures.append(_fixture(members[i], members[j], "group", group_letter=letter))

    qualifiers = num_groups * int(teams_qualify_per_group or 2)
    if qualifiers >= 4:
        plan.fixtures.extend(
            [
                _placeholder("A1", "B2", "semifinal", 1),
                _placeholder("B1", "A2", "semifinal", 2),
                _placeholder("Winner SF1", "Winner SF2", "final", 1),
                _placeholder("Loser SF1", "Loser SF2", "third_place", 1),
            ]
        )
    return plan


def _parse_date(value: Any) -> Optional[dt.date]:
    if value in (None, ""):
        return None
    if isinstance(value, dt.datetime):
        return value.date()
    if isinstance(value, dt.date):
        return value
    try:
        return dt.date.fromisoformat(str(value)[:10])
    except ValueError as exc:
        raise ValueError(f"Invalid start date '{value}'") from exc


def schedule(
    fixtures: List[Dict[str, Any]],
    start_date: Any = None,
    matches_per_day: int = 1,
    venue: Optional[str] = None,
) -> List[Dict[str, Any]]:
    """Number fixtures from 1 and spread them over consecutive days."""

    if matches_per_day < 1:
        raise ValueError("matches_per_day must be at least 1")

    current = _parse_date(start_date)
    played_today = 0
    for number, fixture in enumerate(fixtures, start=1):
        fixture["match_number"] = number
        fixture["match_date"] = current.isoformat() if current else None
        fixture["venue"] = venue or None
        played_today += 1
        if played_today >= matches_per_day:
            played_today = 0
            if current:
                current += dt.timedelta(days=1)
    return fixtures


def generate_fixtures(
    tournament: Mapping[str, Any],
    teams: Sequence[Mapping[str, Any]],
    start_date: Any = None,
    matches_per_day: int = 1,
    venue: Optional[str] = None,
    shuffle: bool = False,
    home_and_away: bool = False,
    seed: Optional[int] = None,
) -> FixturePlan:
    if len(teams) < 2:
        raise ValueError("At least 2 teams are required to generate fixtures")

    tournament_format = tournament.get("format") or ""
    if tournament_format not in FORMATS:
        raise ValueError(f"Unsupported tournament format '{tournament_format}'")

    team_list = list(teams)
    if shuffle:
        random.Random(seed).shuffle(team_list)

    if tournament_format == KNOCKOUT:
        plan = FixturePlan(fixtures=knockout(team_list))
    elif tournament_format == GROUP_KNOCKOUT:
        plan = group_knockout(
            team_list,
            num_groups=tournament.get("num_groups") or 2,
            teams_qualify_per_group=tournament.get("teams_qualify_per_group") or 2,
        )
    else:
        plan = FixturePlan(fixtures=round_robin(team_list, home_and_away=home_and_away))

    schedule(
        plan.fixtures,
        start_date=start_date or tournament.get("start_date"),
        matches_per_day=matches_per_day,
        venue=venue or tournament.get("venue"),
    )
    tournament_id = tournament.get("id")
    if tournament_id is not None:
        for fixture in plan.fixtures:
            fixture["tournament_id"] = tournament_id
    return plan
