from collections import Counter
from typing import Any, Dict, List

import pytest

from club_core.fixtures import (
    BYE,
    expected_match_count,
    generate_fixtures,
    group_knockout,
    group_letter,
    knockout,
    round_robin,
    schedule,
)


def _teams(count: int) -> List[Dict[str, Any]]:
    return [{"id": f"t{index}", "team_name": f"Team {index}"} for index in range(count)]


def _pairs(fixtures):
    return {frozenset((f["team1_id"], f["team2_id"])) for f in fixtures}


def test_round_robin_even_field_plays_everyone_once() -> None:
    fixtures = round_robin(_teams(4))

    assert len(fixtures) == 6
    assert len(_pairs(fixtures)) == 6
    for round_number in (1, 2, 3):
        playing = [
            team
            for f in fixtures
            if f["round"] == round_number
            for team in (f["team1_id"], f["team2_id"])
        ]
        assert sorted(playing) == ["t0", "t1", "t2", "t3"]


def test_round_robin_odd_field_skips_bye_slot() -> None:
    fixtures = round_robin(_teams(5))

    assert len(fixtures) == 10
    assert all(f["team2_id"] is not None for f in fixtures)
    appearances = Counter(team for f in fixtures for team in (f["team1_id"], f["team2_id"]))
    assert set(appearances.values()) == {4}


def test_round_robin_home_and_away_reverses_fixtures() -> None:
    fixtures = round_robin(_teams(4), home_and_away=True)

    assert len(fixtures) == 12
    ordered = {(f["team1_id"], f["team2_id"]) for f in fixtures}
    assert len(ordered) == 12
    assert max(f["round"] for f in fixtures) == 6


@pytest.mark.parametrize(
    "count, stages",
    [
        (2, ["final"]),
        (3, ["semifinal", "semifinal", "final"]),
        (4, ["semifinal", "semifinal", "final", "third_place"]),
        (8, ["quarterfinal"] * 4 + ["semifinal", "semifinal", "final", "third_place"]),
    ],
)
def test_knockout_bracket_shape(count, stages) -> None:
    assert [f["stage"] for f in knockout(_teams(count))] == stages


def test_knockout_odd_team_gets_bye() -> None:
    fixtures = knockout(_teams(3))
    bye = fixtures[1]
    assert bye["team1_id"] == "t2"
    assert bye["team2_name"] == BYE
    assert bye["status"] == "bye"


def test_group_knockout_assigns_groups_round_robin() -> None:
    plan = group_knockout(_teams(6), num_groups=2)

    assert plan.groups == {"A": ["t0", "t2", "t4"], "B": ["t1", "t3", "t5"]}
    group_fixtures = [f for f in plan.fixtures if f["stage"] == "group"]
    assert len(group_fixtures) == 6
    assert {f["group_letter"] for f in group_fixtures} == {"A", "B"}
    semis = [f for f in plan.fixtures if f["stage"] == "semifinal"]
    assert [(f["team1_name"], f["team2_name"]) for f in semis] == [("A1", "B2"), ("B1", "A2")]


def test_group_knockout_small_field_has_no_bracket() -> None:
    plan = group_knockout(_teams(4), num_groups=1, teams_qualify_per_group=2)
    assert all(f["stage"] == "group" for f in plan.fixtures)


def test_group_letter() -> None:
    assert group_letter(0) == "A"
    assert group_letter(25) == "Z"
    assert group_letter(26) == "AA"
    assert group_letter(27) == "AB"


def test_expected_match_count() -> None:
    assert expected_match_count("knockout", 8) == 8
    assert expected_match_count("knockout", 3) == 3
    assert expected_match_count("league", 6) == 15
    assert expected_match_count("super_league", 6, home_and_away=True) == 30
    assert expected_match_count("group_knockout", 8, num_groups=2, teams_qualify_per_group=2) == 16
    assert expected_match_count("league", 1) == 0


@pytest.mark.parametrize(
    "tournament",
    [
        {"format": "knockout"},
        {"format": "league"},
        {"format": "group_knockout", "num_groups": 2, "teams_qualify_per_group": 2},
        {"format": "group_knockout", "num_groups": 3, "teams_qualify_per_group": 1},
    ],
)
def test_expected_match_count_matches_generated_rows(tournament) -> None:
    for count in range(2, 11):
        plan = generate_fixtures(tournament, _teams(count))
        expected = expected_match_count(
            tournament["format"],
            count,
            num_groups=tournament.get("num_groups", 2),
            teams_qualify_per_group=tournament.get("teams_qualify_per_group", 2),
        )
        assert len(plan.fixtures) == expected, count


def test_schedule_spreads_matches_over_days() -> None:
    fixtures = schedule(round_robin(_teams(3)), start_date="2025-06-01", matches_per_day=2, venue="Home Ground")

    assert [f["match_number"] for f in fixtures] == [1, 2, 3]
    assert [f["match_date"] for f in fixtures] == ["2025-06-01", "2025-06-01", "2025-06-02"]
    assert all(f["venue"] == "Home Ground" for f in fixtures)


def test_schedule_without_start_date_leaves_dates_empty() -> None:
    fixtures = schedule(round_robin(_teams(2)))
    assert fixtures[0]["match_date"] is None


def test_schedule_rejects_zero_matches_per_day() -> None:
    with pytest.raises(ValueError):
        schedule([], matches_per_day=0)


def test_generate_fixtures_uses_tournament_defaults() -> None:
    tournament = {"id": "cup", "format": "league", "start_date": "2025-07-05", "venue": "Oval"}

    plan = generate_fixtures(tournament, _teams(4))

    assert len(plan.fixtures) == 6
    assert plan.fixtures[0]["match_date"] == "2025-07-05"
    assert all(f["tournament_id"] == "cup" and f["venue"] == "Oval" for f in plan.fixtures)


def test_generate_fixtures_seeded_shuffle_is_repeatable() -> None:
    tournament = {"format": "knockout"}
    first = generate_fixtures(tournament, _teams(8), shuffle=True, seed=7)
    second = generate_fixtures(tournament, _teams(8), shuffle=True, seed=7)
    assert first.fixtures == second.fixtures


def test_generate_fixtures_validation() -> None:
    with pytest.raises(ValueError, match="At least 2 teams"):
        generate_fixtures({"format": "league"}, _teams(1))
    with pytest.raises(ValueError, match="Unsupported tournament format"):
        generate_fixtures({"format": "swiss"}, _teams(4))
