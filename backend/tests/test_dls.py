import pytest

from club_core.dls import (
    dls_situation,
    explain,
    par_score,
    parse_overs,
    resources_remaining,
    revised_target,
)


def test_resources_remaining_table_lookup() -> None:
    assert resources_remaining(50, 0) == 100.0
    assert resources_remaining(20, 0) == 56.6
    assert resources_remaining(0, 3) == 0.0


def test_resources_remaining_interpolates_between_rows() -> None:
    assert resources_remaining(19, 0) == pytest.approx(54.5)


def test_resources_remaining_clamps_inputs() -> None:
    assert resources_remaining(60, 0) == 100.0
    assert resources_remaining(-3, 0) == 0.0
    assert resources_remaining(50, 12) == 4.7


def test_revised_target_when_overs_are_lost() -> None:
    result = revised_target(250, 50, 50, 30)

    assert result.target == 189
    assert result.par_score == 188
    assert result.resource_ratio == pytest.approx(0.751)


def test_revised_target_when_second_side_has_more_resources() -> None:
    result = revised_target(200, 40, 40, 50)
    assert result.target == 222


def test_revised_target_requires_first_innings_overs() -> None:
    with pytest.raises(ValueError):
        revised_target(100, 0, 50, 20)


def test_par_score() -> None:
    assert par_score(250, 50, 30, 2, 50) == 80


def test_situation_and_explanation() -> None:
    situation = dls_situation(250, 50, 120, 20, 2, 50)

    assert situation.par_score == 80
    assert situation.target == 251
    assert situation.runs_ahead == 40
    assert situation.is_above_par
    assert explain(situation) == "40 runs ahead of DLS par"

    behind = dls_situation(250, 50, 70, 20, 2, 50, revised=200)
    assert behind.target == 200
    assert behind.runs_behind == 10
    assert explain(behind) == "10 runs behind DLS par"

    level = dls_situation(250, 50, 80, 20, 2, 50)
    assert level.is_on_par
    assert explain(level) == "On DLS par score"


def test_parse_overs() -> None:
    assert parse_overs("10.3") == 10.5
    assert parse_overs(12) == 12.0
    assert parse_overs("") == 0.0
    with pytest.raises(ValueError):
        parse_overs("ten")
