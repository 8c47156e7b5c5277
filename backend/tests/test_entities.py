import pytest

from club_core.entities import (
    DEFAULT_LIMIT,
    MAX_LIMIT,
    clamp_limit,
    clamp_offset,
    filter_criteria,
    normalize_entity_key,
    pascal_to_snake,
    require_table,
    resolve_order_by,
    resolve_table,
    writable_fields,
)


def test_entity_names_resolve_to_tables() -> None:
    assert resolve_table("TeamPlayer") == "team_players"
    assert resolve_table("team-player") == "team_players"
    assert resolve_table("team_players") == "team_players"
    assert resolve_table("BallByBall") == "ball_by_ball"
    assert resolve_table("EventRSVP") == "event_rsvp"
    assert resolve_table("MatchProfile") == "match_profiles"


def test_unknown_entities_are_rejected() -> None:
    assert resolve_table("User") is None
    assert resolve_table("pg_user") is None
    assert resolve_table("") is None
    with pytest.raises(LookupError, match="Unknown entity: Secrets"):
        require_table("Secrets")


def test_name_helpers() -> None:
    assert pascal_to_snake("TournamentMatch") == "tournament_match"
    assert normalize_entity_key("Team_Player") == "teamplayer"


def test_resolve_order_by() -> None:
    assert resolve_order_by("tournament_matches", "-match_date") == ("match_date", True)
    assert resolve_order_by("tournament_matches", "match_number") == ("match_number", False)
    assert resolve_order_by("tournament_matches", "-password") is None
    assert resolve_order_by("tournament_matches", None) is None


def test_writable_fields_drop_audit_and_unknown_columns() -> None:
    payload = {
        "id": "abc",
        "created_date": "2024-01-01",
        "updated_date": "2024-01-01",
        "name": "Summer 2025",
        "status": "active",
        "drop table": "seasons",
    }
    assert writable_fields("seasons", payload) == {"name": "Summer 2025", "status": "active"}


def test_filter_criteria_ignores_unknown_keys() -> None:
    criteria = {"status": "completed", "nonsense": 1}
    assert filter_criteria("tournament_matches", criteria) == {"status": "completed"}
    assert filter_criteria("tournament_matches", None) == {}


@pytest.mark.parametrize(
    "raw, expected",
    [(None, DEFAULT_LIMIT), ("abc", DEFAULT_LIMIT), (0, DEFAULT_LIMIT), ("25", 25), (5000, MAX_LIMIT)],
)
def test_clamp_limit(raw, expected) -> None:
    assert clamp_limit(raw) == expected


def test_clamp_offset() -> None:
    assert clamp_offset(None) == 0
    assert clamp_offset(-5) == 0
    assert clamp_offset("40") == 40
