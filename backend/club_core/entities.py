"""Allowlisted entity names, their tables and columns."""

from __future__ import annotations

import re
from typing import Any, Dict, FrozenSet, Mapping, Optional, Tuple

AUDIT_FIELDS = frozenset({"created_date", "updated_date"})
DEFAULT_LIMIT = 100
MAX_LIMIT = 1000

ENTITY_TABLE_MAP: Dict[str, str] = {
    "Season": "seasons",
    "Team": "teams",
    "TeamPlayer": "team_players",
    "Competition": "competitions",
    "Tournament": "tournaments",
    "TournamentTeam": "tournament_teams",
    "TournamentMatch": "tournament_matches",
    "TournamentPlayer": "tournament_players",
    "BallByBall": "ball_by_ball",
    "InningsScore": "innings_scores",
    "MatchAvailability": "match_availability",
    "FinanceCategory": "finance_categories",
    "Transaction": "transactions",
    "PlayerCharge": "player_charges",
    "PlayerPayment": "player_payments",
    "PaymentAllocation": "payment_allocations",
    "Membership": "memberships",
    "Event": "events",
    "EventRSVP": "event_rsvp",
    "News": "news",
    "GalleryImage": "gallery_images",
    "ContactMessage": "contact_messages",
    "Notification": "notifications",
    "UserNotification": "user_notifications",
    "ClubStat": "club_stats",
    "Sponsor": "sponsors",
    "SponsorPayment": "sponsor_payments",
    "MatchState": "match_state",
    "MatchProfile": "match_profiles",
    "Invoice": "invoices",
    "PaymentSettings": "payment_settings",
    "SystemLog": "system_logs",
}

_AUDITED = ("id", "created_date", "updated_date", "created_by")

TABLE_COLUMNS: Dict[str, FrozenSet[str]] = {
    "seasons": frozenset(_AUDITED + ("name", "start_date", "end_date", "status", "is_current")),
    "teams": frozenset(
        _AUDITED
        + (
            "name", "short_name", "is_home_team", "logo_url", "home_ground", "captain_id",
            "captain_name", "primary_color", "secondary_color", "contact_email",
            "contact_phone", "notes", "status",
        )
    ),
    "team_players": frozenset(
        _AUDITED
        + (
            "team_id", "team_name", "player_name", "email", "phone", "photo_url",
            "date_of_birth", "date_joined", "status", "jersey_number", "is_captain",
            "is_vice_captain", "is_wicket_keeper", "role", "batting_style", "bowling_style",
            "bio", "emergency_contact_name", "emergency_contact_phone", "medical_notes",
            "matches_played", "runs_scored", "balls_faced", "highest_score", "not_outs",
            "fours", "sixes", "fifties", "hundreds", "ducks", "wickets_taken", "overs_bowled",
            "runs_conceded", "maidens", "best_bowling", "dot_balls", "four_wickets",
            "five_wickets", "catches", "stumpings", "run_outs",
        )
    ),
    "competitions": frozenset(
        _AUDITED
        + (
            "name", "short_name", "parent_id", "parent_name", "description", "format",
            "status", "logo_url", "website_url", "organizer", "notes",
        )
    ),
    "tournaments": frozenset(
        _AUDITED
        + (
            "name", "short_name", "season_id", "season_name", "competition_id",
            "competition_name", "sub_competition_id", "sub_competition_name", "format",
            "status", "start_date", "end_date", "overs_per_match", "balls_per_over",
            "max_teams", "num_groups", "teams_qualify_per_group", "banner_url", "logo_url",
            "description", "rules", "prize_money", "entry_fee", "organizer_name",
            "organizer_contact", "match_profile_id", "match_profile_name", "current_stage",
            "is_public", "venue",
        )
    ),
    "tournament_teams": frozenset(
        _AUDITED
        + (
            "tournament_id", "team_id", "team_name", "short_name", "group_letter", "seed",
            "registration_status", "matches_played", "matches_won", "matches_lost",
            "matches_tied", "matches_nr", "points", "runs_scored", "runs_conceded",
            "overs_faced", "overs_bowled", "nrr", "is_eliminated", "final_position",
        )
    ),
    "tournament_matches": frozenset(
        _AUDITED
        + (
            "tournament_id", "match_id", "match_number", "stage", "group_letter", "round",
            "team1_id", "team1_name", "team2_id", "team2_name", "match_date", "venue",
            "status", "toss_winner", "toss_decision", "team1_score", "team1_overs",
            "team2_score", "team2_overs", "winner_id", "winner_name", "result_summary",
            "man_of_match", "mom_performance", "is_super_over", "bracket_position",
            "next_match_id",
        )
    ),
    "tournament_players": frozenset(
        _AUDITED
        + (
            "tournament_id", "tournament_team_id", "player_id", "player_name", "team_name",
            "matches_played", "runs_scored", "balls_faced", "highest_score", "fifties",
            "hundreds", "fours", "sixes", "not_outs", "batting_avg", "strike_rate",
            "wickets_taken", "overs_bowled", "runs_conceded", "best_bowling", "economy",
            "bowling_avg", "catches", "stumpings", "run_outs", "mom_awards",
        )
    ),
    "ball_by_ball": frozenset(
        ("id", "created_date", "created_by")
        + (
            "match_id", "innings", "over_number", "ball_number", "batsman_id",
            "batsman_name", "non_striker_id", "non_striker_name", "bowler_id",
            "bowler_name", "runs", "extras", "extra_type", "is_wicket", "wicket_type",
            "dismissed_batsman_id", "dismissed_batsman_name", "fielder_id", "fielder_name",
            "is_four", "is_six", "is_dot", "is_free_hit", "is_powerplay",
            "wagon_wheel_zone", "shot_type", "commentary", "is_legal_delivery",
        )
    ),
    "innings_scores": frozenset(
        _AUDITED
        + (
            "match_id", "innings", "batting_team_id", "batting_team_name",
            "bowling_team_id", "bowling_team_name", "total_runs", "total_wickets",
            "total_overs", "extras_wide", "extras_no_ball", "extras_bye", "extras_leg_bye",
            "extras_penalty", "run_rate", "required_run_rate", "target", "powerplay_runs",
            "powerplay_wickets", "is_completed", "fall_of_wickets",
        )
    ),
    "match_availability": frozenset(
        ("id", "created_date", "updated_date")
        + ("match_id", "match_info", "player_id", "player_email", "player_name", "status", "notes")
    ),
    "finance_categories": frozenset(
        _AUDITED + ("name", "type", "description", "is_active", "display_order")
    ),
    "transactions": frozenset(
        _AUDITED
        + (
            "category_id", "category_name", "type", "amount", "description", "date",
            "reference", "paid_to", "received_from", "payment_method", "status",
            "receipt_url", "notes",
        )
    ),
    "player_charges": frozenset(
        _AUDITED
        + (
            "player_id", "charge_type", "amount", "description", "charge_date", "due_date",
            "reference_type", "reference_id", "notes", "voided", "voided_reason",
        )
    ),
    "player_payments": frozenset(
        _AUDITED
        + (
            "player_id", "amount", "payment_date", "payment_method", "reference",
            "recorded_by", "verified", "verified_by", "verified_date", "notes",
        )
    ),
    "payment_allocations": frozenset(
        ("id", "created_date", "created_by")
        + ("payment_id", "charge_id", "amount", "allocation_date", "allocated_by", "notes")
    ),
    "memberships": frozenset(
        _AUDITED
        + (
            "player_id", "member_name", "email", "phone", "membership_type", "status",
            "season", "start_date", "expiry_date", "fee_amount", "notes",
        )
    ),
    "events": frozenset(
        _AUDITED
        + (
            "title", "description", "event_type", "date", "end_date", "location", "venue",
            "max_attendees", "rsvp_enabled", "rsvp_deadline", "status", "image_url",
            "organizer", "cost", "notes",
        )
    ),
    "event_rsvp": frozenset(
        ("id", "created_date", "updated_date")
        + ("event_id", "user_email", "user_name", "status", "guests", "notes")
    ),
    "news": frozenset(
        _AUDITED + ("title", "content", "excerpt", "image_url", "category", "is_featured")
    ),
    "gallery_images": frozenset(
        ("id", "created_date", "created_by") + ("title", "image_url", "category", "description")
    ),
    "contact_messages": frozenset(
        ("id", "created_date") + ("name", "email", "phone", "subject", "message")
    ),
    "notifications": frozenset(
        ("id", "created_date", "created_by")
        + (
            "title", "message", "type", "priority", "target_role", "target_users",
            "link_url", "is_active",
        )
    ),
    "user_notifications": frozenset(
        ("id", "created_date") + ("notification_id", "user_email", "is_read", "read_date")
    ),
    "club_stats": frozenset(
        _AUDITED
        + (
            "season", "matches_played", "matches_won", "matches_lost", "matches_drawn",
            "total_runs", "total_wickets", "league_position", "trophies_won",
        )
    ),
    "sponsors": frozenset(
        _AUDITED
        + (
            "name", "contact_name", "email", "phone", "logo_url", "website", "sponsor_type",
            "status", "notes",
        )
    ),
    "sponsor_payments": frozenset(
        _AUDITED
        + (
            "sponsor_id", "amount", "payment_date", "season", "description",
            "payment_method", "reference", "status", "notes",
        )
    ),
    "match_state": frozenset(
        _AUDITED
        + (
            "match_id", "innings", "striker", "non_striker", "bowler", "toss_winner",
            "toss_decision", "batting_first", "is_free_hit", "match_settings",
        )
    ),
    "match_profiles": frozenset(
        _AUDITED
        + (
            "name", "description", "overs_per_innings", "balls_per_over", "powerplay_overs",
            "max_overs_per_bowler", "wide_runs", "no_ball_runs", "free_hit_on_no_ball",
            "super_over_enabled", "dls_enabled", "points_win", "points_loss", "points_tie",
            "points_no_result", "is_default",
        )
    ),
    "invoices": frozenset(
        _AUDITED
        + (
            "invoice_number", "recipient_name", "recipient_email", "amount", "issue_date",
            "due_date", "status", "description", "payment_method", "paid_date", "notes",
        )
    ),
    "payment_settings": frozenset(
        ("id", "updated_date") + ("setting_key", "setting_value", "description", "updated_by")
    ),
    "system_logs": frozenset(
        ("id", "created_date")
        + (
            "level", "category", "message", "details", "stack_trace", "user_id",
            "ip_address", "user_agent",
        )
    ),
}


def pascal_to_snake(name: str) -> str:
    """Convert ``TeamPlayer`` to ``team_player``."""

    return re.sub(r"([a-z0-9])([A-Z])", r"\1_\2", str(name or "")).lower()


def normalize_entity_key(name: str) -> str:
    return re.sub(r"[^a-z0-9]", "", str(name or "").lower())


_ENTITY_LOOKUP: Dict[str, str] = {
    normalize_entity_key(entity): table for entity, table in ENTITY_TABLE_MAP.items()
}


def resolve_table(entity: str) -> Optional[str]:
    """Resolve an entity name or raw table name to an allowlisted table.

    Accepts ``TeamPlayer``, ``team-player``, ``team_players`` and so on.
    Returns ``None`` for anything not in the allowlist.
    """

    if not entity:
        return None

    raw = str(entity).lower()
    if raw in TABLE_COLUMNS:
        return raw

    mapped = _ENTITY_LOOKUP.get(normalize_entity_key(entity))
    if mapped in TABLE_COLUMNS:
        return mapped

    snake = pascal_to_snake(entity)
    if snake in TABLE_COLUMNS:
        return snake

    return None


def require_table(entity: str) -> str:
    table = resolve_table(entity)
    if not table:
        raise LookupError(f"Unknown entity: {entity}")
    return table


def table_columns(table: str) -> FrozenSet[str]:
    return TABLE_COLUMNS.get(table, frozenset())


def resolve_order_by(table: str, sort: Optional[str]) -> Optional[Tuple[str, bool]]:
    """Parse ``-match_date`` style sort keys into ``(column, descending)``."""

    if not sort:
        return None
    columns = TABLE_COLUMNS.get(table)
    if not columns:
        return None

    value = str(sort).strip()
    descending = value.startswith("-")
    column = value[1:] if descending else value
    if column not in columns:
        return None
    return column, descending


def writable_fields(table: str, payload: Mapping[str, Any], primary_key: str = "id") -> Dict[str, Any]:
    """Keep only real columns, minus the primary key and audit timestamps."""

    columns = TABLE_COLUMNS.get(table, frozenset())
    blocked = AUDIT_FIELDS | {primary_key}
    return {key: value for key, value in payload.items() if key in columns and key not in blocked}


def filter_criteria(table: str, criteria: Mapping[str, Any] | None) -> Dict[str, Any]:
    if not criteria:
        return {}
    columns = TABLE_COLUMNS.get(table, frozenset())
    return {key: value for key, value in criteria.items() if key in columns}


def clamp_limit(raw: Any) -> int:
    try:
        value = int(raw)
    except (TypeError, ValueError):
        return DEFAULT_LIMIT
    if value <= 0:
        return DEFAULT_LIMIT
    return min(value, MAX_LIMIT)


def clamp_offset(raw: Any) -> int:
    try:
        value = int(raw)
    except (TypeError, ValueError):
        return 0
    return max(value, 0)
