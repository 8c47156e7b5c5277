"""Per-match player figures and the running totals they feed.

Figures are keyed by player id, so deliveries recorded without a
``batsman_id``/``bowler_id`` contribute to the scorecard but not to any
player's record.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Dict, Iterable, Mapping, Optional, Sequence, Tuple

from .scorecard import build_match_scorecard, normalize_balls
from .standings import balls_to_overs, overs_to_balls

CAUGHT_WICKETS = ("caught", "caught_behind")

CAREER_TOTALS = (
    "matches_played", "runs_scored", "balls_faced", "not_outs", "fours", "sixes", "fifties",
    "hundreds", "ducks", "wickets_taken", "runs_conceded", "maidens", "dot_balls",
    "four_wickets", "five_wickets", "catches", "stumpings", "run_outs",
)


@dataclass
class PlayerMatchStats:
    player_id: str
    name: str
    batted: bool = False
    runs: int = 0
    balls_faced: int = 0
    fours: int = 0
    sixes: int = 0
    is_out: bool = False
    bowled: bool = False
    balls_bowled: int = 0
    runs_conceded: int = 0
    wickets: int = 0
    maidens: int = 0
    dot_balls: int = 0
    catches: int = 0
    stumpings: int = 0
    run_outs: int = 0

    @property
    def not_out(self) -> bool:
        return self.batted and not self.is_out

    @property
    def duck(self) -> bool:
        return self.batted and self.is_out and self.runs == 0

    @property
    def fifty(self) -> bool:
        return 50 <= self.runs < 100

    @property
    def hundred(self) -> bool:
        return self.runs >= 100


def _as_int(value: Any) -> int:
    try:
        return int(float(value or 0))
    except (TypeError, ValueError):
        return 0


def parse_figures(value: Any) -> Optional[Tuple[int, int]]:
    """Read bowling figures such as ``"4/23"``; ``None`` when blank or unreadable."""

    wickets, sep, runs = str(value or "").strip().partition("/")
    if not sep:
        return None
    try:
        return int(wickets), int(runs)
    except ValueError:
        return None


def better_figures(current: Any, wickets: int, runs: int) -> bool:
    """More wickets win; equal wickets fall back to fewer runs."""

    best = parse_figures(current)
    if best is None:
        return True
    return wickets > best[0] or (wickets == best[0] and runs < best[1])


def match_player_stats(balls: Iterable[Any] | None, balls_per_over: int = 6) -> Dict[str, PlayerMatchStats]:
    players: Dict[str, PlayerMatchStats] = {}

    def entry(player_id: Any, name: Optional[str]) -> PlayerMatchStats:
        key = str(player_id)
        if key not in players:
            players[key] = PlayerMatchStats(player_id=key, name=name or "")
        elif name and not players[key].name:
            players[key].name = name
        return players[key]

    normalized = normalize_balls(balls)
    for card in build_match_scorecard(normalized, balls_per_over):
        for batter in card.batters:
            if not batter.id:
                continue
            player = entry(batter.id, batter.name)
            player.batted = True
            player.runs += batter.runs
            player.balls_faced += batter.balls
            player.fours += batter.fours
            player.sixes += batter.sixes
            player.is_out = player.is_out or batter.is_out
        for bowler in card.bowlers:
            if not bowler.id:
                continue
            player = entry(bowler.id, bowler.name)
            player.bowled = True
            player.balls_bowled += bowler.legal_balls
            player.runs_conceded += bowler.runs
            player.wickets += bowler.wickets
            player.maidens += bowler.maidens
            player.dot_balls += bowler.dots

    for ball in normalized:
        wicket_type = ball.get("wicket_type")
        if wicket_type == "caught_and_bowled":
            credited = (ball.get("bowler_id"), ball.get("bowler_name"), "catches")
        elif wicket_type in CAUGHT_WICKETS:
            credited = (ball.get("fielder_id"), ball.get("fielder_name"), "catches")
        elif wicket_type == "stumped":
            credited = (ball.get("fielder_id"), ball.get("fielder_name"), "stumpings")
        elif wicket_type == "run_out":
            credited = (ball.get("fielder_id"), ball.get("fielder_name"), "run_outs")
        else:
            continue
        player_id, name, column = credited
        if not player_id:
            continue
        player = entry(player_id, name)
        setattr(player, column, getattr(player, column) + 1)

    return players


def _added_totals(existing: Mapping[str, Any], stats: PlayerMatchStats, balls_per_over: int) -> Dict[str, Any]:
    def plus(column: str, value: int) -> int:
        return _as_int(existing.get(column)) + value

    bowled = overs_to_balls(existing.get("overs_bowled"), balls_per_over) + stats.balls_bowled
    updates: Dict[str, Any] = {
        "matches_played": plus("matches_played", 1),
        "runs_scored": plus("runs_scored", stats.runs),
        "balls_faced": plus("balls_faced", stats.balls_faced),
        "not_outs": plus("not_outs", int(stats.not_out)),
        "fours": plus("fours", stats.fours),
        "sixes": plus("sixes", stats.sixes),
        "fifties": plus("fifties", int(stats.fifty)),
        "hundreds": plus("hundreds", int(stats.hundred)),
        "highest_score": max(_as_int(existing.get("highest_score")), stats.runs),
        "wickets_taken": plus("wickets_taken", stats.wickets),
        "overs_bowled": balls_to_overs(bowled, balls_per_over),
        "runs_conceded": plus("runs_conceded", stats.runs_conceded),
        "catches": plus("catches", stats.catches),
        "stumpings": plus("stumpings", stats.stumpings),
        "run_outs": plus("run_outs", stats.run_outs),
    }
    if stats.wickets and better_figures(existing.get("best_bowling"), stats.wickets, stats.runs_conceded):
        updates["best_bowling"] = f"{stats.wickets}/{stats.runs_conceded}"
    return updates


def career_updates(
    existing: Mapping[str, Any],
    stats: PlayerMatchStats,
    balls_per_over: int = 6,
) -> Dict[str, Any]:
    """Columns of a ``team_players`` row after adding one match."""

    updates = _added_totals(existing, stats, balls_per_over)
    updates["ducks"] = _as_int(existing.get("ducks")) + int(stats.duck)
    updates["maidens"] = _as_int(existing.get("maidens")) + stats.maidens
    updates["dot_balls"] = _as_int(existing.get("dot_balls")) + stats.dot_balls
    if stats.wickets >= 5:
        updates["five_wickets"] = _as_int(existing.get("five_wickets")) + 1
    elif stats.wickets >= 4:
        updates["four_wickets"] = _as_int(existing.get("four_wickets")) + 1
    return updates


def tournament_updates(
    existing: Mapping[str, Any],
    stats: PlayerMatchStats,
    balls_per_over: int = 6,
) -> Dict[str, Any]:
    """Columns of a ``tournament_players`` row after adding one match, averages included."""

    updates = _added_totals(existing, stats, balls_per_over)
    innings_out = updates["matches_played"] - updates["not_outs"]
    runs = updates["runs_scored"]
    faced = updates["balls_faced"]
    conceded = updates["runs_conceded"]
    bowled = overs_to_balls(updates["overs_bowled"], balls_per_over)
    wickets = updates["wickets_taken"]

    updates["batting_avg"] = round(runs / innings_out, 2) if innings_out > 0 else 0.0
    updates["strike_rate"] = round(runs * 100 / faced, 2) if faced else 0.0
    updates["economy"] = round(conceded / bowled * balls_per_over, 2) if bowled else 0.0
    updates["bowling_avg"] = round(conceded / wickets, 2) if wickets else 0.0
    return updates


def find_tournament_player(
    rows: Sequence[Mapping[str, Any]],
    stats: PlayerMatchStats,
) -> Optional[Mapping[str, Any]]:
    for row in rows:
        if str(row.get("player_id") or "") == stats.player_id:
            return row
    if not stats.name:
        return None
    return next((row for row in rows if row.get("player_name") == stats.name), None)


def career_from_tournaments(
    rows: Iterable[Mapping[str, Any]],
    balls_per_over: int = 6,
) -> Dict[str, Any]:
    """Rebuild career columns by summing a player's tournament rows."""

    career: Dict[str, Any] = {column: 0 for column in CAREER_TOTALS}
    career["highest_score"] = 0
    career["best_bowling"] = ""
    bowled = 0

    for row in rows:
        for column in CAREER_TOTALS:
            career[column] += _as_int(row.get(column))
        bowled += overs_to_balls(row.get("overs_bowled"), balls_per_over)
        career["highest_score"] = max(career["highest_score"], _as_int(row.get("highest_score")))
        figures = parse_figures(row.get("best_bowling"))
        if figures and better_figures(career["best_bowling"], *figures):
            career["best_bowling"] = f"{figures[0]}/{figures[1]}"

    career["overs_bowled"] = balls_to_overs(bowled, balls_per_over)
    return career
