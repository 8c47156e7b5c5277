"""Points table and net run rate for league and group stages."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Dict, Iterable, List, Mapping, Optional, Tuple

POINTS_FOR_WIN = 2
POINTS_FOR_TIE = 1
POINTS_FOR_NO_RESULT = 1
ALL_OUT_WICKETS = 10

TABLE_STAGES = ("", "league", "group")
NO_RESULT_STATUSES = ("abandoned", "no_result", "cancelled")


@dataclass
class TeamStanding:
    id: str
    team_name: str
    short_name: str = ""
    team_id: Optional[str] = None
    group_letter: str = ""
    played: int = 0
    won: int = 0
    lost: int = 0
    tied: int = 0
    no_result: int = 0
    points: int = 0
    runs_scored: int = 0
    balls_faced: int = 0
    runs_conceded: int = 0
    balls_bowled: int = 0
    qualified: bool = False
    balls_per_over: int = 6

    @property
    def overs_faced(self) -> str:
        return balls_to_overs(self.balls_faced, self.balls_per_over)

    @property
    def overs_bowled(self) -> str:
        return balls_to_overs(self.balls_bowled, self.balls_per_over)

    @property
    def nrr(self) -> float:
        return net_run_rate(
            self.runs_scored,
            self.overs_faced,
            self.runs_conceded,
            self.overs_bowled,
            self.balls_per_over,
        )


@dataclass
class PointsTable:
    groups: Dict[str, List[TeamStanding]]
    qualify_per_group: int
    grouped: bool


def overs_to_balls(overs: Any, balls_per_over: int = 6) -> int:
    """Convert cricket notation ``"10.3"`` (ten overs and three balls) to 63."""

    if overs in (None, ""):
        return 0
    text = str(overs).strip()
    whole, _, part = text.partition(".")
    try:
        completed = int(whole or 0)
        extra = int(part[:1] or 0) if part else 0
    except ValueError as exc:
        raise ValueError(f"Invalid overs value '{overs}'") from exc
    return completed * balls_per_over + min(extra, balls_per_over - 1)


def balls_to_overs(balls: int, balls_per_over: int = 6) -> str:
    return f"{balls // balls_per_over}.{balls % balls_per_over}"


def net_run_rate(
    runs_scored: int,
    overs_faced: Any,
    runs_conceded: int,
    overs_bowled: Any,
    balls_per_over: int = 6,
) -> float:
    faced = overs_to_balls(overs_faced, balls_per_over)
    bowled = overs_to_balls(overs_bowled, balls_per_over)
    if not faced or not bowled:
        return 0.0
    rate_for = runs_scored * balls_per_over / faced
    rate_against = runs_conceded * balls_per_over / bowled
    return round(rate_for - rate_against, 3)


def parse_score(score: Any) -> Tuple[int, int]:
    """``"145/6"`` or ``"145-6"`` to ``(145, 6)``; a bare total has no wickets."""

    if score in (None, ""):
        return 0, 0
    text = str(score).strip()
    for separator in ("/", "-"):
        if separator in text:
            runs, _, wickets = text.partition(separator)
            break
    else:
        runs, wickets = text, "0"
    try:
        return int(runs or 0), int(wickets or 0)
    except ValueError as exc:
        raise ValueError(f"Invalid score value '{score}'") from exc


def _standing_from_row(row: Mapping[str, Any], balls_per_over: int) -> TeamStanding:
    return TeamStanding(
        id=str(row.get("id")),
        team_name=row.get("team_name") or "",
        short_name=row.get("short_name") or "",
        team_id=row.get("team_id"),
        group_letter=row.get("group_letter") or row.get("group") or "",
        balls_per_over=balls_per_over,
    )


def apply_result(
    table: Dict[str, TeamStanding],
    match: Mapping[str, Any],
    points_for_win: int = POINTS_FOR_WIN,
    points_for_tie: int = POINTS_FOR_TIE,
    points_for_no_result: int = POINTS_FOR_NO_RESULT,
    overs_per_match: Optional[int] = None,
) -> bool:
    """Fold one finished match into ``table``. Returns ``False`` if it was skipped."""

    team1 = table.get(str(match.get("team1_id")))
    team2 = table.get(str(match.get("team2_id")))
    if team1 is None or team2 is None:
        return False

    status = (match.get("status") or "").lower()
    if status in NO_RESULT_STATUSES:
        for team in (team1, team2):
            team.played += 1
            team.no_result += 1
            team.points += points_for_no_result
        return True
    if status != "completed":
        return False

    balls_per_over = team1.balls_per_over
    runs1, wickets1 = parse_score(match.get("team1_score"))
    runs2, wickets2 = parse_score(match.get("team2_score"))
    balls1 = overs_to_balls(match.get("team1_overs"), balls_per_over)
    balls2 = overs_to_balls(match.get("team2_overs"), balls_per_over)
    if overs_per_match:
        quota = int(overs_per_match) * balls_per_over
        if wickets1 >= ALL_OUT_WICKETS:
            balls1 = quota
        if wickets2 >= ALL_OUT_WICKETS:
            balls2 = quota

    team1.runs_scored += runs1
    team1.balls_faced += balls1
    team1.runs_conceded += runs2
    team1.balls_bowled += balls2
    team2.runs_scored += runs2
    team2.balls_faced += balls2
    team2.runs_conceded += runs1
    team2.balls_bowled += balls1

    team1.played += 1
    team2.played += 1

    winner = match.get("winner_id")
    if winner is not None and str(winner) in (team1.id, team2.id):
        won, lost = (team1, team2) if str(winner) == team1.id else (team2, team1)
        won.won += 1
        won.points += points_for_win
        lost.lost += 1
    elif runs1 == runs2 and (balls1 or balls2):
        for team in (team1, team2):
            team.tied += 1
            team.points += points_for_tie
    else:
        for team in (team1, team2):
            team.no_result += 1
            team.points += points_for_no_result
    return True


def _sort_key(team: TeamStanding) -> tuple:
    return (-team.points, -team.nrr, team.team_name.lower())


def build_points_table(
    tournament_teams: Iterable[Mapping[str, Any]],
    matches: Iterable[Mapping[str, Any]],
    tournament: Mapping[str, Any] | None = None,
    profile: Mapping[str, Any] | None = None,
) -> PointsTable:
    """Recompute every team's record from the league or group stage matches.

    Points come from the tournament's match profile when one is supplied,
    otherwise two for a win and one for a tie or no result.
    """

    tournament = tournament or {}
    profile = profile or {}
    balls_per_over = int(tournament.get("balls_per_over") or profile.get("balls_per_over") or 6)
    overs_per_match = tournament.get("overs_per_match") or profile.get("overs_per_innings")

    def points(key: str, default: int) -> int:
        value = profile.get(key)
        return int(value) if value is not None else default

    table: Dict[str, TeamStanding] = {}
    for row in tournament_teams:
        standing = _standing_from_row(row, balls_per_over)
        table[standing.id] = standing

    for match in sorted(matches, key=lambda m: m.get("match_number") or 0):
        if (match.get("stage") or "") not in TABLE_STAGES:
            continue
        apply_result(
            table,
            match,
            points_for_win=points("points_win", POINTS_FOR_WIN),
            points_for_tie=points("points_tie", POINTS_FOR_TIE),
            points_for_no_result=points("points_no_result", POINTS_FOR_NO_RESULT),
            overs_per_match=overs_per_match,
        )

    grouped = tournament.get("format") == "group_knockout"
    qualify = int(tournament.get("teams_qualify_per_group") or 2)

    groups: Dict[str, List[TeamStanding]] = {}
    for standing in table.values():
        key = (standing.group_letter or "A") if grouped else "League"
        groups.setdefault(key, []).append(standing)

    for key in groups:
        groups[key].sort(key=_sort_key)
        if grouped:
            for position, standing in enumerate(groups[key]):
                standing.qualified = position < qualify

    return PointsTable(groups=dict(sorted(groups.items())), qualify_per_group=qualify, grouped=grouped)


def standing_updates(table: PointsTable) -> List[Dict[str, Any]]:
    """Rows for writing recomputed figures back to ``tournament_teams``."""

    updates: List[Dict[str, Any]] = []
    for standings in table.groups.values():
        for team in standings:
            updates.append(
                {
                    "id": team.id,
                    "matches_played": team.played,
                    "matches_won": team.won,
                    "matches_lost": team.lost,
                    "matches_tied": team.tied,
                    "matches_nr": team.no_result,
                    "points": team.points,
                    "runs_scored": team.runs_scored,
                    "runs_conceded": team.runs_conceded,
                    "overs_faced": team.overs_faced,
                    "overs_bowled": team.overs_bowled,
                    "nrr": team.nrr,
                }
            )
    return updates
