"""Scorecard reconstruction from ball-by-ball delivery rows."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, Iterable, List, Mapping, Optional

LEGAL_EXTRA_TYPES = ("bye", "leg_bye")
BOWLER_EXEMPT_WICKETS = ("run_out", "retired_hurt", "retired_out", "obstructing_field", "timed_out")


@dataclass
class BatterLine:
    name: str
    id: Optional[str]
    order: int
    runs: int = 0
    balls: int = 0
    fours: int = 0
    sixes: int = 0
    is_out: bool = False
    dismissal: str = ""

    @property
    def strike_rate(self) -> float:
        if not self.balls:
            return 0.0
        return round(self.runs * 100 / self.balls, 2)


@dataclass
class BowlerLine:
    name: str
    id: Optional[str]
    order: int
    legal_balls: int = 0
    runs: int = 0
    wickets: int = 0
    maidens: int = 0
    wides: int = 0
    no_balls: int = 0
    dots: int = 0
    overs: str = "0.0"
    economy: float = 0.0


@dataclass
class WicketFall:
    wicket: int
    score: int
    batsman: str
    overs: str


@dataclass
class Extras:
    wides: int = 0
    no_balls: int = 0
    byes: int = 0
    leg_byes: int = 0
    penalty: int = 0

    @property
    def total(self) -> int:
        return self.wides + self.no_balls + self.byes + self.leg_byes + self.penalty


@dataclass
class InningsTotals:
    runs: int = 0
    wickets: int = 0
    overs: str = "0.0"
    legal_balls: int = 0
    run_rate: float = 0.0


@dataclass
class Partnership:
    wicket: int
    runs: int
    balls: int
    batters: List[str]
    unbroken: bool = False


@dataclass
class OverSummary:
    over_number: int
    bowler: str
    runs: int
    wickets: int


@dataclass
class InningsScorecard:
    innings: int
    batters: List[BatterLine] = field(default_factory=list)
    bowlers: List[BowlerLine] = field(default_factory=list)
    fall_of_wickets: List[WicketFall] = field(default_factory=list)
    extras: Extras = field(default_factory=Extras)
    totals: InningsTotals = field(default_factory=InningsTotals)
    partnerships: List[Partnership] = field(default_factory=list)


def _as_int(value: Any) -> int:
    try:
        return int(value or 0)
    except (TypeError, ValueError):
        return 0


def _bat_runs(ball: Mapping[str, Any]) -> int:
    return _as_int(ball.get("runs") or ball.get("runs_scored"))


def _extra_runs(ball: Mapping[str, Any]) -> int:
    """Extras on the delivery; a wide or no-ball recorded without a value is worth one."""

    runs = _as_int(ball.get("extras"))
    if not runs and ball.get("extra_type") in ("wide", "no_ball"):
        return 1
    return runs


def _bowler_runs(ball: Mapping[str, Any]) -> int:
    extra_type = ball.get("extra_type")
    if extra_type == "wide":
        return _extra_runs(ball)
    if extra_type == "no_ball":
        return _bat_runs(ball) + _extra_runs(ball)
    if extra_type in LEGAL_EXTRA_TYPES:
        return 0
    return _bat_runs(ball)


def _is_dot(ball: Mapping[str, Any]) -> bool:
    return _bat_runs(ball) == 0 and not _extra_runs(ball) and not _is_wicket(ball)


def _is_wicket(ball: Mapping[str, Any]) -> bool:
    return bool(ball.get("is_wicket") or ball.get("wicket_type"))


def _is_dismissal(ball: Mapping[str, Any]) -> bool:
    # A retired-hurt batter may return, so the innings has not lost a wicket.
    return _is_wicket(ball) and ball.get("wicket_type") != "retired_hurt"


def _batter_name(ball: Mapping[str, Any]) -> str:
    return ball.get("batsman_name") or ball.get("batsman") or ""


def _bowler_name(ball: Mapping[str, Any]) -> str:
    return ball.get("bowler_name") or ball.get("bowler") or ""


def _dismissed_name(ball: Mapping[str, Any]) -> str:
    return (
        ball.get("dismissed_batsman_name")
        or ball.get("dismissed_batsman")
        or ball.get("batsman_out")
        or _batter_name(ball)
    )


def format_overs(legal_balls: int, balls_per_over: int = 6) -> str:
    return f"{legal_balls // balls_per_over}.{legal_balls % balls_per_over}"


def normalize_balls(balls: Iterable[Any] | None) -> List[Dict[str, Any]]:
    """Flatten rows stored as ``{"id": ..., "data": {...}}`` into plain dicts."""

    if not balls:
        return []
    normalized: List[Dict[str, Any]] = []
    for ball in balls:
        if not isinstance(ball, Mapping):
            continue
        nested = ball.get("data")
        if isinstance(nested, Mapping):
            normalized.append({**nested, "id": ball.get("id")})
        else:
            normalized.append(dict(ball))
    return normalized


def sort_balls(balls: Iterable[Mapping[str, Any]]) -> List[Dict[str, Any]]:
    return sorted(balls, key=lambda b: (_as_int(b.get("over_number")), _as_int(b.get("ball_number"))))


def innings_balls(balls: Iterable[Mapping[str, Any]], innings: int) -> List[Dict[str, Any]]:
    return sort_balls(b for b in balls if _as_int(b.get("innings")) == innings)


def is_legal_delivery(ball: Mapping[str, Any]) -> bool:
    extra_type = ball.get("extra_type")
    if not extra_type or extra_type in LEGAL_EXTRA_TYPES:
        return True
    # Wides and no-balls only count when the match profile marks them legal.
    return ball.get("is_legal_delivery") is True


def format_dismissal(ball: Mapping[str, Any]) -> str:
    wicket_type = ball.get("wicket_type")
    if not wicket_type:
        return ""

    bowler = _bowler_name(ball)
    fielder = ball.get("fielder_name") or ball.get("fielder")

    if wicket_type == "bowled":
        return f"b {bowler}"
    if wicket_type == "caught":
        return f"c {fielder or '?'} b {bowler}"
    if wicket_type == "caught_behind":
        return f"c †{fielder or 'wk'} b {bowler}"
    if wicket_type == "caught_and_bowled":
        return f"c & b {bowler}"
    if wicket_type == "lbw":
        return f"lbw b {bowler}"
    if wicket_type == "stumped":
        return f"st †{fielder or 'wk'} b {bowler}"
    if wicket_type == "run_out":
        return f"run out ({fielder or '?'})"
    if wicket_type == "hit_wicket":
        return f"hit wicket b {bowler}"
    fixed = {
        "obstructing_field": "obstructing the field",
        "timed_out": "timed out",
        "retired_hurt": "retired hurt",
        "retired_out": "retired out",
    }
    return fixed.get(wicket_type, str(wicket_type))


def batting_card(balls: Iterable[Mapping[str, Any]]) -> List[BatterLine]:
    batters: Dict[str, BatterLine] = {}

    def line_for(name: str, player_id: Optional[str]) -> BatterLine:
        if name not in batters:
            batters[name] = BatterLine(name=name, id=player_id, order=len(batters) + 1)
        return batters[name]

    for ball in sort_balls(balls):
        name = _batter_name(ball)
        if not name:
            continue
        batter = line_for(name, ball.get("batsman_id"))

        if ball.get("extra_type") != "wide":
            batter.balls += 1

        runs = _bat_runs(ball)
        batter.runs += runs
        if ball.get("is_four") or runs == 4:
            batter.fours += 1
        if ball.get("is_six") or runs == 6:
            batter.sixes += 1

        if _is_wicket(ball):
            # A non-striker run out before facing still gets a line.
            dismissed = line_for(_dismissed_name(ball), ball.get("dismissed_batsman_id"))
            if _is_dismissal(ball):
                dismissed.is_out = True
            dismissed.dismissal = format_dismissal(ball)

    return sorted(batters.values(), key=lambda line: line.order)


def bowling_card(balls: Iterable[Mapping[str, Any]], balls_per_over: int = 6) -> List[BowlerLine]:
    bowlers: Dict[str, BowlerLine] = {}
    overs: Dict[tuple, List[int]] = {}

    for ball in sort_balls(balls):
        name = _bowler_name(ball)
        if not name:
            continue
        if name not in bowlers:
            bowlers[name] = BowlerLine(name=name, id=ball.get("bowler_id"), order=len(bowlers) + 1)
        bowler = bowlers[name]
        over = overs.setdefault((name, _as_int(ball.get("over_number"))), [0, 0])

        if is_legal_delivery(ball):
            bowler.legal_balls += 1
            over[0] += 1

        extra_type = ball.get("extra_type")
        if extra_type == "wide":
            bowler.wides += 1
        elif extra_type == "no_ball":
            bowler.no_balls += 1
        conceded = _bowler_runs(ball)
        bowler.runs += conceded
        over[1] += conceded

        if _is_wicket(ball) and ball.get("wicket_type") not in BOWLER_EXEMPT_WICKETS:
            bowler.wickets += 1

        if _is_dot(ball):
            bowler.dots += 1

    for (name, _), (legal, runs) in overs.items():
        if legal == balls_per_over and runs == 0:
            bowlers[name].maidens += 1

    lines = sorted(bowlers.values(), key=lambda line: line.order)
    for line in lines:
        line.overs = format_overs(line.legal_balls, balls_per_over)
        line.economy = round(line.runs / line.legal_balls * balls_per_over, 2) if line.legal_balls else 0.0
    return lines


def fall_of_wickets(balls: Iterable[Mapping[str, Any]], balls_per_over: int = 6) -> List[WicketFall]:
    falls: List[WicketFall] = []
    total = 0
    legal = 0
    for ball in sort_balls(balls):
        total += _bat_runs(ball) + _extra_runs(ball)
        if is_legal_delivery(ball):
            legal += 1
        if _is_dismissal(ball):
            falls.append(
                WicketFall(
                    wicket=len(falls) + 1,
                    score=total,
                    batsman=_dismissed_name(ball) or "Unknown",
                    overs=format_overs(legal, balls_per_over),
                )
            )
    return falls


def extras_breakdown(balls: Iterable[Mapping[str, Any]]) -> Extras:
    extras = Extras()
    for ball in balls:
        runs = _extra_runs(ball)
        extra_type = ball.get("extra_type")
        if extra_type == "wide":
            extras.wides += runs
        elif extra_type == "no_ball":
            extras.no_balls += runs
        elif extra_type == "bye":
            extras.byes += runs
        elif extra_type == "leg_bye":
            extras.leg_byes += runs
        elif extra_type == "penalty":
            extras.penalty += runs
    return extras


def innings_totals(balls: Iterable[Mapping[str, Any]], balls_per_over: int = 6) -> InningsTotals:
    balls = list(balls)
    if not balls:
        return InningsTotals()

    runs = sum(_bat_runs(b) + _extra_runs(b) for b in balls)
    wickets = sum(1 for b in balls if _is_dismissal(b))
    legal = sum(1 for b in balls if is_legal_delivery(b))
    run_rate = round(runs / (legal / balls_per_over), 2) if legal else 0.0
    return InningsTotals(
        runs=runs,
        wickets=wickets,
        overs=format_overs(legal, balls_per_over),
        legal_balls=legal,
        run_rate=run_rate,
    )


def partnerships(balls: Iterable[Mapping[str, Any]]) -> List[Partnership]:
    result: List[Partnership] = []
    runs = 0
    faced = 0
    names: List[str] = []
    seen_any = False

    for ball in sort_balls(balls):
        seen_any = True
        for name in (_batter_name(ball), ball.get("non_striker_name") or ball.get("non_striker")):
            if name and name not in names:
                names.append(name)
        runs += _bat_runs(ball) + _extra_runs(ball)
        if is_legal_delivery(ball):
            faced += 1
        if _is_dismissal(ball):
            result.append(Partnership(wicket=len(result) + 1, runs=runs, balls=faced, batters=names))
            survivor = [n for n in names if n != _dismissed_name(ball)]
            runs, faced, names, seen_any = 0, 0, survivor[-1:], False

    if seen_any:
        result.append(Partnership(wicket=len(result) + 1, runs=runs, balls=faced, batters=names, unbroken=True))
    return result


def last_overs(
    balls: Iterable[Mapping[str, Any]],
    count: int = 5,
    balls_per_over: int = 6,
) -> List[OverSummary]:
    """Runs and wickets for the most recent completed overs, oldest first."""

    grouped: Dict[int, List[Mapping[str, Any]]] = {}
    for ball in sort_balls(balls):
        grouped.setdefault(_as_int(ball.get("over_number")), []).append(ball)

    completed: List[OverSummary] = []
    for over_number in sorted(grouped):
        over_balls = grouped[over_number]
        if sum(1 for b in over_balls if is_legal_delivery(b)) < balls_per_over:
            continue
        completed.append(
            OverSummary(
                over_number=over_number,
                bowler=_bowler_name(over_balls[0]),
                runs=sum(_bat_runs(b) + _extra_runs(b) for b in over_balls),
                wickets=sum(1 for b in over_balls if _is_dismissal(b)),
            )
        )
    if count <= 0:
        return []
    return completed[-count:]


def build_innings(
    balls: Iterable[Any] | None,
    balls_per_over: int = 6,
    innings: int = 1,
) -> Optional[InningsScorecard]:
    normalized = normalize_balls(balls)
    if not normalized:
        return None
    return InningsScorecard(
        innings=innings,
        batters=batting_card(normalized),
        bowlers=bowling_card(normalized, balls_per_over),
        fall_of_wickets=fall_of_wickets(normalized, balls_per_over),
        extras=extras_breakdown(normalized),
        totals=innings_totals(normalized, balls_per_over),
        partnerships=partnerships(normalized),
    )


def build_match_scorecard(balls: Iterable[Any] | None, balls_per_over: int = 6) -> List[InningsScorecard]:
    """Scorecards for every innings present in the delivery list, in order."""

    normalized = normalize_balls(balls)
    innings_numbers = sorted({_as_int(b.get("innings")) or 1 for b in normalized})
    cards: List[InningsScorecard] = []
    for number in innings_numbers:
        subset = [b for b in normalized if (_as_int(b.get("innings")) or 1) == number]
        card = build_innings(subset, balls_per_over, innings=number)
        if card is not None:
            cards.append(card)
    return cards


def batter_summary(balls: Iterable[Any], name: str) -> Dict[str, int]:
    """Live figures for one batter, matched by name or id."""

    own = [
        b for b in normalize_balls(balls)
        if _batter_name(b) == name or b.get("batsman_id") == name
    ]
    return {
        "runs": sum(_bat_runs(b) for b in own),
        "balls": sum(1 for b in own if b.get("extra_type") != "wide"),
        "fours": sum(1 for b in own if b.get("is_four") or _bat_runs(b) == 4),
        "sixes": sum(1 for b in own if b.get("is_six") or _bat_runs(b) == 6),
    }


def bowler_summary(balls: Iterable[Any], name: str, balls_per_over: int = 6) -> Dict[str, Any]:
    own = [
        b for b in normalize_balls(balls)
        if _bowler_name(b) == name or b.get("bowler_id") == name
    ]
    legal = sum(1 for b in own if is_legal_delivery(b))
    runs = sum(_bowler_runs(b) for b in own)

    return {
        "overs": format_overs(legal, balls_per_over),
        "runs": runs,
        "wickets": sum(1 for b in own if _is_wicket(b) and b.get("wicket_type") not in BOWLER_EXEMPT_WICKETS),
        "dots": sum(1 for b in own if _is_dot(b)),
        "economy": round(runs / legal * balls_per_over, 2) if legal else 0.0,
    }


def required_run_rate(
    target: int,
    runs: int,
    balls_remaining: int,
    balls_per_over: int = 6,
) -> Optional[float]:
    """Runs per over still needed; ``None`` once no balls remain."""

    if balls_remaining <= 0:
        return None
    needed = target - runs
    if needed <= 0:
        return 0.0
    return round(needed * balls_per_over / balls_remaining, 2)
