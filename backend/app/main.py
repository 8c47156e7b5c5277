from __future__ import annotations

import datetime as dt
import logging
import os
from functools import lru_cache
from typing import Any, Dict, List, Optional, Union

from fastapi import Body, FastAPI, HTTPException, Query
from fastapi.middleware.cors import CORSMiddleware
from pydantic import BaseModel, ConfigDict, Field

from club_core import DataStore, build_match_scorecard, build_points_table, generate_fixtures
from club_core import dls, finance, player_stats
from club_core.fixtures import expected_match_count
from club_core.loader import NOT_FOUND
from club_core.scorecard import InningsScorecard
from club_core.standings import standing_updates

app = FastAPI(title="Cricket Club API", version="1.0.0")
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

logger = logging.getLogger(__name__)

Overs = Union[float, str]


class FilterOptions(BaseModel):
    sort: Optional[str] = None
    limit: Optional[int] = None
    offset: Optional[int] = None


class FilterRequest(BaseModel):
    query: Dict[str, Any] = Field(default_factory=dict)
    options: FilterOptions = Field(default_factory=FilterOptions)


class BatterModel(BaseModel):
    name: str
    id: Optional[str] = None
    order: int
    runs: int
    balls: int
    fours: int
    sixes: int
    is_out: bool = Field(alias="isOut")
    dismissal: str
    strike_rate: float = Field(alias="strikeRate")

    model_config = ConfigDict(populate_by_name=True)


class BowlerModel(BaseModel):
    name: str
    id: Optional[str] = None
    order: int
    overs: str
    legal_balls: int = Field(alias="legalBalls")
    runs: int
    wickets: int
    maidens: int
    wides: int
    no_balls: int = Field(alias="noBalls")
    dots: int
    economy: float

    model_config = ConfigDict(populate_by_name=True)


class WicketFallModel(BaseModel):
    wicket: int
    score: int
    batsman: str
    overs: str


class ExtrasModel(BaseModel):
    wides: int
    no_balls: int = Field(alias="noBalls")
    byes: int
    leg_byes: int = Field(alias="legByes")
    penalty: int
    total: int

    model_config = ConfigDict(populate_by_name=True)


class InningsTotalsModel(BaseModel):
    runs: int
    wickets: int
    overs: str
    legal_balls: int = Field(alias="legalBalls")
    run_rate: float = Field(alias="runRate")

    model_config = ConfigDict(populate_by_name=True)


class PartnershipModel(BaseModel):
    wicket: int
    runs: int
    balls: int
    batters: List[str]
    unbroken: bool


class InningsModel(BaseModel):
    innings: int
    batsmen: List[BatterModel]
    bowlers: List[BowlerModel]
    fall_of_wickets: List[WicketFallModel] = Field(alias="fallOfWickets")
    extras: ExtrasModel
    totals: InningsTotalsModel
    partnerships: List[PartnershipModel]

    model_config = ConfigDict(populate_by_name=True)


class ScorecardResponse(BaseModel):
    match_id: Optional[str] = Field(default=None, alias="matchId")
    balls_per_over: int = Field(alias="ballsPerOver")
    innings: List[InningsModel]

    model_config = ConfigDict(populate_by_name=True)


class ScorecardRequest(BaseModel):
    balls: List[Dict[str, Any]]
    balls_per_over: int = Field(default=6, alias="ballsPerOver", ge=1)

    model_config = ConfigDict(populate_by_name=True)


class SyncStatsRequest(BaseModel):
    tournament_id: Optional[str] = Field(default=None, alias="tournamentId")
    balls_per_over: int = Field(default=6, alias="ballsPerOver", ge=1)

    model_config = ConfigDict(populate_by_name=True)


class SyncStatsResponse(BaseModel):
    match_id: str = Field(alias="matchId")
    tournament_id: Optional[str] = Field(default=None, alias="tournamentId")
    players: int
    team_players_updated: int = Field(alias="teamPlayersUpdated")
    tournament_players_updated: int = Field(alias="tournamentPlayersUpdated")
    unmatched: List[str] = Field(default_factory=list)

    model_config = ConfigDict(populate_by_name=True)


class FixtureRequest(BaseModel):
    start_date: Optional[dt.date] = Field(default=None, alias="startDate")
    matches_per_day: int = Field(default=1, alias="matchesPerDay", ge=1)
    venue: Optional[str] = None
    shuffle: bool = False
    home_and_away: bool = Field(default=False, alias="homeAndAway")
    seed: Optional[int] = None
    persist: bool = False

    model_config = ConfigDict(populate_by_name=True)


class FixtureResponse(BaseModel):
    tournament_id: str = Field(alias="tournamentId")
    format: str
    expected_matches: int = Field(alias="expectedMatches")
    fixtures: List[Dict[str, Any]]
    groups: Dict[str, List[str]] = Field(default_factory=dict)
    persisted: bool = False

    model_config = ConfigDict(populate_by_name=True)


class StandingModel(BaseModel):
    id: str
    team_id: Optional[str] = Field(default=None, alias="teamId")
    team_name: str = Field(alias="teamName")
    short_name: str = Field(default="", alias="shortName")
    group_letter: str = Field(default="", alias="groupLetter")
    played: int
    won: int
    lost: int
    tied: int
    no_result: int = Field(alias="noResult")
    points: int
    runs_scored: int = Field(alias="runsScored")
    overs_faced: str = Field(alias="oversFaced")
    runs_conceded: int = Field(alias="runsConceded")
    overs_bowled: str = Field(alias="oversBowled")
    nrr: float
    qualified: bool

    model_config = ConfigDict(populate_by_name=True)


class PointsGroupModel(BaseModel):
    name: str
    teams: List[StandingModel]


class PointsTableResponse(BaseModel):
    tournament_id: str = Field(alias="tournamentId")
    grouped: bool
    qualify_per_group: int = Field(alias="qualifyPerGroup")
    groups: List[PointsGroupModel]
    persisted: bool = False

    model_config = ConfigDict(populate_by_name=True)


class DLSTargetRequest(BaseModel):
    team1_score: int = Field(alias="team1Score", ge=0)
    team1_overs: Overs = Field(alias="team1Overs")
    team2_original_overs: Overs = Field(alias="team2OriginalOvers")
    team2_revised_overs: Overs = Field(alias="team2RevisedOvers")
    team2_wickets_at_interruption: int = Field(default=0, alias="team2WicketsAtInterruption", ge=0, le=10)
    team2_score_at_interruption: int = Field(default=0, alias="team2ScoreAtInterruption", ge=0)

    model_config = ConfigDict(populate_by_name=True)


class DLSTargetResponse(BaseModel):
    target: int
    par_score: int = Field(alias="parScore")
    resource_ratio: float = Field(alias="resourceRatio")
    team1_resources: float = Field(alias="team1Resources")
    team2_resources: float = Field(alias="team2RevisedResources")

    model_config = ConfigDict(populate_by_name=True)


class DLSSituationRequest(BaseModel):
    team1_score: int = Field(alias="team1Score", ge=0)
    team1_overs: Overs = Field(alias="team1Overs")
    team2_score: int = Field(alias="team2Score", ge=0)
    team2_overs_used: Overs = Field(alias="team2OversUsed")
    team2_wickets_lost: int = Field(alias="team2WicketsLost", ge=0, le=10)
    team2_total_overs: Overs = Field(alias="team2TotalOvers")
    revised_target: Optional[int] = Field(default=None, alias="revisedTarget")

    model_config = ConfigDict(populate_by_name=True)


class DLSSituationResponse(BaseModel):
    par_score: int = Field(alias="parScore")
    target: int
    runs_ahead: int = Field(alias="runsAhead")
    runs_behind: int = Field(alias="runsBehind")
    team2_score: int = Field(alias="team2Score")
    team2_overs_used: float = Field(alias="team2OversUsed")
    team2_wickets_lost: int = Field(alias="team2WicketsLost")
    is_above_par: bool = Field(alias="isAbovePar")
    is_below_par: bool = Field(alias="isBelowPar")
    is_on_par: bool = Field(alias="isOnPar")
    explanation: str

    model_config = ConfigDict(populate_by_name=True)


class CategoryTotalModel(BaseModel):
    name: str
    value: float


class MonthBucketModel(BaseModel):
    month: str
    year: int
    income: float
    expenses: float


class FinanceOverviewResponse(BaseModel):
    currency: str
    total_income: float = Field(alias="totalIncome")
    total_expenses: float = Field(alias="totalExpenses")
    balance: float
    balance_display: str = Field(alias="balanceDisplay")
    this_month_income: float = Field(alias="thisMonthIncome")
    this_month_expense: float = Field(alias="thisMonthExpense")
    last_month_income: float = Field(alias="lastMonthIncome")
    last_month_expense: float = Field(alias="lastMonthExpense")
    income_trend: float = Field(alias="incomeTrend")
    expense_trend: float = Field(alias="expenseTrend")
    pending_count: int = Field(alias="pendingCount")
    pending_amount: float = Field(alias="pendingAmount")
    monthly: List[MonthBucketModel]
    income_by_category: List[CategoryTotalModel] = Field(alias="incomeByCategory")
    expense_by_category: List[CategoryTotalModel] = Field(alias="expenseByCategory")
    active_memberships: int = Field(alias="activeMemberships")
    pending_memberships: int = Field(alias="pendingMemberships")
    transaction_count: int = Field(alias="transactionCount")
    savings_rate: float = Field(alias="savingsRate")

    model_config = ConfigDict(populate_by_name=True)


class YearStatsModel(BaseModel):
    income: float
    expenses: float
    net: float
    count: int


class YearHistoryModel(YearStatsModel):
    year: int


class MonthComparisonModel(BaseModel):
    month: str
    current: float
    previous: float


class YearOverYearResponse(BaseModel):
    years: List[int]
    current_year: int = Field(alias="currentYear")
    compare_year: Optional[int] = Field(default=None, alias="compareYear")
    current: YearStatsModel
    comparison: Optional[YearStatsModel] = None
    changes: Dict[str, Optional[float]]
    monthly: List[MonthComparisonModel]
    history: List[YearHistoryModel]

    model_config = ConfigDict(populate_by_name=True)


class PlayerBalanceModel(BaseModel):
    player_id: str = Field(alias="playerId")
    name: str
    charges: float
    payments: float
    balance: float
    matches_charged: int = Field(alias="matchesCharged")

    model_config = ConfigDict(populate_by_name=True)


class PlayerBalancesResponse(BaseModel):
    players: List[PlayerBalanceModel]
    total_owed: float = Field(alias="totalOwed")
    total_credit: float = Field(alias="totalCredit")
    total_collected: float = Field(alias="totalCollected")
    players_owing: int = Field(alias="playersOwing")
    players_with_credit: int = Field(alias="playersWithCredit")

    model_config = ConfigDict(populate_by_name=True)


class FinancialReportResponse(BaseModel):
    period: str
    start: Optional[dt.date] = None
    end: dt.date
    total_income: float = Field(alias="totalIncome")
    total_expenses: float = Field(alias="totalExpenses")
    net: float
    margin: float
    total_owed: float = Field(alias="totalOwed")
    total_collected: float = Field(alias="totalCollected")
    total_charged: float = Field(alias="totalCharged")
    collection_rate: float = Field(alias="collectionRate")
    players_owing: List[PlayerBalanceModel] = Field(alias="playersOwing")
    players_with_credit: List[PlayerBalanceModel] = Field(alias="playersWithCredit")
    unverified_payments: List[Dict[str, Any]] = Field(alias="unverifiedPayments")
    income_by_category: List[CategoryTotalModel] = Field(alias="incomeByCategory")
    expense_by_category: List[CategoryTotalModel] = Field(alias="expenseByCategory")
    monthly: List[MonthBucketModel]

    model_config = ConfigDict(populate_by_name=True)


class MatchFeeRequest(BaseModel):
    amount: float = Field(gt=0)
    player_ids: Optional[List[str]] = Field(default=None, alias="playerIds")

    model_config = ConfigDict(populate_by_name=True)


class MatchFeeResponse(BaseModel):
    created: int
    charges: List[Dict[str, Any]]


class PaymentReferenceRequest(BaseModel):
    first_name: Optional[str] = Field(default=None, alias="firstName")
    last_name: Optional[str] = Field(default=None, alias="lastName")
    full_name: Optional[str] = Field(default=None, alias="fullName")
    phone: Optional[str] = None
    payment_type: str = Field(default="other", alias="paymentType")
    date: Optional[dt.date] = None

    model_config = ConfigDict(populate_by_name=True)


class PaymentReferenceResponse(BaseModel):
    reference: str


class ExtractReferencesRequest(BaseModel):
    text: str


class ExtractReferencesResponse(BaseModel):
    references: List[str]


@lru_cache(maxsize=1)
def store() -> DataStore:
    return DataStore()


def club_currency() -> str:
    return os.getenv("CLUB_CURRENCY", "GBP")


def _error_status(exc: Exception) -> int:
    if isinstance(exc, RuntimeError):
        return 502
    if isinstance(exc, ValueError) and str(exc) == NOT_FOUND:
        return 404
    return 400


@app.get("/health")
def health() -> dict:
    try:
        status = store().check_connection()
    except RuntimeError as exc:
        raise HTTPException(status_code=502, detail=str(exc)) from exc
    return status


# ----------------------------------------------------------------------
# Entity CRUD


@app.get("/api/entities/{entity}")
def list_entities(
    entity: str,
    sort: Optional[str] = None,
    limit: Optional[int] = None,
    offset: Optional[int] = None,
) -> List[Dict[str, Any]]:
    try:
        return store().list_entities(entity, sort=sort, limit=limit, offset=offset)
    except (LookupError, ValueError, RuntimeError) as exc:
        raise HTTPException(status_code=_error_status(exc), detail=str(exc)) from exc


@app.get("/api/entities/{entity}/{entity_id}")
def get_entity(entity: str, entity_id: str) -> Dict[str, Any]:
    try:
        return store().get_entity(entity, entity_id)
    except (LookupError, ValueError, RuntimeError) as exc:
        raise HTTPException(status_code=_error_status(exc), detail=str(exc)) from exc


@app.post("/api/entities/{entity}/filter")
def filter_entities(entity: str, payload: Optional[FilterRequest] = None) -> List[Dict[str, Any]]:
    request = payload or FilterRequest()
    try:
        return store().filter_entities(
            entity,
            request.query,
            sort=request.options.sort,
            limit=request.options.limit,
            offset=request.options.offset,
        )
    except (LookupError, ValueError, RuntimeError) as exc:
        raise HTTPException(status_code=_error_status(exc), detail=str(exc)) from exc


@app.post("/api/entities/{entity}/bulk", status_code=201)
def bulk_create_entities(entity: str, payload: List[Dict[str, Any]] = Body(...)) -> List[Dict[str, Any]]:
    try:
        return store().create_entities(entity, payload)
    except (LookupError, ValueError, RuntimeError) as exc:
        raise HTTPException(status_code=_error_status(exc), detail=str(exc)) from exc


@app.post("/api/entities/{entity}", status_code=201)
def create_entity(entity: str, payload: Dict[str, Any] = Body(...)) -> Dict[str, Any]:
    record = payload["data"] if isinstance(payload.get("data"), dict) else payload
    try:
        return store().create_entity(entity, record)
    except (LookupError, ValueError, RuntimeError) as exc:
        raise HTTPException(status_code=_error_status(exc), detail=str(exc)) from exc


@app.put("/api/entities/{entity}/{entity_id}")
def update_entity(entity: str, entity_id: str, payload: Dict[str, Any] = Body(...)) -> Dict[str, Any]:
    changes = payload["data"] if isinstance(payload.get("data"), dict) else payload
    try:
        return store().update_entity(entity, entity_id, changes)
    except (LookupError, ValueError, RuntimeError) as exc:
        raise HTTPException(status_code=_error_status(exc), detail=str(exc)) from exc


@app.delete("/api/entities/{entity}/{entity_id}")
def delete_entity(entity: str, entity_id: str) -> Dict[str, Any]:
    try:
        return store().delete_entity(entity, entity_id)
    except (LookupError, ValueError, RuntimeError) as exc:
        raise HTTPException(status_code=_error_status(exc), detail=str(exc)) from exc


# ----------------------------------------------------------------------
# Scoring


def _innings_model(card: InningsScorecard) -> InningsModel:
    return InningsModel(
        innings=card.innings,
        batsmen=[
            BatterModel(
                name=line.name,
                id=line.id,
                order=line.order,
                runs=line.runs,
                balls=line.balls,
                fours=line.fours,
                sixes=line.sixes,
                isOut=line.is_out,
                dismissal=line.dismissal,
                strikeRate=line.strike_rate,
            )
            for line in card.batters
        ],
        bowlers=[
            BowlerModel(
                name=line.name,
                id=line.id,
                order=line.order,
                overs=line.overs,
                legalBalls=line.legal_balls,
                runs=line.runs,
                wickets=line.wickets,
                maidens=line.maidens,
                wides=line.wides,
                noBalls=line.no_balls,
                dots=line.dots,
                economy=line.economy,
            )
            for line in card.bowlers
        ],
        fallOfWickets=[
            WicketFallModel(wicket=fall.wicket, score=fall.score, batsman=fall.batsman, overs=fall.overs)
            for fall in card.fall_of_wickets
        ],
        extras=ExtrasModel(
            wides=card.extras.wides,
            noBalls=card.extras.no_balls,
            byes=card.extras.byes,
            legByes=card.extras.leg_byes,
            penalty=card.extras.penalty,
            total=card.extras.total,
        ),
        totals=InningsTotalsModel(
            runs=card.totals.runs,
            wickets=card.totals.wickets,
            overs=card.totals.overs,
            legalBalls=card.totals.legal_balls,
            runRate=card.totals.run_rate,
        ),
        partnerships=[
            PartnershipModel(
                wicket=item.wicket,
                runs=item.runs,
                balls=item.balls,
                batters=item.batters,
                unbroken=item.unbroken,
            )
            for item in card.partnerships
        ],
    )


@app.get("/api/matches/{match_id}/scorecard", response_model=ScorecardResponse)
def match_scorecard(match_id: str, balls_per_over: int = Query(default=6, alias="ballsPerOver", ge=1)):
    try:
        balls = store().fetch_match_balls(match_id)
    except RuntimeError as exc:
        raise HTTPException(status_code=502, detail=str(exc)) from exc
    cards = build_match_scorecard(balls, balls_per_over)
    return ScorecardResponse(
        matchId=match_id,
        ballsPerOver=balls_per_over,
        innings=[_innings_model(card) for card in cards],
    )


@app.post("/api/scorecard", response_model=ScorecardResponse)
def scorecard(payload: ScorecardRequest):
    cards = build_match_scorecard(payload.balls, payload.balls_per_over)
    return ScorecardResponse(
        ballsPerOver=payload.balls_per_over,
        innings=[_innings_model(card) for card in cards],
    )


@app.post("/api/matches/{match_id}/sync-stats", response_model=SyncStatsResponse)
def sync_match_player_stats(match_id: str, payload: Optional[SyncStatsRequest] = None):
    request = payload or SyncStatsRequest()
    per_over = request.balls_per_over
    data = store()
    try:
        match = data.get_entity("TournamentMatch", match_id)
    except ValueError as exc:
        raise HTTPException(status_code=404, detail="Match not found") from exc
    except RuntimeError as exc:
        raise HTTPException(status_code=502, detail=str(exc)) from exc

    tournament_id = request.tournament_id or match.get("tournament_id")
    try:
        balls = data.fetch_match_balls(match_id)
        team_players = {str(row.get("id")): row for row in data.fetch_all("TeamPlayer")}
        tournament_players = (
            data.fetch_all("TournamentPlayer", {"tournament_id": tournament_id}) if tournament_id else []
        )
    except (ValueError, RuntimeError) as exc:
        raise HTTPException(status_code=_error_status(exc), detail=str(exc)) from exc

    figures = player_stats.match_player_stats(balls, per_over)
    if not figures:
        raise HTTPException(status_code=400, detail="No player figures recorded for this match")

    career_rows = 0
    tournament_rows = 0
    unmatched: List[str] = []
    try:
        for stats in figures.values():
            matched = False
            career = team_players.get(stats.player_id)
            if career is not None:
                data.update_entity("TeamPlayer", stats.player_id, player_stats.career_updates(career, stats, per_over))
                career_rows += 1
                matched = True
            entry = player_stats.find_tournament_player(tournament_players, stats)
            if entry is not None:
                data.update_entity(
                    "TournamentPlayer",
                    str(entry["id"]),
                    player_stats.tournament_updates(entry, stats, per_over),
                )
                tournament_rows += 1
                matched = True
            if not matched:
                unmatched.append(stats.name or stats.player_id)
    except (ValueError, RuntimeError) as exc:
        raise HTTPException(status_code=_error_status(exc), detail=str(exc)) from exc

    logger.info(
        "Synced stats for match %s: %d career rows, %d tournament rows",
        match_id,
        career_rows,
        tournament_rows,
    )
    return SyncStatsResponse(
        matchId=match_id,
        tournamentId=tournament_id,
        players=len(figures),
        teamPlayersUpdated=career_rows,
        tournamentPlayersUpdated=tournament_rows,
        unmatched=unmatched,
    )


@app.post("/api/players/{player_id}/recalculate-career")
def recalculate_career(player_id: str) -> Dict[str, Any]:
    data = store()
    try:
        player = data.get_entity("TeamPlayer", player_id)
        name = player.get("player_name")
        by_name = data.fetch_all("TournamentPlayer", {"player_name": name}) if name else []
        by_id = data.fetch_all("TournamentPlayer", {"player_id": player_id})
    except (ValueError, RuntimeError) as exc:
        raise HTTPException(status_code=_error_status(exc), detail=str(exc)) from exc

    rows = {str(row.get("id")): row for row in by_name + by_id}
    try:
        return data.update_entity("TeamPlayer", player_id, player_stats.career_from_tournaments(rows.values()))
    except (ValueError, RuntimeError) as exc:
        raise HTTPException(status_code=_error_status(exc), detail=str(exc)) from exc


# ----------------------------------------------------------------------
# Tournaments


@app.post("/api/tournaments/{tournament_id}/fixtures", response_model=FixtureResponse)
def tournament_fixtures(tournament_id: str, payload: Optional[FixtureRequest] = None):
    request = payload or FixtureRequest()
    data = store()
    try:
        tournament = data.fetch_tournament(tournament_id)
        teams = data.fetch_tournament_teams(tournament_id)
    except ValueError as exc:
        raise HTTPException(status_code=404, detail=str(exc)) from exc
    except RuntimeError as exc:
        raise HTTPException(status_code=502, detail=str(exc)) from exc

    try:
        plan = generate_fixtures(
            tournament,
            teams,
            start_date=request.start_date,
            matches_per_day=request.matches_per_day,
            venue=request.venue,
            shuffle=request.shuffle,
            home_and_away=request.home_and_away,
            seed=request.seed,
        )
    except ValueError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc

    fixtures = plan.fixtures
    if request.persist:
        try:
            fixtures = data.create_entities("TournamentMatch", plan.fixtures)
            for letter, team_ids in plan.groups.items():
                for team_id in team_ids:
                    data.update_entity("TournamentTeam", team_id, {"group_letter": letter})
        except (ValueError, RuntimeError) as exc:
            raise HTTPException(status_code=_error_status(exc), detail=str(exc)) from exc
        logger.info("Persisted %d fixtures for tournament %s", len(fixtures), tournament_id)

    return FixtureResponse(
        tournamentId=tournament_id,
        format=tournament.get("format") or "",
        expectedMatches=expected_match_count(
            tournament.get("format") or "",
            len(teams),
            home_and_away=request.home_and_away,
            num_groups=tournament.get("num_groups") or 2,
            teams_qualify_per_group=tournament.get("teams_qualify_per_group") or 2,
        ),
        fixtures=fixtures,
        groups=plan.groups,
        persisted=request.persist,
    )


@app.get("/api/tournaments/{tournament_id}/points-table", response_model=PointsTableResponse)
def points_table(tournament_id: str, persist: bool = Query(default=False)):
    data = store()
    try:
        tournament = data.fetch_tournament(tournament_id)
        teams = data.fetch_tournament_teams(tournament_id)
        matches = data.fetch_tournament_matches(tournament_id)
    except ValueError as exc:
        raise HTTPException(status_code=404, detail=str(exc)) from exc
    except RuntimeError as exc:
        raise HTTPException(status_code=502, detail=str(exc)) from exc

    profile = None
    if tournament.get("match_profile_id"):
        try:
            profile = data.get_entity("MatchProfile", tournament["match_profile_id"])
        except ValueError:
            logger.warning("Match profile %s not found; using default points", tournament["match_profile_id"])

    table = build_points_table(teams, matches, tournament, profile)

    if persist:
        try:
            for update in standing_updates(table):
                team_id = update.pop("id")
                data.update_entity("TournamentTeam", team_id, update)
        except (ValueError, RuntimeError) as exc:
            raise HTTPException(status_code=_error_status(exc), detail=str(exc)) from exc

    return PointsTableResponse(
        tournamentId=tournament_id,
        grouped=table.grouped,
        qualifyPerGroup=table.qualify_per_group,
        groups=[
            PointsGroupModel(
                name=name,
                teams=[
                    StandingModel(
                        id=team.id,
                        teamId=team.team_id,
                        teamName=team.team_name,
                        shortName=team.short_name,
                        groupLetter=team.group_letter,
                        played=team.played,
                        won=team.won,
                        lost=team.lost,
                        tied=team.tied,
                        noResult=team.no_result,
                        points=team.points,
                        runsScored=team.runs_scored,
                        oversFaced=team.overs_faced,
                        runsConceded=team.runs_conceded,
                        oversBowled=team.overs_bowled,
                        nrr=team.nrr,
                        qualified=team.qualified,
                    )
                    for team in standings
                ],
            )
            for name, standings in table.groups.items()
        ],
        persisted=persist,
    )


# ----------------------------------------------------------------------
# DLS


@app.post("/api/dls/target", response_model=DLSTargetResponse)
def dls_target(payload: DLSTargetRequest):
    try:
        result = dls.revised_target(
            payload.team1_score,
            dls.parse_overs(payload.team1_overs),
            dls.parse_overs(payload.team2_original_overs),
            dls.parse_overs(payload.team2_revised_overs),
            payload.team2_wickets_at_interruption,
            payload.team2_score_at_interruption,
        )
    except ValueError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc
    return DLSTargetResponse(
        target=result.target,
        parScore=result.par_score,
        resourceRatio=result.resource_ratio,
        team1Resources=result.team1_resources,
        team2RevisedResources=result.team2_resources,
    )


@app.post("/api/dls/situation", response_model=DLSSituationResponse)
def dls_situation(payload: DLSSituationRequest):
    try:
        situation = dls.dls_situation(
            payload.team1_score,
            dls.parse_overs(payload.team1_overs),
            payload.team2_score,
            dls.parse_overs(payload.team2_overs_used),
            payload.team2_wickets_lost,
            dls.parse_overs(payload.team2_total_overs),
            revised=payload.revised_target,
        )
    except ValueError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc
    return DLSSituationResponse(
        parScore=situation.par_score,
        target=situation.target,
        runsAhead=situation.runs_ahead,
        runsBehind=situation.runs_behind,
        team2Score=situation.team2_score,
        team2OversUsed=situation.team2_overs_used,
        team2WicketsLost=situation.team2_wickets_lost,
        isAbovePar=situation.is_above_par,
        isBelowPar=situation.is_below_par,
        isOnPar=situation.is_on_par,
        explanation=dls.explain(situation),
    )


# ----------------------------------------------------------------------
# Finance


@app.get("/api/finance/overview", response_model=FinanceOverviewResponse)
def finance_overview(as_of: Optional[dt.date] = Query(default=None, alias="asOf")):
    try:
        transactions = store().fetch_all("Transaction")
        memberships = store().fetch_all("Membership")
    except RuntimeError as exc:
        raise HTTPException(status_code=502, detail=str(exc)) from exc
    overview = finance.finance_overview(transactions, memberships, today=as_of)
    currency = club_currency()
    return FinanceOverviewResponse(
        currency=currency,
        balance_display=finance.format_currency(overview["balance"], currency),
        **overview,
    )


@app.get("/api/finance/year-over-year", response_model=YearOverYearResponse)
def finance_year_over_year(
    year: Optional[int] = Query(default=None),
    compare: Optional[int] = Query(default=None),
):
    try:
        transactions = store().fetch_all("Transaction")
        payments = store().fetch_all("PlayerPayment")
    except RuntimeError as exc:
        raise HTTPException(status_code=502, detail=str(exc)) from exc
    return YearOverYearResponse(**finance.year_over_year(transactions, payments, year, compare))


@app.get("/api/finance/player-balances", response_model=PlayerBalancesResponse)
def finance_player_balances(charge_type: Optional[str] = Query(default=None, alias="chargeType")):
    try:
        players = store().fetch_all("TeamPlayer", sort="player_name")
        charges = store().fetch_all("PlayerCharge")
        payments = store().fetch_all("PlayerPayment")
    except RuntimeError as exc:
        raise HTTPException(status_code=502, detail=str(exc)) from exc
    return PlayerBalancesResponse(**finance.player_balances(players, charges, payments, charge_type))


@app.get("/api/finance/report", response_model=FinancialReportResponse)
def finance_report(
    period: str = Query(default="thisYear"),
    as_of: Optional[dt.date] = Query(default=None, alias="asOf"),
):
    try:
        transactions = store().fetch_all("Transaction")
        charges = store().fetch_all("PlayerCharge")
        payments = store().fetch_all("PlayerPayment")
        players = store().fetch_all("TeamPlayer")
    except RuntimeError as exc:
        raise HTTPException(status_code=502, detail=str(exc)) from exc
    try:
        report = finance.financial_report(transactions, charges, payments, players, period, today=as_of)
    except ValueError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc
    return FinancialReportResponse(**report)


@app.post("/api/finance/match-fees/{match_id}", response_model=MatchFeeResponse, status_code=201)
def create_match_fees(match_id: str, payload: MatchFeeRequest):
    data = store()
    try:
        match = data.get_entity("TournamentMatch", match_id)
        players = data.fetch_all("TeamPlayer", sort="player_name")
        existing = data.fetch_all("PlayerCharge", {"reference_id": match_id})
    except ValueError as exc:
        raise HTTPException(status_code=404, detail="Match not found") from exc
    except RuntimeError as exc:
        raise HTTPException(status_code=502, detail=str(exc)) from exc

    if payload.player_ids is not None:
        wanted = set(payload.player_ids)
        players = [player for player in players if str(player.get("id")) in wanted]

    try:
        rows = finance.match_fee_charges(match, players, existing, payload.amount)
        created = data.create_entities("PlayerCharge", rows) if rows else []
    except (ValueError, RuntimeError) as exc:
        raise HTTPException(status_code=_error_status(exc), detail=str(exc)) from exc
    return MatchFeeResponse(created=len(created), charges=created)


# ----------------------------------------------------------------------
# Payments


@app.post("/api/payments/reference", response_model=PaymentReferenceResponse)
def payment_reference(payload: PaymentReferenceRequest):
    first_name, last_name = payload.first_name, payload.last_name
    if not first_name and payload.full_name:
        first_name, parsed_last = finance.parse_full_name(payload.full_name)
        last_name = last_name or parsed_last
    reference = finance.generate_payment_reference(
        first_name,
        last_name,
        payload.phone,
        payload.payment_type,
        on=payload.date,
    )
    return PaymentReferenceResponse(reference=reference)


@app.post("/api/payments/extract-references", response_model=ExtractReferencesResponse)
def extract_payment_references(payload: ExtractReferencesRequest):
    return ExtractReferencesResponse(references=finance.extract_references(payload.text))
