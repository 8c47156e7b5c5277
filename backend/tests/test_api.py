from __future__ import annotations

from typing import Any, Dict

import pytest
from fastapi.testclient import TestClient

from app import main


@pytest.fixture
def client(tmp_path, monkeypatch: pytest.MonkeyPatch):
    for name in ("SUPABASE_URL", "SUPABASE_SERVICE_ROLE_KEY", "SUPABASE_SERVICE_KEY", "SUPABASE_ANON_KEY"):
        monkeypatch.delenv(name, raising=False)
    monkeypatch.setenv("CLUB_DATA_DIR", str(tmp_path))
    monkeypatch.delenv("CLUB_CURRENCY", raising=False)
    main.store.cache_clear()
    yield TestClient(main.app)
    main.store.cache_clear()


def _create(client: TestClient, entity: str, data: Dict[str, Any]) -> Dict[str, Any]:
    response = client.post(f"/api/entities/{entity}", json={"data": data})
    assert response.status_code == 201, response.text
    return response.json()


def test_health_reports_local_backend(client: TestClient) -> None:
    response = client.get("/health")
    assert response.status_code == 200
    assert response.json()["backend"] == "local"


def test_entity_crud(client: TestClient) -> None:
    team = _create(client, "Team", {"name": "Firsts", "short_name": "1st"})

    listed = client.get("/api/entities/Team").json()
    assert [row["name"] for row in listed] == ["Firsts"]
    assert client.get(f"/api/entities/Team/{team['id']}").json()["short_name"] == "1st"

    updated = client.put(f"/api/entities/Team/{team['id']}", json={"name": "1st XI"})
    assert updated.status_code == 200
    assert updated.json()["name"] == "1st XI"

    deleted = client.delete(f"/api/entities/Team/{team['id']}")
    assert deleted.json()["deleted"] is True
    assert client.get(f"/api/entities/Team/{team['id']}").status_code == 404


def test_unknown_entity_and_bad_payload(client: TestClient) -> None:
    assert client.get("/api/entities/Password").status_code == 400
    response = client.post("/api/entities/Team", json={"colour": "green"})
    assert response.status_code == 400
    assert "Allowed columns" in response.json()["detail"]


def test_bulk_create_and_filter(client: TestClient) -> None:
    rows = [
        {"tournament_id": "t1", "status": "completed", "match_number": 2},
        {"tournament_id": "t1", "status": "scheduled", "match_number": 1},
        {"tournament_id": "t2", "status": "completed", "match_number": 3},
    ]
    created = client.post("/api/entities/TournamentMatch/bulk", json=rows)
    assert created.status_code == 201
    assert len(created.json()) == 3

    response = client.post(
        "/api/entities/TournamentMatch/filter",
        json={"query": {"tournament_id": "t1"}, "options": {"sort": "-match_number", "limit": 5}},
    )
    assert [row["match_number"] for row in response.json()] == [2, 1]


def test_scorecard_from_posted_balls(client: TestClient) -> None:
    balls = [
        {"innings": 1, "over_number": 0, "ball_number": 1, "batsman_name": "Ann", "bowler_name": "Bob", "runs": 4},
        {"innings": 1, "over_number": 0, "ball_number": 2, "batsman_name": "Ann", "bowler_name": "Bob",
         "extras": 1, "extra_type": "wide"},
        {"innings": 1, "over_number": 0, "ball_number": 3, "batsman_name": "Ann", "bowler_name": "Bob",
         "is_wicket": True, "wicket_type": "lbw"},
    ]

    body = client.post("/api/scorecard", json={"balls": balls}).json()

    innings = body["innings"][0]
    assert body["ballsPerOver"] == 6
    assert innings["totals"] == {"runs": 5, "wickets": 1, "overs": "0.2", "legalBalls": 2, "runRate": 15.0}
    assert innings["batsmen"][0]["dismissal"] == "lbw b Bob"
    assert innings["batsmen"][0]["isOut"] is True
    assert innings["extras"]["wides"] == 1


def test_match_scorecard_reads_stored_balls(client: TestClient) -> None:
    client.post(
        "/api/entities/BallByBall/bulk",
        json=[
            {"match_id": "m1", "innings": 1, "over_number": 0, "ball_number": 1, "batsman_name": "Ann",
             "bowler_name": "Bob", "runs": 2},
            {"match_id": "m2", "innings": 1, "over_number": 0, "ball_number": 1, "batsman_name": "Cat",
             "bowler_name": "Dan", "runs": 6},
        ],
    )

    body = client.get("/api/matches/m1/scorecard").json()
    assert body["matchId"] == "m1"
    assert body["innings"][0]["totals"]["runs"] == 2


def _league(client: TestClient) -> Dict[str, Any]:
    tournament = _create(
        client,
        "Tournament",
        {"name": "Summer League", "format": "league", "start_date": "2025-06-01", "overs_per_match": 20},
    )
    for seed, name in enumerate(("Albion", "Borough", "County", "Downs"), start=1):
        _create(client, "TournamentTeam", {"tournament_id": tournament["id"], "team_name": name, "seed": seed})
    return tournament


def test_fixtures_and_points_table(client: TestClient) -> None:
    tournament = _league(client)

    response = client.post(f"/api/tournaments/{tournament['id']}/fixtures", json={"persist": True})
    assert response.status_code == 200
    body = response.json()
    assert body["expectedMatches"] == 6
    assert body["persisted"] is True
    assert len(body["fixtures"]) == 6
    assert all(fixture.get("id") for fixture in body["fixtures"])

    first = body["fixtures"][0]
    client.put(
        f"/api/entities/TournamentMatch/{first['id']}",
        json={
            "status": "completed",
            "team1_score": "140/6",
            "team1_overs": "20.0",
            "team2_score": "120/9",
            "team2_overs": "20.0",
            "winner_id": first["team1_id"],
        },
    )

    table = client.get(f"/api/tournaments/{tournament['id']}/points-table", params={"persist": True}).json()
    assert table["grouped"] is False
    league = table["groups"][0]
    assert league["name"] == "League"
    assert league["teams"][0]["id"] == first["team1_id"]
    assert league["teams"][0]["points"] == 2
    assert league["teams"][0]["nrr"] == 1.0

    stored = client.get(f"/api/entities/TournamentTeam/{first['team1_id']}").json()
    assert stored["matches_won"] == 1
    assert stored["points"] == 2


def test_fixtures_for_missing_tournament(client: TestClient) -> None:
    assert client.post("/api/tournaments/nope/fixtures").status_code == 404
    assert client.get("/api/tournaments/nope/points-table").status_code == 404


def test_dls_endpoints(client: TestClient) -> None:
    target = client.post(
        "/api/dls/target",
        json={"team1Score": 250, "team1Overs": 50, "team2OriginalOvers": 50, "team2RevisedOvers": "30.0"},
    ).json()
    assert target["target"] == 189
    assert target["parScore"] == 188

    situation = client.post(
        "/api/dls/situation",
        json={
            "team1Score": 250,
            "team1Overs": 50,
            "team2Score": 120,
            "team2OversUsed": 20,
            "team2WicketsLost": 2,
            "team2TotalOvers": 50,
        },
    ).json()
    assert situation["parScore"] == 80
    assert situation["isAbovePar"] is True
    assert situation["explanation"] == "40 runs ahead of DLS par"

    bad = client.post(
        "/api/dls/target",
        json={"team1Score": 100, "team1Overs": 0, "team2OriginalOvers": 50, "team2RevisedOvers": 20},
    )
    assert bad.status_code == 400


def test_finance_overview_and_report(client: TestClient) -> None:
    _create(client, "Transaction", {"type": "Income", "status": "Completed", "amount": 120, "date": "2025-06-02",
                                    "category_name": "Subscriptions"})
    _create(client, "Transaction", {"type": "Expense", "status": "Completed", "amount": 20.5, "date": "2025-06-03",
                                    "category_name": "Balls"})

    overview = client.get("/api/finance/overview", params={"asOf": "2025-06-15"}).json()
    assert overview["currency"] == "GBP"
    assert overview["balance"] == 99.5
    assert overview["balanceDisplay"] == "£99.50"
    assert overview["thisMonthIncome"] == 120

    report = client.get("/api/finance/report", params={"period": "thisMonth", "asOf": "2025-06-15"}).json()
    assert report["net"] == 99.5
    assert report["start"] == "2025-06-01"

    assert client.get("/api/finance/report", params={"period": "decade"}).status_code == 400


def test_match_fees_and_balances(client: TestClient) -> None:
    ann = _create(client, "TeamPlayer", {"player_name": "Ann Able"})
    _create(client, "TeamPlayer", {"player_name": "Ben Baker"})
    match = _create(client, "TournamentMatch", {"team1_name": "Firsts", "team2_name": "Visitors",
                                                "match_date": "2025-06-14"})

    first = client.post(f"/api/finance/match-fees/{match['id']}", json={"amount": 8})
    assert first.status_code == 201
    assert first.json()["created"] == 2
    again = client.post(f"/api/finance/match-fees/{match['id']}", json={"amount": 8})
    assert again.json()["created"] == 0

    _create(client, "PlayerPayment", {"player_id": ann["id"], "amount": 8, "payment_date": "2025-06-14"})

    balances = client.get("/api/finance/player-balances", params={"chargeType": "match_fee"}).json()
    assert balances["totalOwed"] == 8
    assert balances["playersOwing"] == 1
    assert balances["players"][0]["name"] == "Ben Baker"

    assert client.post("/api/finance/match-fees/missing", json={"amount": 8}).status_code == 404


def test_payment_reference_endpoints(client: TestClient) -> None:
    reference = client.post(
        "/api/payments/reference",
        json={"fullName": "John Doe", "phone": "07700 901234", "paymentType": "registration", "date": "2024-11-26"},
    ).json()
    assert reference == {"reference": "JD1234REG26112024"}

    found = client.post("/api/payments/extract-references", json={"text": "ref jd1234reg26112024 thanks"}).json()
    assert found == {"references": ["JD1234REG26112024"]}


def test_sync_match_stats_updates_career_and_tournament_rows(client: TestClient) -> None:
    ann = _create(client, "TeamPlayer", {"player_name": "Ann Able", "matches_played": 3, "runs_scored": 40})
    entry = _create(client, "TournamentPlayer", {"tournament_id": "t1", "player_name": "Ann Able"})
    match = _create(client, "TournamentMatch", {"tournament_id": "t1", "team1_name": "Firsts"})
    client.post(
        "/api/entities/BallByBall/bulk",
        json=[
            {"match_id": match["id"], "innings": 1, "over_number": 0, "ball_number": number,
             "batsman_id": ann["id"], "batsman_name": "Ann Able", "bowler_id": "visitor-1",
             "bowler_name": "Opposition Bowler", "runs": runs}
            for number, runs in ((1, 4), (2, 1))
        ],
    )

    response = client.post(f"/api/matches/{match['id']}/sync-stats")

    assert response.status_code == 200, response.text
    body = response.json()
    assert body["tournamentId"] == "t1"
    assert (body["players"], body["teamPlayersUpdated"], body["tournamentPlayersUpdated"]) == (2, 1, 1)
    assert body["unmatched"] == ["Opposition Bowler"]

    career = client.get(f"/api/entities/TeamPlayer/{ann['id']}").json()
    assert (career["matches_played"], career["runs_scored"], career["not_outs"], career["highest_score"]) == (4, 45, 1, 5)
    tournament = client.get(f"/api/entities/TournamentPlayer/{entry['id']}").json()
    assert (tournament["runs_scored"], tournament["strike_rate"], tournament["batting_avg"]) == (5, 250.0, 0.0)


def test_sync_match_stats_errors(client: TestClient) -> None:
    assert client.post("/api/matches/missing/sync-stats").status_code == 404

    match = _create(client, "TournamentMatch", {"team1_name": "Firsts"})
    response = client.post(f"/api/matches/{match['id']}/sync-stats")
    assert response.status_code == 400
    assert response.json()["detail"] == "No player figures recorded for this match"


def test_recalculate_career_from_tournament_rows(client: TestClient) -> None:
    ann = _create(client, "TeamPlayer", {"player_name": "Ann Able"})
    _create(client, "TournamentPlayer", {"tournament_id": "t1", "player_name": "Ann Able", "matches_played": 3,
                                         "runs_scored": 60, "highest_score": 41, "best_bowling": "2/18"})
    _create(client, "TournamentPlayer", {"tournament_id": "t2", "player_id": ann["id"], "player_name": "A. Able",
                                         "matches_played": 1, "runs_scored": 12, "highest_score": 12})
    _create(client, "TournamentPlayer", {"tournament_id": "t1", "player_name": "Ben Baker", "runs_scored": 99})

    response = client.post(f"/api/players/{ann['id']}/recalculate-career")

    assert response.status_code == 200, response.text
    body = response.json()
    assert (body["matches_played"], body["runs_scored"], body["highest_score"], body["best_bowling"]) == (4, 72, 41, "2/18")
    assert client.post("/api/players/missing/recalculate-career").status_code == 404
