"""Core cricket club domain logic reused by the API."""

from .dls import DLSSituation, RevisedTarget
from .fixtures import FixturePlan, generate_fixtures
from .loader import DataStore
from .player_stats import PlayerMatchStats, match_player_stats
from .scorecard import InningsScorecard, build_innings, build_match_scorecard
from .standings import PointsTable, TeamStanding, build_points_table

__all__ = [
    "DataStore",
    "DLSSituation",
    "RevisedTarget",
    "FixturePlan",
    "generate_fixtures",
    "PlayerMatchStats",
    "match_player_stats",
    "InningsScorecard",
    "build_innings",
    "build_match_scorecard",
    "PointsTable",
    "TeamStanding",
    "build_points_table",
]
