"""
Services package for the festival results engine.
"""

from .base import BaseService
from .counter import CounterService
from .leaderboard import LeaderboardService
from .reconciliation import ScoreReconciliationService
from .registry import RegistryService
from .result_queries import ResultQueryService
from .results import ResultService
from .score_ledger import ScoreLedger

__all__ = [
    'BaseService', 'CounterService', 'LeaderboardService', 'RegistryService',
    'ResultQueryService', 'ResultService', 'ScoreLedger', 'ScoreReconciliationService'
]
