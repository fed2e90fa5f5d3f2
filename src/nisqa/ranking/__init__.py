from nisqa.ranking.client import HttpRankingService, RankingService
from nisqa.ranking.criteria import CRITERIA, attach_weights, build_matrix
from nisqa.ranking.methods import McdaMethod, list_methods, resolve_method
from nisqa.ranking.pipeline import RankingPipeline
from nisqa.ranking.types import (
    PerformanceMatrix,
    PerformanceRow,
    RankedResult,
    RankingCriterion,
    RankingJob,
    RankingPoll,
)

__all__ = [
    "CRITERIA",
    "HttpRankingService",
    "McdaMethod",
    "PerformanceMatrix",
    "PerformanceRow",
    "RankedResult",
    "RankingCriterion",
    "RankingJob",
    "RankingPipeline",
    "RankingPoll",
    "RankingService",
    "attach_weights",
    "build_matrix",
    "list_methods",
    "resolve_method",
]
