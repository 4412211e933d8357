"""Fund Screening MCP Server.

Screen and rank mutual funds with the 4433 rule, a configurable 13-point
check, and a composite 0-100 score, over data from the fund research backend.
"""

__version__ = "0.1.0"

from .core.evaluation import assess, evaluate_funds, rank_funds
from .core.models import Fund, ScreeningCriteria
from .core.scoring import is_4433, score, score_tier, screen

__all__ = [
    "Fund",
    "ScreeningCriteria",
    "assess",
    "evaluate_funds",
    "is_4433",
    "rank_funds",
    "score",
    "score_tier",
    "screen",
]
