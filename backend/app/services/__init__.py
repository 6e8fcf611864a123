"""Business services."""

from app.services.analyzer import MultiTimeframeAnalyzer
from app.services.outcome_verifier import OutcomeVerifier
from app.services.scheduler import AnalysisScheduler

__all__ = [
    "MultiTimeframeAnalyzer",
    "OutcomeVerifier",
    "AnalysisScheduler",
]
