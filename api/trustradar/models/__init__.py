from .base import Base
from .endpoint import Endpoint, EndpointTest, TrustScore
from .evaluation import AccuracyCategory, Discrepancy, Evaluation, Prediction, PredictionBasis
from .evaluator import Evaluator, ReputationSnapshot
from .health_report import AgentHealthReport, HealthStatus

__all__ = [
    "Base",
    "Endpoint",
    "EndpointTest",
    "TrustScore",
    "AccuracyCategory",
    "Discrepancy",
    "Evaluation",
    "Prediction",
    "PredictionBasis",
    "Evaluator",
    "ReputationSnapshot",
    "AgentHealthReport",
    "HealthStatus",
]
