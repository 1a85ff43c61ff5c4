from brandpulse.models.brand import Brand, BrandCompetitor
from brandpulse.models.collector_result import CollectorResult
from brandpulse.models.score import Score

__all__ = [
    "Brand",
    "BrandCompetitor",
    "CollectorResult",
    "Score",
]
