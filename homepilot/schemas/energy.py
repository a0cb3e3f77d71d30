"""
Energy schemas - insights and saving suggestions.
"""

from typing import List, Optional

from pydantic import BaseModel


class EnergyInsightsOut(BaseModel):
    daily_average: float
    weekly_average: float
    trend: str
    solar_production: float
    total_samples: int
    peak_hour: Optional[int] = None
    peak_power: float = 0.0
    night_average: Optional[float] = None


class EnergySuggestionOut(BaseModel):
    type: str
    priority: str
    title: str
    description: str
    estimated_savings: float = 0.0
    entity_ids: List[str] = []
