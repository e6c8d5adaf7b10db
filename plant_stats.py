"""
plant_stats.py — Journal statistics for the home and profile screens.

All figures are derived in one pass over the collection handed in; nothing
is cached, so the numbers always match the store's current contents.

- total_plants          — collection size
- healthy_plants        — status "healthy" (any case) or score >= 80
- plants_needing_care   — status "poor" (any case) or score < 60
- plants_needing_water  — never watered, or watered 7+ days ago
- average_health_score  — mean score rounded half-up; 0 when empty
"""

import math
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Dict, Iterable, List, Optional

from models import SavedPlant, utc_now

HEALTHY_SCORE = 80
NEEDS_CARE_SCORE = 60
WATERING_INTERVAL = timedelta(days=7)


@dataclass
class PlantStats:
    total_plants: int = 0
    healthy_plants: int = 0
    plants_needing_care: int = 0
    plants_needing_water: int = 0
    average_health_score: int = 0

    def to_dict(self) -> Dict[str, int]:
        return {
            'totalPlants': self.total_plants,
            'healthyPlants': self.healthy_plants,
            'plantsNeedingCare': self.plants_needing_care,
            'plantsNeedingWater': self.plants_needing_water,
            'averageHealthScore': self.average_health_score,
        }


def is_healthy(plant: SavedPlant) -> bool:
    return plant.health_status.lower() == 'healthy' or plant.health_score >= HEALTHY_SCORE


def needs_care(plant: SavedPlant) -> bool:
    return plant.health_status.lower() == 'poor' or plant.health_score < NEEDS_CARE_SCORE


def needs_water(
    plant: SavedPlant,
    now: Optional[datetime] = None,
    interval: timedelta = WATERING_INTERVAL
) -> bool:
    """True when the plant was never watered or not within `interval`."""
    if plant.last_watered is None:
        return True
    now = now or utc_now()
    return now - plant.last_watered >= interval


def days_since_watered(plant: SavedPlant, now: Optional[datetime] = None) -> Optional[int]:
    """Whole days since last watering, or None if never watered."""
    if plant.last_watered is None:
        return None
    now = now or utc_now()
    return (now - plant.last_watered).days


def compute_stats(
    plants: Iterable[SavedPlant],
    now: Optional[datetime] = None,
    watering_interval: timedelta = WATERING_INTERVAL
) -> PlantStats:
    """
    Compute journal statistics.

    Args:
        plants: Current collection (any order).
        now: Reference instant for the watering check.
        watering_interval: Age after which a watering is considered stale.

    Returns:
        PlantStats; all zeros for an empty collection.
    """
    now = now or utc_now()
    stats = PlantStats()
    score_sum = 0

    for plant in plants:
        stats.total_plants += 1
        score_sum += plant.health_score
        if is_healthy(plant):
            stats.healthy_plants += 1
        if needs_care(plant):
            stats.plants_needing_care += 1
        if needs_water(plant, now, watering_interval):
            stats.plants_needing_water += 1

    if stats.total_plants:
        stats.average_health_score = int(math.floor(score_sum / stats.total_plants + 0.5))
    return stats


def filter_needing_water(
    plants: Iterable[SavedPlant],
    now: Optional[datetime] = None,
    watering_interval: timedelta = WATERING_INTERVAL
) -> List[SavedPlant]:
    """Plants due for watering, in collection order."""
    now = now or utc_now()
    return [p for p in plants if needs_water(p, now, watering_interval)]
