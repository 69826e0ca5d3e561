"""
Shared math helpers: distances, step functions, decay and similarity measures.
"""

import math
from datetime import datetime, timezone
from typing import Dict, Iterable, List, Optional, Sequence, Tuple

import numpy as np

from .constants import (
    EARTH_RADIUS_KM,
    GEOGRAPHIC_DEFAULT,
    GEOGRAPHIC_STEPS,
    TIME_DECAY_DEFAULT,
    TIME_DECAY_STEPS,
)


def clamp(value: float, low: float = 0.0, high: float = 1.0) -> float:
    if value is None or math.isnan(value):
        return low
    return max(low, min(high, value))


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def ensure_utc(value: datetime) -> datetime:
    """Treat naive datetimes as UTC."""
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


def days_between(earlier: datetime, now: datetime) -> float:
    return (ensure_utc(now) - ensure_utc(earlier)).total_seconds() / 86400.0


def haversine_km(lat1: float, lon1: float, lat2: float, lon2: float) -> float:
    """Great-circle distance between two coordinates in kilometres."""
    d_lat = math.radians(lat2 - lat1)
    d_lon = math.radians(lon2 - lon1)
    a = (
        math.sin(d_lat / 2) ** 2
        + math.cos(math.radians(lat1)) * math.cos(math.radians(lat2)) * math.sin(d_lon / 2) ** 2
    )
    c = 2 * math.atan2(math.sqrt(a), math.sqrt(1 - a))
    return EARTH_RADIUS_KM * c


def step_below(value: float, steps: Sequence[Tuple[float, float]], default: float) -> float:
    """First score whose bound is strictly greater than value."""
    for bound, score in steps:
        if value < bound:
            return score
    return default


def step_at_most(value: float, steps: Sequence[Tuple[float, float]], default: float) -> float:
    """First score whose bound is greater than or equal to value."""
    for bound, score in steps:
        if value <= bound:
            return score
    return default


def geographic_score(distance_km: float) -> float:
    return step_below(distance_km, GEOGRAPHIC_STEPS, GEOGRAPHIC_DEFAULT)


def time_decay_factor(days_since: float) -> float:
    return step_at_most(days_since, TIME_DECAY_STEPS, TIME_DECAY_DEFAULT)


def jaccard(a: Iterable[str], b: Iterable[str]) -> float:
    set_a, set_b = set(a), set(b)
    union = set_a | set_b
    if not union:
        return 0.0
    return len(set_a & set_b) / len(union)


def cosine_similarity(v1: Sequence[float], v2: Sequence[float]) -> float:
    """Cosine of two dense vectors; 0 for mismatched lengths or zero vectors."""
    a = np.asarray(v1, dtype=float)
    b = np.asarray(v2, dtype=float)
    if a.shape != b.shape or a.size == 0:
        return 0.0
    norm = np.linalg.norm(a) * np.linalg.norm(b)
    if norm == 0:
        return 0.0
    return float(np.dot(a, b) / norm)


def sparse_cosine_similarity(v1: Dict[str, float], v2: Dict[str, float]) -> float:
    """Cosine over the union of keys of two sparse maps."""
    keys: List[str] = sorted(set(v1) | set(v2))
    if not keys:
        return 0.0
    return cosine_similarity([v1.get(k, 0.0) for k in keys], [v2.get(k, 0.0) for k in keys])


def distance_between(loc1, loc2) -> Optional[float]:
    if loc1 is None or loc2 is None:
        return None
    return haversine_km(loc1.latitude, loc1.longitude, loc2.latitude, loc2.longitude)
