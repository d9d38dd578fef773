"""Fixed-width bucketing of heat history for charting.

Buckets are ``bucket_hours`` wide and aligned to multiples of that width since
the epoch. They span from the bucket containing ``now - hours`` up to the one
containing ``now``, so empty buckets are still reported (as zeros).
"""
from __future__ import annotations

import math
from collections import defaultdict
from collections.abc import Iterable
from datetime import datetime, timedelta, timezone

from newsheat.config import DEFAULT_BUCKET_HOURS, DEFAULT_HOURS, MAX_BUCKET_HOURS, MAX_HOURS
from newsheat.models import ALL_CATEGORIES, GENERAL_CATEGORY, HistoryObservation, TimelinePoint


def clamp_int(value, lo: int, hi: int, default: int) -> int:
    """Coerce to int within [lo, hi]; missing, zero, NaN or junk values take ``default``."""
    try:
        number = float(value)
    except (TypeError, ValueError):
        number = 0.0
    except OverflowError:
        number = math.inf if value > 0 else -math.inf
    if not number or math.isnan(number):
        number = default
    return int(max(lo, min(hi, number)))


def resolve_window(hours, bucket_hours, category) -> tuple[int, int, str]:
    return (
        clamp_int(hours, 1, MAX_HOURS, DEFAULT_HOURS),
        clamp_int(bucket_hours, 1, MAX_BUCKET_HOURS, DEFAULT_BUCKET_HOURS),
        str(category or ALL_CATEGORIES).upper(),
    )


def bucket_observations(
    observations: Iterable[HistoryObservation],
    now: datetime,
    hours: int,
    bucket_hours: int,
    category: str = ALL_CATEGORIES,
) -> list[TimelinePoint]:
    bucket_s = bucket_hours * 3600
    now_s = now.timestamp()
    aligned_start = (now_s - hours * 3600) // bucket_s * bucket_s

    starts: list[float] = []
    ts = aligned_start
    while ts <= now_s:
        starts.append(ts)
        ts += bucket_s

    heat_sum: dict[float, float] = defaultdict(float)
    article_sum: dict[float, int] = defaultdict(int)
    observed: dict[float, int] = defaultdict(int)
    category_heat: dict[float, dict[str, float]] = defaultdict(lambda: defaultdict(float))
    category_obs: dict[float, dict[str, int]] = defaultdict(lambda: defaultdict(int))
    valid = set(starts)

    for obs in observations:
        obs_category = (obs.category or GENERAL_CATEGORY).upper()
        if category != ALL_CATEGORIES and obs_category != category:
            continue
        obs_s = obs.timestamp.timestamp()
        if obs_s < aligned_start:
            continue
        start = obs_s // bucket_s * bucket_s
        if start not in valid:
            continue
        heat_sum[start] += obs.heat_score
        article_sum[start] += obs.article_count
        observed[start] += 1
        category_heat[start][obs_category] += obs.heat_score
        category_obs[start][obs_category] += 1

    points: list[TimelinePoint] = []
    for start in starts:
        count = observed.get(start, 0)
        points.append(TimelinePoint(
            bucket_start=datetime.fromtimestamp(start, tz=timezone.utc),
            bucket_end=datetime.fromtimestamp(start, tz=timezone.utc) + timedelta(hours=bucket_hours),
            avg_heat=round(heat_sum[start] / count, 2) if count else 0.0,
            article_count=article_sum.get(start, 0),
            cluster_observations=count,
            by_category={
                cat: round(total / category_obs[start][cat], 2)
                for cat, total in category_heat.get(start, {}).items()
            },
        ))
    return points
