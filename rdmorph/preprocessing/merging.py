"""Join geometry and outcome records into merged units."""

from __future__ import annotations

import logging
from typing import Iterable, Optional, Sequence

import numpy as np
from shapely.geometry import Polygon

from rdmorph.preprocessing.records import GeometryRecord, MergedUnit, OutcomeRecord

logger = logging.getLogger(__name__)


def polygon_centroid(
    polygon: Sequence[tuple[float, float]],
) -> Optional[tuple[float, float]]:
    """Planar centroid of a ``(lat, lon)`` ring, returned as ``(lon, lat)``.

    Rings with fewer than three distinct vertices, or with zero area, fall
    back to the vertex mean. An empty ring has no centroid.
    """
    coords = [(float(lon), float(lat)) for lat, lon in polygon]
    if not coords:
        return None
    if len(coords) > 1 and coords[0] == coords[-1]:
        coords = coords[:-1]

    if len(set(coords)) >= 3:
        centroid = Polygon(coords).centroid
        if not centroid.is_empty and np.isfinite([centroid.x, centroid.y]).all():
            return (float(centroid.x), float(centroid.y))

    logger.debug("Degenerate polygon with %d vertices, using vertex mean", len(coords))
    lon, lat = np.asarray(coords, dtype=float).mean(axis=0)
    return (float(lon), float(lat))


def merge(
    geometries: Iterable[GeometryRecord],
    outcomes: Iterable[OutcomeRecord],
) -> list[MergedUnit]:
    """One merged unit per geometry record, in geometry order.

    Units with no matching outcome record keep null outcome fields and take
    their inside flag from the geometry's treatment flag.
    """
    by_unit = {o.unit_id: o for o in outcomes}

    merged = []
    n_missing = 0
    for geo in geometries:
        outcome = by_unit.get(geo.unit_id)
        centroid = polygon_centroid(geo.polygon)
        if outcome is None:
            n_missing += 1
        merged.append(
            MergedUnit(
                unit_id=geo.unit_id,
                treated=geo.treated,
                polygon=tuple(geo.polygon),
                centroid_lon=centroid[0] if centroid else None,
                centroid_lat=centroid[1] if centroid else None,
                distance=outcome.distance if outcome else None,
                is_inside=outcome.is_inside if outcome else geo.treated == 1,
                consumption=outcome.consumption if outcome else None,
                stunting=outcome.stunting if outcome else None,
                roads=outcome.roads if outcome else None,
            )
        )

    if n_missing:
        logger.info("%d of %d units have no outcome record", n_missing, len(merged))
    return merged
