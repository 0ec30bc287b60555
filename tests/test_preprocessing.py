"""Tests for loading, merging and scatter projection."""

import numpy as np
import pandas as pd
import pytest

from rdmorph.preprocessing.data_loader import (
    generate_synthetic_units,
    geometries_from_frame,
    load_dataset,
    load_default_units,
    load_units,
    outcomes_from_frame,
)
from rdmorph.preprocessing.merging import merge, polygon_centroid
from rdmorph.preprocessing.records import GeometryRecord, MergedUnit, OutcomeRecord
from rdmorph.preprocessing.scatter import flip_distance, project, project_all, scale_outcome
from rdmorph.utils.types import Outcome


def _unit(unit_id=1, distance=10.0, is_inside=True, **outcomes):
    return MergedUnit(
        unit_id=unit_id,
        treated=int(is_inside),
        polygon=((0.0, 0.0), (0.0, 1.0), (1.0, 1.0), (1.0, 0.0)),
        centroid_lon=0.5,
        centroid_lat=0.5,
        distance=distance,
        is_inside=is_inside,
        **outcomes,
    )


@pytest.fixture(scope="module")
def units():
    """Noisy synthetic districts with missing cells."""
    return load_units(n=300, seed=0)


# ── Data loader ────────────────────────────────────────────────────────────────

class TestSyntheticData:
    def test_returns_dataframes(self):
        polygons, outcomes = generate_synthetic_units(n=50, seed=0)
        assert isinstance(polygons, pd.DataFrame)
        assert isinstance(outcomes, pd.DataFrame)

    def test_correct_shape(self):
        polygons, outcomes = generate_synthetic_units(n=120, seed=0)
        assert len(polygons) == 120
        assert len(outcomes) == 120
        assert {"ubigeo", "mita", "polygon"} <= set(polygons.columns)
        assert {"distance", "isInside", "consumption", "stunting", "roads"} <= set(outcomes.columns)

    def test_share_inside(self):
        _, outcomes = generate_synthetic_units(n=100, share_inside=0.6, seed=0)
        assert outcomes["isInside"].sum() == 60

    def test_stored_sign_is_mixed(self):
        _, outcomes = generate_synthetic_units(n=200, seed=0, missing_rate=0)
        assert (outcomes["distance"] > 0).any()
        assert (outcomes["distance"] < 0).any()

    def test_deterministic(self):
        _, a = generate_synthetic_units(n=80, seed=42)
        _, b = generate_synthetic_units(n=80, seed=42)
        pd.testing.assert_frame_equal(a, b)

    def test_missing_rate_zero_has_no_nans(self):
        _, outcomes = generate_synthetic_units(n=100, seed=0, missing_rate=0)
        assert outcomes.isna().sum().sum() == 0

    def test_load_dataset_fallback(self):
        polygons, outcomes = load_dataset(n=30, seed=0)
        assert len(polygons) == 30
        assert len(outcomes) == 30

    def test_load_dataset_reads_json(self, tmp_path):
        polygons, outcomes = generate_synthetic_units(n=20, seed=0)
        poly_path, out_path = tmp_path / "polygons.json", tmp_path / "outcomes.json"
        polygons.to_json(poly_path, orient="records")
        outcomes.to_json(out_path, orient="records")
        loaded_polygons, loaded_outcomes = load_dataset(str(poly_path), str(out_path))
        assert len(loaded_polygons) == 20
        assert len(loaded_outcomes) == 20

    def test_default_units_prefer_raw_files(self, tmp_path, monkeypatch):
        polygons, outcomes = generate_synthetic_units(n=15, seed=0)
        poly_path, out_path = tmp_path / "polygons.json", tmp_path / "outcomes.json"
        polygons.to_json(poly_path, orient="records")
        outcomes.to_json(out_path, orient="records")
        monkeypatch.setattr("rdmorph.preprocessing.data_loader.POLYGONS_FILE", poly_path)
        monkeypatch.setattr("rdmorph.preprocessing.data_loader.OUTCOMES_FILE", out_path)
        assert len(load_default_units(n=40)) == 15

    def test_default_units_fall_back(self, tmp_path, monkeypatch):
        monkeypatch.setattr("rdmorph.preprocessing.data_loader.POLYGONS_FILE", tmp_path / "missing.json")
        assert len(load_default_units(n=40, seed=0)) == 40


class TestFrameConversion:
    def test_nan_becomes_none(self):
        df = pd.DataFrame({
            "ubigeo": [1, 2],
            "distance": [5.0, np.nan],
            "isInside": [True, False],
            "consumption": [np.nan, 5.1],
            "stunting": [0.3, 0.2],
            "roads": [10.0, np.nan],
        })
        records = outcomes_from_frame(df)
        assert records[0].consumption is None
        assert records[1].distance is None
        assert records[1].roads is None
        assert records[0].is_inside is True

    def test_geometries_keep_lat_lon_order(self):
        df = pd.DataFrame({"ubigeo": [7], "mita": [1], "polygon": [[[-13.0, -72.0], [-13.1, -72.0], [-13.1, -71.9]]]})
        (record,) = geometries_from_frame(df)
        assert record.unit_id == 7
        assert record.treated == 1
        assert record.polygon[0] == (-13.0, -72.0)


# ── Merging ────────────────────────────────────────────────────────────────────

class TestMerge:
    def test_one_unit_per_geometry(self):
        geometries = [GeometryRecord(i, i % 2, ((0.0, 0.0), (0.0, 1.0), (1.0, 0.0))) for i in range(5)]
        outcomes = [OutcomeRecord(i, 1.0, True, consumption=5.0) for i in range(3)]
        merged = merge(geometries, outcomes)
        assert [u.unit_id for u in merged] == [0, 1, 2, 3, 4]

    def test_missing_outcome_degrades_to_null(self):
        geometries = [GeometryRecord(9, 1, ((0.0, 0.0), (0.0, 2.0), (2.0, 2.0), (2.0, 0.0)))]
        (unit,) = merge(geometries, [])
        assert unit.distance is None
        assert unit.consumption is None and unit.stunting is None and unit.roads is None
        assert unit.is_inside is True  # falls back to the treatment flag

    def test_outcome_fields_carried(self):
        geometries = [GeometryRecord(3, 0, ((0.0, 0.0), (0.0, 1.0), (1.0, 0.0)))]
        outcomes = [OutcomeRecord(3, -4.0, False, consumption=5.2, stunting=0.4, roads=80.0)]
        (unit,) = merge(geometries, outcomes)
        assert unit.distance == -4.0
        assert unit.stunting == 0.4
        assert unit.outcome("roads") == 80.0

    def test_synthetic_merge_covers_all_units(self, units):
        assert len(units) == 300
        assert len({u.unit_id for u in units}) == 300


class TestCentroid:
    def test_square(self):
        # (lat, lon) ring in, (lon, lat) centroid out
        square = [(0.0, 0.0), (0.0, 2.0), (4.0, 2.0), (4.0, 0.0)]
        assert polygon_centroid(square) == pytest.approx((1.0, 2.0))

    def test_closed_ring_same_as_open(self):
        ring = [(0.0, 0.0), (0.0, 2.0), (4.0, 2.0), (4.0, 0.0)]
        assert polygon_centroid(ring + [ring[0]]) == pytest.approx(polygon_centroid(ring))

    def test_two_vertices_uses_mean(self):
        assert polygon_centroid([(0.0, 0.0), (2.0, 4.0)]) == pytest.approx((2.0, 1.0))

    def test_single_vertex(self):
        assert polygon_centroid([(3.0, 5.0)]) == pytest.approx((5.0, 3.0))

    def test_empty_is_none(self):
        assert polygon_centroid([]) is None

    def test_collinear_does_not_raise(self):
        result = polygon_centroid([(0.0, 0.0), (1.0, 1.0), (2.0, 2.0)])
        assert result is not None
        assert np.isfinite(result).all()


# ── Scatter projection ────────────────────────────────────────────────────────

class TestProject:
    def test_sign_follows_inside_flag(self, units):
        for outcome in Outcome:
            for p in project(units, outcome):
                assert p.x == 0 or np.sign(p.x) == (1 if p.is_inside else -1)

    def test_flip_ignores_stored_sign(self):
        assert flip_distance(-12.0, True) == 12.0
        assert flip_distance(12.0, False) == -12.0

    def test_filters_null_and_non_positive(self):
        candidates = [
            _unit(1, consumption=5.0),
            _unit(2, consumption=None),
            _unit(3, consumption=0.0),
            _unit(4, consumption=-1.0),
            _unit(5, distance=None, consumption=5.0),
        ]
        assert [p.unit_id for p in project(candidates, "consumption")] == [1]

    def test_percentage_scaling(self):
        (point,) = project([_unit(1, stunting=0.42)], Outcome.STUNTING)
        assert point.y == pytest.approx(42.0)
        assert scale_outcome(0.42, "roads") == 0.42

    def test_other_outcomes_pass_through(self):
        (point,) = project([_unit(1, roads=73.0)], "roads")
        assert point.y == 73.0

    def test_unknown_outcome_raises(self):
        with pytest.raises(ValueError):
            project([_unit(1, roads=73.0)], "rainfall")


class TestProjectAll:
    def test_excludes_units_without_usable_outcome(self, units):
        for p in project_all(units):
            values = [p.unit.consumption, p.unit.stunting, p.unit.roads]
            assert any(v is not None and v > 0 for v in values)

    def test_per_outcome_nullable(self):
        candidates = [
            _unit(1, consumption=5.0, stunting=None, roads=0.0),
            _unit(2, consumption=None, stunting=None, roads=None),
            _unit(3, consumption=-2.0, stunting=0.0, roads=-1.0),
        ]
        points = project_all(candidates)
        assert [p.unit_id for p in points] == [1]
        (point,) = points
        assert point.consumption_y == 5.0
        assert point.stunting_y is None
        assert point.roads_y is None
        assert point.y is None

    def test_superset_of_every_outcome_projection(self, units):
        all_ids = {p.unit_id for p in project_all(units)}
        for outcome in Outcome:
            assert {p.unit_id for p in project(units, outcome)} <= all_ids
