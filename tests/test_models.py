"""Tests for per-side fits, discontinuity estimates and effect labels."""

import numpy as np
import pytest
from sklearn.linear_model import LinearRegression

from rdmorph.models.effects import format_effect, paper_effect
from rdmorph.models.regression import compute_effect, fit_linear, fit_quadratic
from rdmorph.preprocessing.data_loader import load_units
from rdmorph.preprocessing.scatter import project
from rdmorph.utils.config import BASELINE_LEVEL, SIDE_SLOPE, TRUE_DISCONTINUITY


@pytest.fixture(scope="module")
def noise_free_units():
    """100 districts, 60 inside, exact per-side lines and no gaps."""
    return load_units(n=100, share_inside=0.6, seed=7, noise=False, missing_rate=0)


@pytest.fixture(scope="module")
def noisy_sample():
    rng = np.random.default_rng(3)
    x = rng.uniform(0, 50, 80)
    y = 2.0 + 0.3 * x - 0.01 * x**2 + rng.normal(0, 0.5, 80)
    return x, y


# ── Linear fit ─────────────────────────────────────────────────────────────────

class TestFitLinear:
    def test_collinear_points_exact(self):
        pts = [(x, 3.0 - 0.5 * x) for x in (0.0, 1.0, 4.0, 9.0, 20.0)]
        fit = fit_linear(pts)
        assert abs(fit.slope - (-0.5)) < 1e-6
        assert abs(fit.intercept - 3.0) < 1e-6

    def test_repeated_x_gives_flat_line(self):
        fit = fit_linear([(5.0, 1.0), (5.0, 3.0), (5.0, 8.0)])
        assert fit.slope == 0.0
        assert fit.intercept == pytest.approx(4.0)

    def test_single_point(self):
        fit = fit_linear([(2.0, 7.0)])
        assert fit.slope == 0.0
        assert fit.intercept == 7.0

    def test_empty_input(self):
        fit = fit_linear([])
        assert fit.intercept == 0.0 and fit.slope == 0.0

    def test_matches_sklearn(self, noisy_sample):
        x, y = noisy_sample
        fit = fit_linear(zip(x, y))
        ref = LinearRegression().fit(x.reshape(-1, 1), y)
        assert fit.slope == pytest.approx(ref.coef_[0], rel=1e-6)
        assert fit.intercept == pytest.approx(ref.intercept_, rel=1e-6)


# ── Quadratic fit ──────────────────────────────────────────────────────────────

class TestFitQuadratic:
    def test_three_points_reproduced(self):
        pts = [(0.0, 1.0), (1.0, 2.0), (3.0, 16.0)]
        fit = fit_quadratic(pts)
        for x, y in pts:
            assert fit.predict(x) == pytest.approx(y, abs=1e-6)

    def test_fewer_than_three_points_fall_back(self):
        fit = fit_quadratic([(0.0, 1.0), (2.0, 5.0)])
        assert fit.quadratic == 0.0
        assert fit.slope == pytest.approx(2.0)
        assert fit.intercept == pytest.approx(1.0)

    def test_two_distinct_x_fall_back(self):
        fit = fit_quadratic([(0.0, 1.0), (0.0, 3.0), (4.0, 10.0), (4.0, 12.0)])
        assert fit.quadratic == 0.0
        assert fit.slope == pytest.approx(2.25)

    def test_matches_sklearn(self, noisy_sample):
        x, y = noisy_sample
        fit = fit_quadratic(zip(x, y))
        ref = LinearRegression().fit(np.column_stack([x, x**2]), y)
        assert fit.slope == pytest.approx(ref.coef_[0], rel=1e-6)
        assert fit.quadratic == pytest.approx(ref.coef_[1], rel=1e-6)
        assert fit.intercept == pytest.approx(ref.intercept_, rel=1e-6)


# ── Treatment effect ──────────────────────────────────────────────────────────

class TestComputeEffect:
    def test_naive_recovers_known_jump(self, noise_free_units):
        points = project(noise_free_units, "consumption")
        assert len(points) == 100
        effect = compute_effect(points, "consumption")
        assert effect.naive == pytest.approx(TRUE_DISCONTINUITY["consumption"], abs=1e-8)

    def test_per_side_lines_recovered(self, noise_free_units):
        points = project(noise_free_units, "consumption")
        inside = fit_linear([p for p in points if p.is_inside])
        outside = fit_linear([p for p in points if not p.is_inside])
        base = BASELINE_LEVEL["consumption"]
        assert inside.intercept == pytest.approx(base + TRUE_DISCONTINUITY["consumption"], abs=1e-8)
        assert inside.slope == pytest.approx(SIDE_SLOPE["consumption"]["inside"], abs=1e-8)
        assert outside.intercept == pytest.approx(base, abs=1e-8)
        # outside units sit at x = -distance, so the stored slope flips sign
        assert outside.slope == pytest.approx(-SIDE_SLOPE["consumption"]["outside"], abs=1e-8)

    def test_percentage_outcome_in_points(self, noise_free_units):
        effect = compute_effect(project(noise_free_units, "stunting"), "stunting")
        assert effect.naive == pytest.approx(TRUE_DISCONTINUITY["stunting"] * 100, abs=1e-6)
        assert effect.paper == pytest.approx(6.0)

    def test_linear_and_quadratic_share_grid(self, noise_free_units):
        effect = compute_effect(project(noise_free_units, "roads"), "roads")
        assert len(effect.inside_linear) == len(effect.inside_quadratic)
        assert len(effect.outside_linear) == len(effect.outside_quadratic)
        np.testing.assert_array_equal(effect.inside_linear.xs, effect.inside_quadratic.xs)
        np.testing.assert_array_equal(effect.outside_linear.xs, effect.outside_quadratic.xs)

    def test_grid_spans_each_side(self, noise_free_units):
        points = project(noise_free_units, "roads")
        effect = compute_effect(points, "roads")
        inside_xs = effect.inside_linear.xs
        outside_xs = effect.outside_linear.xs
        assert inside_xs[0] == 0.0
        assert inside_xs[-1] == np.ceil(max(p.x for p in points if p.is_inside))
        assert outside_xs[-1] == 0.0
        assert outside_xs[0] == np.floor(min(p.x for p in points if not p.is_inside))
        assert np.allclose(np.diff(inside_xs), 1.0)

    def test_quadratic_curves_show_paper_jump(self, noise_free_units):
        effect = compute_effect(project(noise_free_units, "roads"), "roads")
        gap = effect.inside_quadratic.y_at(0.0) - effect.outside_quadratic.y_at(0.0)
        assert gap == pytest.approx(effect.paper)
        assert effect.paper == -36.0

    def test_custom_coefficients(self, noise_free_units):
        points = project(noise_free_units, "consumption")
        effect = compute_effect(points, "consumption", {"consumption": -0.1, "stunting": 0.0, "roads": 0.0})
        assert effect.paper == -0.1

    def test_lines_selector(self, noise_free_units):
        effect = compute_effect(project(noise_free_units, "consumption"), "consumption")
        assert effect.lines(False)[0].kind == "linear"
        assert effect.lines(True)[1].kind == "quadratic"

    def test_one_sided_sample(self, noise_free_units):
        inside_only = [p for p in project(noise_free_units, "consumption") if p.is_inside]
        effect = compute_effect(inside_only, "consumption")
        assert np.isfinite(effect.naive)
        assert effect.outside_linear.xs.tolist() == [0.0]


# ── Labels ─────────────────────────────────────────────────────────────────────

class TestFormatEffect:
    def test_stunting_percentage_points(self):
        assert format_effect(paper_effect("stunting"), "stunting") == "+6.0pp"

    def test_consumption_percent_change(self):
        assert format_effect(paper_effect("consumption"), "consumption") == "-22%"

    def test_roads_level(self):
        assert format_effect(paper_effect("roads"), "roads") == "-36 m/km²"

    def test_positive_log_effect_signed(self):
        assert format_effect(0.1, "consumption") == "+11%"

    def test_zero_has_no_sign(self):
        assert format_effect(0.0, "stunting") == "0.0pp"
