"""
Tests for the Inventory Optimizer — Safety Stock & Reorder Point Calculation.

Covers:
  - Z-score lookup
  - Safety stock and reorder point formulas
  - Trend-adjusted horizon demand
  - Order quantity clamping (max stock, overstock, zero demand)
"""

import math

import pytest

from inventory.optimizer import (
    TREND_FACTORS,
    Z_SCORES,
    calculate_recommended_order_qty,
    calculate_reorder,
    calculate_safety_stock,
    get_z_score,
)

# ── Z-Score Lookup ─────────────────────────────────────────────────────


class TestZScore:
    def test_95_service_level(self):
        assert get_z_score(0.95) == 1.645

    def test_99_service_level(self):
        assert get_z_score(0.99) == 2.326

    def test_90_service_level(self):
        assert get_z_score(0.90) == 1.282

    def test_closest_match(self):
        """0.94 should map to 0.95 (closest key)."""
        assert get_z_score(0.94) == 1.645

    def test_exact_975(self):
        assert get_z_score(0.975) == 1.960

    def test_table_is_monotonic(self):
        levels = sorted(Z_SCORES)
        assert [Z_SCORES[level] for level in levels] == sorted(Z_SCORES.values())


# ── Safety Stock ───────────────────────────────────────────────────────


class TestSafetyStock:
    def test_formula(self):
        assert calculate_safety_stock(1.645, 3.0, 7) == pytest.approx(1.645 * 3.0 * math.sqrt(7))

    def test_zero_sigma(self):
        assert calculate_safety_stock(1.645, 0.0, 7) == 0.0

    def test_never_negative(self):
        assert calculate_safety_stock(1.645, 3.0, 0) == 0.0


# ── Order Quantity ─────────────────────────────────────────────────────


class TestRecommendedOrderQty:
    def test_rounds_up_to_whole_units(self):
        assert calculate_recommended_order_qty(10.2, 5.0, 0, None) == 16

    def test_exact_need_is_not_bumped(self):
        # 0.1 + 0.2 style float noise must not add a unit
        assert calculate_recommended_order_qty(0.1 + 0.2, 9.7, 0, None) == 10

    def test_clamped_to_max_stock_headroom(self):
        assert calculate_recommended_order_qty(80.0, 300.0, 20, 100) == 80

    def test_overstock_orders_nothing(self):
        assert calculate_recommended_order_qty(80.0, 300.0, 150, 100) == 0

    def test_enough_stock_orders_nothing(self):
        assert calculate_recommended_order_qty(10.0, 20.0, 50, None) == 0

    def test_no_max_stock_means_no_upper_clamp(self):
        assert calculate_recommended_order_qty(80.0, 300.0, 0, None) == 380


# ── Full Reorder Calculation ───────────────────────────────────────────


class TestCalculateReorder:
    def test_worked_example(self):
        """avg 10/day, σ 3, 7-day lead time, 95% service level."""
        calc = calculate_reorder(
            avg_daily_demand=10.0,
            demand_std_dev=3.0,
            current_stock=20,
            max_stock=400,
            trend_direction="stable",
            lead_time_days=7,
            horizon_days=30,
        )
        assert calc.z_score == 1.645
        assert calc.safety_stock == pytest.approx(13.06, abs=0.01)
        assert calc.reorder_point == pytest.approx(83.06, abs=0.01)
        assert calc.forecast_horizon_demand == 300.0
        assert calc.recommended_order_qty == 364

    @pytest.mark.parametrize("direction", ["increasing", "stable", "decreasing"])
    def test_trend_factor_scales_horizon_demand(self, direction):
        calc = calculate_reorder(
            avg_daily_demand=2.0,
            demand_std_dev=0.0,
            current_stock=0,
            max_stock=None,
            trend_direction=direction,
            lead_time_days=7,
            horizon_days=30,
        )
        assert calc.trend_factor == TREND_FACTORS[direction]
        assert calc.forecast_horizon_demand == pytest.approx(60.0 * TREND_FACTORS[direction])

    def test_zero_demand(self):
        calc = calculate_reorder(
            avg_daily_demand=0.0,
            demand_std_dev=0.0,
            current_stock=5,
            max_stock=50,
            trend_direction="stable",
            lead_time_days=7,
            horizon_days=30,
        )
        assert calc.safety_stock == 0.0
        assert calc.reorder_point == 0.0
        assert calc.recommended_order_qty == 0

    def test_higher_service_level_raises_safety_stock(self):
        kwargs = dict(
            avg_daily_demand=5.0,
            demand_std_dev=2.0,
            current_stock=0,
            max_stock=None,
            trend_direction="stable",
            lead_time_days=9,
            horizon_days=30,
        )
        low = calculate_reorder(service_level=0.90, **kwargs)
        high = calculate_reorder(service_level=0.99, **kwargs)
        assert high.safety_stock > low.safety_stock
        assert high.reorder_point > low.reorder_point

    def test_invariants(self):
        calc = calculate_reorder(
            avg_daily_demand=7.3,
            demand_std_dev=4.1,
            current_stock=12,
            max_stock=200,
            trend_direction="increasing",
            lead_time_days=5,
            horizon_days=14,
        )
        assert calc.safety_stock >= 0
        assert calc.reorder_point >= calc.safety_stock
        assert 0 <= calc.recommended_order_qty <= 200 - 12
