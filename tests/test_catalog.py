"""Tests for plan filtering, compatible-plan lookup and mismatch warnings."""

from decimal import Decimal
from typing import List

import pytest

from payment_plans.config import EngineConfig
from payment_plans.catalog import filter_plans, find_compatible_plan, plan_mismatch_warnings
from payment_plans.data_models import PlanStatus, PlanTemplate, Plot


@pytest.fixture
def catalog(
    short_plan: PlanTemplate,
    balanced_plan: PlanTemplate,
    quarterly_plan: PlanTemplate,
    inactive_plan: PlanTemplate,
) -> List[PlanTemplate]:
    return [short_plan, balanced_plan, quarterly_plan, inactive_plan]


class TestFilterPlans:
    def test_no_filters(self, catalog: List[PlanTemplate]) -> None:
        assert filter_plans(catalog) == catalog

    def test_search_by_name(self, catalog: List[PlanTemplate]) -> None:
        assert [p.plan_id for p in filter_plans(catalog, "easy")] == ["plan-balanced"]

    def test_search_by_description(self, catalog: List[PlanTemplate]) -> None:
        assert [p.plan_id for p in filter_plans(catalog, "MONTHLY ONLY")] == ["plan-balanced"]

    def test_search_by_size(self, catalog: List[PlanTemplate]) -> None:
        assert [p.plan_id for p in filter_plans(catalog, "10")] == ["plan-old"]

    def test_status(self, catalog: List[PlanTemplate]) -> None:
        assert [p.plan_id for p in filter_plans(catalog, status="inactive")] == ["plan-old"]
        assert len(filter_plans(catalog, status=PlanStatus.ACTIVE)) == 3

    def test_unknown_status(self, catalog: List[PlanTemplate]) -> None:
        with pytest.raises(ValueError):
            filter_plans(catalog, status="archived")


class TestFindCompatiblePlan:
    def test_first_matching_active_plan(self, catalog: List[PlanTemplate], plot: Plot) -> None:
        assert find_compatible_plan(catalog, plot).plan_id == "plan-short"

    def test_inactive_plans_skipped(self, catalog: List[PlanTemplate]) -> None:
        plot = Plot(plot_id="plot-010", price=Decimal("5000000"), size=Decimal("10"))

        assert find_compatible_plan(catalog, plot) is None

    def test_price_must_match(self, catalog: List[PlanTemplate]) -> None:
        plot = Plot(plot_id="plot-006", price=Decimal("2400000"), size=Decimal("5"))

        assert find_compatible_plan(catalog, plot) is None


class TestMismatchWarnings:
    def test_matching_plot(self, plot: Plot, balanced_plan: PlanTemplate) -> None:
        assert plan_mismatch_warnings(plot, balanced_plan) == []

    def test_size_mismatch(self, balanced_plan: PlanTemplate) -> None:
        plot = Plot(plot_id="plot-007", price=Decimal("2500000"), size=Decimal("10"))

        assert plan_mismatch_warnings(plot, balanced_plan) == [
            "This payment plan is for 5 marla plots, but the selected plot is 10 marla"
        ]

    def test_price_higher(self, balanced_plan: PlanTemplate) -> None:
        plot = Plot(plot_id="plot-008", price=Decimal("2600000"), size=Decimal("5"))

        assert plan_mismatch_warnings(plot, balanced_plan) == [
            "Plot price (2,600,000) is higher than plan price (2,500,000) by 100,000; the plot price is used"
        ]

    def test_price_lower_within_tolerance(self, balanced_plan: PlanTemplate) -> None:
        plot = Plot(plot_id="plot-009", price=Decimal("2499000"), size=Decimal("5"))

        assert plan_mismatch_warnings(plot, balanced_plan) == []

    def test_price_lower(self, balanced_plan: PlanTemplate) -> None:
        plot = Plot(plot_id="plot-009", price=Decimal("2498999"), size=Decimal("5"))
        warnings = plan_mismatch_warnings(plot, balanced_plan)

        assert len(warnings) == 1
        assert "is lower than plan price" in warnings[0]

    def test_custom_tolerance(self, balanced_plan: PlanTemplate) -> None:
        plot = Plot(plot_id="plot-008", price=Decimal("2600000"), size=Decimal("5"))
        config = EngineConfig(price_mismatch_tolerance=Decimal("200000"))

        assert plan_mismatch_warnings(plot, balanced_plan, config) == []
