"""Helpers for picking a plan template for a plot."""

from __future__ import annotations

from decimal import Decimal
from typing import Iterable, List, Optional, Union

from .config import DEFAULT_CONFIG, EngineConfig
from .data_models import PlanStatus, PlanTemplate, Plot


def _size_text(size: Optional[Decimal]) -> str:
    return "" if size is None else f"{size.normalize():f}"


def filter_plans(
    plans: Iterable[PlanTemplate],
    search: str = "",
    status: Union[PlanStatus, str] = "all",
) -> List[PlanTemplate]:
    """Filter plans by a free-text search and a status.

    The search matches name or description case-insensitively, or the plot
    size as text (``"5"`` matches a 5 marla plan). ``status`` is ``"all"`` or
    a plan status.
    """
    needle = (search or "").strip().lower()
    wanted = None if status == "all" else PlanStatus(status)
    matched = []
    for plan in plans:
        if wanted is not None and plan.status != wanted:
            continue
        if needle and not (
            needle in plan.name.lower()
            or needle in plan.description.lower()
            or needle in _size_text(plan.plot_size)
        ):
            continue
        matched.append(plan)
    return matched


def find_compatible_plan(plans: Iterable[PlanTemplate], plot: Plot) -> Optional[PlanTemplate]:
    """Return the first active plan made for exactly this plot's size and price."""
    for plan in plans:
        if plan.status != PlanStatus.ACTIVE:
            continue
        if plan.plot_size == plot.size and plan.plot_price == plot.price:
            return plan
    return None


def plan_mismatch_warnings(
    plot: Plot,
    plan: PlanTemplate,
    config: EngineConfig = DEFAULT_CONFIG,
) -> List[str]:
    """Describe how a plan differs from the plot it is applied to.

    A size difference is always reported. A price difference is reported once
    it exceeds ``config.price_mismatch_tolerance``; the plot's price remains
    the booking total either way.
    """
    warnings: List[str] = []
    if plot.size is not None and plan.plot_size is not None and plot.size != plan.plot_size:
        warnings.append(
            f"This payment plan is for {_size_text(plan.plot_size)} marla plots, "
            f"but the selected plot is {_size_text(plot.size)} marla"
        )

    difference = plot.price - plan.plot_price
    if abs(difference) > config.price_mismatch_tolerance:
        direction = "higher" if difference > 0 else "lower"
        warnings.append(
            f"Plot price ({plot.price:,.0f}) is {direction} than plan price "
            f"({plan.plot_price:,.0f}) by {abs(difference):,.0f}; the plot price is used"
        )
    return warnings
