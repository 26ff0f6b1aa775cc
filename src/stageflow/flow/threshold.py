"""Completion band: is a stage's output close enough to plan to move on?"""

from __future__ import annotations

import math
from dataclasses import dataclass

from stageflow.config.settings import ReconciliationSettings
from stageflow.flow.quantity import PlannedQuantity


@dataclass(frozen=True)
class ThresholdResult:
    produced: float
    planned: float
    lower_bound: float
    upper_bound: float
    uom: str
    plan_source: str
    is_threshold_met: bool


class ThresholdEvaluator:
    """
    Models manufacturing wastage tolerance around the planned quantity.

    In "fixed" mode the band is [planned - lower, planned + upper] with
    configured constants. In "tiered" mode the tolerance is a percentage of
    the plan that shrinks as the plan grows, clamped to [min, max] and
    applied on both sides.
    """

    def __init__(self, settings: ReconciliationSettings) -> None:
        self.band = settings.completion_band

    def tolerances(self, planned: float) -> tuple[float, float]:
        if self.band.mode != "tiered":
            return self.band.lower_tolerance, self.band.upper_tolerance

        pct = self.band.tiers[-1][1]
        for below, tier_pct in self.band.tiers:
            if below is None or planned < below:
                pct = tier_pct
                break
        # Round half up
        tolerance = float(math.floor(planned * pct + 0.5))
        tolerance = max(self.band.min_tolerance, min(tolerance, self.band.max_tolerance))
        return tolerance, tolerance

    def evaluate(self, plan: PlannedQuantity, produced: float) -> ThresholdResult:
        lower_tol, upper_tol = self.tolerances(plan.quantity)
        lower = max(0.0, plan.quantity - lower_tol)
        upper = plan.quantity + upper_tol
        met = plan.quantity > 0 and lower <= produced <= upper
        return ThresholdResult(
            produced=produced,
            planned=plan.quantity,
            lower_bound=lower,
            upper_bound=upper,
            uom=plan.uom,
            plan_source=plan.source,
            is_threshold_met=met,
        )
