import pytest

from stageflow.config.settings import ReconciliationSettings
from stageflow.flow.quantity import PlannedQuantity
from stageflow.flow.threshold import ThresholdEvaluator


def plan(quantity, source="bom_sheet_line"):
    return PlannedQuantity(quantity=quantity, uom="sheets", source=source)


@pytest.fixture
def fixed():
    return ThresholdEvaluator(ReconciliationSettings())


@pytest.fixture
def tiered():
    config = {"reconciliation": {"completion_band": {"mode": "tiered"}}}
    return ThresholdEvaluator(ReconciliationSettings.from_config(config))


class TestFixedBand:
    def test_bounds(self, fixed):
        result = fixed.evaluate(plan(1000), 1000)

        assert result.lower_bound == 600
        assert result.upper_bound == 1500
        assert result.is_threshold_met
        assert result.plan_source == "bom_sheet_line"

    @pytest.mark.parametrize(
        "produced, met",
        [(599, False), (600, True), (1500, True), (1501, False)],
    )
    def test_edges_are_inclusive(self, fixed, produced, met):
        assert fixed.evaluate(plan(1000), produced).is_threshold_met is met

    def test_lower_bound_clamped_at_zero(self, fixed):
        result = fixed.evaluate(plan(100), 0)

        assert result.lower_bound == 0
        assert result.upper_bound == 600
        assert result.is_threshold_met

    def test_zero_plan_never_met(self, fixed):
        result = fixed.evaluate(plan(0, "unresolved"), 0)

        assert result.is_threshold_met is False

    def test_configured_tolerances(self):
        config = {
            "reconciliation": {
                "completion_band": {"lower_tolerance": 10, "upper_tolerance": 20}
            }
        }
        evaluator = ThresholdEvaluator(ReconciliationSettings.from_config(config))

        assert evaluator.tolerances(1000) == (10, 20)


class TestTieredBand:
    @pytest.mark.parametrize(
        "planned, tolerance",
        [
            (800, 80),  # 10%
            (2000, 150),  # 7.5%
            (8000, 400),  # 5%
            (20000, 600),  # 3%
        ],
    )
    def test_percentage_tiers(self, tiered, planned, tolerance):
        assert tiered.tolerances(planned) == (tolerance, tolerance)

    def test_minimum_tolerance(self, tiered):
        assert tiered.tolerances(100) == (50, 50)

    def test_maximum_tolerance(self, tiered):
        assert tiered.tolerances(100_000) == (2000, 2000)

    def test_rounds_half_up(self, tiered):
        # 1010 * 7.5% = 75.75 -> 76
        assert tiered.tolerances(1010) == (76, 76)

    def test_symmetric_band(self, tiered):
        result = tiered.evaluate(plan(2000), 1850)

        assert result.lower_bound == 1850
        assert result.upper_bound == 2150
        assert result.is_threshold_met
