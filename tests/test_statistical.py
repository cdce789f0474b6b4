"""
Block-weighted statistical forecaster tests.

Target: src/xtock_forecast/core/statistical.py
- 7/7/7/9 blocks weighted 0.5/0.3/0.1/0.1
- weather multipliers sunny 1.2, cloudy 1.0, rainy 0.8
- items with fewer than 30 sales days are skipped
- RecencyWeightedForecaster for 3-29 day histories
"""

from datetime import timedelta

import pytest

from xtock_forecast.core.models import SalesRecord, Weather
from xtock_forecast.core.statistical import (
    BlockWeightingConfig,
    RecencyWeightedForecaster,
    StatisticalForecaster,
    finalize_quantity,
    recent_daily_totals,
)

from conftest import START, block_history, make_history


# =============================================================================
# Block weighting
# =============================================================================
class TestBlockWeighting:

    def test_known_block_levels(self, tomatoes_history):
        """Blocks averaging 10/20/30/40 give 0.5*10 + 0.3*20 + 0.1*30 + 0.1*40 = 18"""
        results = StatisticalForecaster().forecast(tomatoes_history, Weather.CLOUDY)

        assert len(results) == 1
        assert results[0].item == "Tomatoes"
        assert results[0].predicted_quantity == 18.0
        assert results[0].source == "statistical"

    def test_oldest_block_dominates(self):
        """A spike in the newest block moves the forecast far less than one in the oldest"""
        forecaster = StatisticalForecaster()
        old_spike = forecaster.forecast(block_history(levels=(100, 10, 10, 10)))[0]
        new_spike = forecaster.forecast(block_history(levels=(10, 10, 10, 100)))[0]

        assert old_spike.predicted_quantity == 55.0
        assert new_spike.predicted_quantity == 19.0

    def test_only_most_recent_30_days_count(self):
        """Older history beyond the window is ignored"""
        older = make_history("Tomatoes", [1000] * 10)
        recent = make_history(
            "Tomatoes",
            [10] * 7 + [20] * 7 + [30] * 7 + [40] * 9,
            start=START + timedelta(days=10),
        )
        results = StatisticalForecaster().forecast(older + recent)
        assert results[0].predicted_quantity == 18.0

    def test_days_without_sales_are_not_zero_filled(self):
        """30 sales days spread over 60 calendar days still give the block average"""
        quantities = [10] * 7 + [20] * 7 + [30] * 7 + [40] * 9
        records = make_history("Tomatoes", quantities, step_days=2)

        results = StatisticalForecaster().forecast(records)
        assert results[0].predicted_quantity == 18.0

    def test_same_day_sales_summed_before_weighting(self):
        """Two sales of 5 on each day behave like one sale of 10"""
        halves = make_history("Tomatoes", [5] * 30)
        records = halves + [
            SalesRecord(date=r.date.replace(hour=18), item=r.item, quantity=5) for r in halves
        ]
        results = StatisticalForecaster().forecast(records)
        assert results[0].predicted_quantity == 10.0

    def test_weighted_level_requires_full_window(self):
        with pytest.raises(ValueError):
            StatisticalForecaster().weighted_level([1.0] * 29)


# =============================================================================
# Weather
# =============================================================================
class TestWeather:

    @pytest.mark.parametrize("weather, expected", [
        (Weather.SUNNY, 21.6),
        (Weather.CLOUDY, 18.0),
        (Weather.RAINY, 14.4),
    ])
    def test_multipliers(self, tomatoes_history, weather, expected):
        results = StatisticalForecaster().forecast(tomatoes_history, weather)
        assert results[0].predicted_quantity == expected

    def test_sunny_cloudy_rainy_ordering(self, tomatoes_history):
        forecaster = StatisticalForecaster()
        sunny = forecaster.forecast(tomatoes_history, Weather.SUNNY)[0].predicted_quantity
        cloudy = forecaster.forecast(tomatoes_history, Weather.CLOUDY)[0].predicted_quantity
        rainy = forecaster.forecast(tomatoes_history, Weather.RAINY)[0].predicted_quantity

        assert sunny > cloudy > rainy
        assert sunny / cloudy == pytest.approx(1.2)
        assert rainy / cloudy == pytest.approx(0.8)

    def test_weather_strings_accepted(self, tomatoes_history):
        results = StatisticalForecaster().forecast(tomatoes_history, "Sunny")
        assert results[0].predicted_quantity == 21.6


# =============================================================================
# Gating and output shape
# =============================================================================
class TestGating:

    def test_29_days_is_skipped(self):
        records = make_history("Basil", [5] * 29)
        assert StatisticalForecaster().forecast(records) == []
        assert StatisticalForecaster().forecast_item("Basil", records) is None

    def test_short_item_skipped_others_kept(self, mixed_history):
        results = StatisticalForecaster().forecast(mixed_history)
        assert [r.item for r in results] == ["Tomatoes"]

    def test_empty_input_gives_empty_output(self):
        assert StatisticalForecaster().forecast([]) == []

    def test_deterministic(self, mixed_history):
        forecaster = StatisticalForecaster()
        assert forecaster.forecast(mixed_history, Weather.RAINY) == forecaster.forecast(
            mixed_history, Weather.RAINY
        )

    def test_rounded_to_two_decimals(self):
        records = make_history("Dill", [1] * 29 + [2])
        result = StatisticalForecaster().forecast(records, Weather.SUNNY)[0]
        # (0.9 + 0.1 * 10/9) * 1.2 = 1.2133...
        assert result.predicted_quantity == 1.21

    def test_non_negative(self, tomatoes_history):
        for weather in Weather:
            for result in StatisticalForecaster().forecast(tomatoes_history, weather):
                assert result.predicted_quantity >= 0


class TestFinalizeQuantity:

    @pytest.mark.parametrize("raw, expected", [
        (-3.2, 0.0),
        (12.3456, 12.35),
        (7, 7.0),
        (float("nan"), 0.0),
        (float("inf"), 0.0),
    ])
    def test_clamp_and_round(self, raw, expected):
        assert finalize_quantity(raw) == expected


def test_recent_daily_totals_takes_newest_days():
    records = make_history("Leeks", list(range(1, 41)))
    totals = recent_daily_totals(records, 30)
    assert totals == list(range(11, 41))


# =============================================================================
# Configuration
# =============================================================================
class TestBlockWeightingConfig:

    def test_defaults(self):
        cfg = BlockWeightingConfig()
        assert cfg.window_days == 30
        assert cfg.block_sizes == (7, 7, 7, 9)
        assert cfg.block_weights == (0.50, 0.30, 0.10, 0.10)
        assert cfg.multiplier_for(Weather.SUNNY) == 1.2

    def test_block_sizes_must_cover_window(self):
        with pytest.raises(ValueError):
            BlockWeightingConfig(block_sizes=(7, 7, 7, 7))

    def test_one_weight_per_block(self):
        with pytest.raises(ValueError):
            BlockWeightingConfig(block_weights=(0.5, 0.5))

    def test_every_weather_needs_multiplier(self):
        with pytest.raises(ValueError):
            BlockWeightingConfig(weather_multipliers={Weather.SUNNY: 1.2})


# =============================================================================
# Lenient recency forecaster
# =============================================================================
class TestRecencyWeightedForecaster:

    def test_linear_weights(self):
        """Totals 1, 2, 3 weighted 1, 2, 3 give 14/6"""
        records = make_history("Basil", [1, 2, 3])
        result = RecencyWeightedForecaster().forecast_item("Basil", records)

        assert result.predicted_quantity == 2.33
        assert result.source == "recency"

    def test_needs_three_days(self):
        records = make_history("Basil", [4, 4])
        assert RecencyWeightedForecaster().forecast_item("Basil", records) is None

    def test_weather_applies(self):
        records = make_history("Basil", [10] * 5)
        result = RecencyWeightedForecaster().forecast_item("Basil", records, Weather.RAINY)
        assert result.predicted_quantity == 8.0

    def test_min_history_must_be_positive(self):
        with pytest.raises(ValueError):
            RecencyWeightedForecaster(min_history_days=0)
