"""
Forecast orchestration tests.

Target: src/xtock_forecast/core/orchestrator.py
- empty input is the only error that reaches the caller
- any strategy failure or malformed answer falls back to statistics
- AI answers are clamped and rounded like statistical ones
"""

from datetime import datetime, timedelta

import httpx
import pytest

from xtock_forecast.core.errors import NoSalesDataError
from xtock_forecast.core.models import SalesRecord, Weather
from xtock_forecast.core.orchestrator import (
    ForecastOrchestrator,
    build_tabular_summary,
    classify_failure,
    generate_forecasts,
)
from xtock_forecast.core.statistical import StatisticalForecaster
from xtock_forecast.core.strategy import PredictionOk, PredictionSchemaError, PredictedItem

from conftest import FakeStrategy


class RateLimitError(Exception):
    pass


class APIStatusError(Exception):
    def __init__(self, status_code):
        super().__init__(f"status {status_code}")
        self.status_code = status_code


# =============================================================================
# Empty input
# =============================================================================
class TestNoSalesData:

    def test_empty_list_raises(self):
        with pytest.raises(NoSalesDataError) as exc:
            ForecastOrchestrator().generate([], Weather.SUNNY)
        assert exc.value.code == "NO_SALES_DATA"

    def test_none_raises(self):
        with pytest.raises(NoSalesDataError):
            generate_forecasts(None)

    def test_strategy_not_called_for_empty_input(self):
        strategy = FakeStrategy(response={"forecasts": []})
        with pytest.raises(NoSalesDataError):
            ForecastOrchestrator(strategy=strategy).generate([])
        assert strategy.calls == []


# =============================================================================
# Fallback
# =============================================================================
class TestFallback:

    def test_no_strategy_matches_statistical(self, mixed_history):
        expected = StatisticalForecaster().forecast(mixed_history, Weather.SUNNY)
        assert ForecastOrchestrator().generate(mixed_history, Weather.SUNNY) == expected

    @pytest.mark.parametrize("error", [
        RuntimeError("boom"),
        TimeoutError("slow"),
        APIStatusError(401),
        APIStatusError(503),
        RateLimitError("too many"),
    ])
    def test_strategy_exception_falls_back(self, mixed_history, error):
        strategy = FakeStrategy(error=error)
        results = ForecastOrchestrator(strategy=strategy).generate(mixed_history, Weather.RAINY)

        assert results == StatisticalForecaster().forecast(mixed_history, Weather.RAINY)
        assert len(strategy.calls) == 1

    @pytest.mark.parametrize("payload", [
        "not json at all",
        None,
        {"predictions": []},
        {"forecasts": [{"item": "Tomatoes"}]},
        {"forecasts": [{"item": "Tomatoes", "predictedQuantity": "lots"}]},
        {"forecasts": [{"item": "", "predictedQuantity": 3}]},
        PredictionSchemaError("bad shape"),
    ])
    def test_malformed_payload_falls_back(self, tomatoes_history, payload):
        results = ForecastOrchestrator(strategy=FakeStrategy(response=payload)).generate(
            tomatoes_history
        )
        assert [(r.item, r.predicted_quantity, r.source) for r in results] == [
            ("Tomatoes", 18.0, "statistical")
        ]

    @pytest.mark.parametrize("payload", [{"forecasts": []}, [], PredictionOk([])])
    def test_empty_prediction_falls_back(self, tomatoes_history, payload):
        results = ForecastOrchestrator(strategy=FakeStrategy(response=payload)).generate(
            tomatoes_history
        )
        assert results[0].source == "statistical"

    def test_all_items_too_short_gives_empty_list(self):
        records = [SalesRecord(date=datetime(2024, 1, 1), item="Basil", quantity=3)]
        assert ForecastOrchestrator().generate(records) == []

    def test_lenient_fallback_forecasts_short_items(self, mixed_history):
        results = ForecastOrchestrator(lenient_fallback=True).generate(mixed_history)
        by_item = {r.item: r for r in results}

        assert by_item["Tomatoes"].source == "statistical"
        assert by_item["Basil"].source == "recency"
        assert by_item["Basil"].predicted_quantity == 4.0

    def test_lenient_fallback_off_by_default(self, mixed_history):
        results = ForecastOrchestrator().generate(mixed_history)
        assert "Basil" not in {r.item for r in results}


# =============================================================================
# Primary strategy success
# =============================================================================
class TestPrimary:

    def test_valid_payload_is_used(self, mixed_history):
        strategy = FakeStrategy(response={
            "forecasts": [
                {"item": "Tomatoes", "predictedQuantity": 12.3456},
                {"item": "Basil", "predictedQuantity": -3, "note": "ignored"},
            ]
        })
        results = ForecastOrchestrator(strategy=strategy).generate(mixed_history, "sunny")

        assert [(r.item, r.predicted_quantity, r.source) for r in results] == [
            ("Tomatoes", 12.35, "ai"),
            ("Basil", 0.0, "ai"),
        ]

    def test_unknown_items_are_dropped(self, tomatoes_history):
        strategy = FakeStrategy(response={"forecasts": [
            {"item": "Tomatoes", "predictedQuantity": 17},
            {"item": "Truffles", "predictedQuantity": 40},
        ]})
        results = ForecastOrchestrator(strategy=strategy).generate(tomatoes_history)
        assert [(r.item, r.predicted_quantity) for r in results] == [("Tomatoes", 17.0)]

    def test_repeated_items_keep_first(self, tomatoes_history):
        strategy = FakeStrategy(response={"forecasts": [
            {"item": "Tomatoes", "predictedQuantity": 17},
            {"item": "Tomatoes", "predictedQuantity": 99},
        ]})
        results = ForecastOrchestrator(strategy=strategy).generate(tomatoes_history)
        assert [(r.item, r.predicted_quantity, r.source) for r in results] == [("Tomatoes", 17.0, "ai")]

    def test_only_unknown_items_falls_back(self, tomatoes_history):
        strategy = FakeStrategy(response={"forecasts": [{"item": "Truffles", "predictedQuantity": 40}]})
        results = ForecastOrchestrator(strategy=strategy).generate(tomatoes_history)
        assert [(r.item, r.predicted_quantity, r.source) for r in results] == [
            ("Tomatoes", 18.0, "statistical")
        ]

    def test_non_numeric_quantity_falls_back(self, tomatoes_history):
        strategy = FakeStrategy(response={"forecasts": [{"item": "Tomatoes", "predictedQuantity": True}]})
        results = ForecastOrchestrator(strategy=strategy).generate(tomatoes_history)
        assert [(r.predicted_quantity, r.source) for r in results] == [(18.0, "statistical")]

    def test_bare_list_payload(self, tomatoes_history):
        strategy = FakeStrategy(response=[{"item": "Tomatoes", "predictedQuantity": 9}])
        results = ForecastOrchestrator(strategy=strategy).generate(tomatoes_history)
        assert results[0].predicted_quantity == 9.0
        assert results[0].source == "ai"

    def test_already_validated_result(self, tomatoes_history):
        outcome = PredictionOk([PredictedItem(item="Tomatoes", predicted_quantity=5)])
        results = ForecastOrchestrator(strategy=FakeStrategy(response=outcome)).generate(
            tomatoes_history
        )
        assert results[0].predicted_quantity == 5.0

    def test_strategy_receives_summary_and_weather(self, tomatoes_history):
        strategy = FakeStrategy(response={"forecasts": [{"item": "Tomatoes", "predictedQuantity": 1}]})
        ForecastOrchestrator(strategy=strategy).generate(tomatoes_history, "rainy")

        summary, weather = strategy.calls[0]
        assert summary.splitlines()[0] == "date,item,quantity"
        assert "Tomatoes" in summary
        assert weather is Weather.RAINY


# =============================================================================
# Tabular summary
# =============================================================================
class TestTabularSummary:

    def test_rows_are_oldest_first(self):
        records = [
            SalesRecord(date=datetime(2024, 1, 2, 9), item="Kale", quantity=2),
            SalesRecord(date=datetime(2024, 1, 1, 9), item="Kale", quantity=1),
        ]
        assert build_tabular_summary(records) == (
            "date,item,quantity\n2024-01-01,Kale,1\n2024-01-02,Kale,2"
        )

    def test_row_cap_keeps_newest(self):
        start = datetime(2024, 1, 1)
        records = [
            SalesRecord(date=start + timedelta(hours=i), item="Kale", quantity=i + 1)
            for i in range(250)
        ]
        lines = build_tabular_summary(records, row_limit=200).splitlines()

        assert len(lines) == 201
        assert lines[1].endswith(",51")
        assert lines[-1].endswith(",250")

    def test_commas_in_item_names_do_not_break_columns(self):
        records = [SalesRecord(date=datetime(2024, 1, 1), item="Peppers, red", quantity=1)]
        row = build_tabular_summary(records).splitlines()[1]
        assert row.split(",") == ["2024-01-01", "Peppers  red", "1"]


# =============================================================================
# Failure classification
# =============================================================================
class TestClassifyFailure:

    @pytest.mark.parametrize("status, expected", [
        (401, "auth"),
        (403, "auth"),
        (429, "rate_limit"),
        (500, "server_error"),
        (503, "server_error"),
        (400, "unknown"),
    ])
    def test_status_codes(self, status, expected):
        assert classify_failure(APIStatusError(status)) == expected

    def test_httpx_status_error(self):
        request = httpx.Request("POST", "http://localhost/api/generate")
        response = httpx.Response(429, request=request)
        error = httpx.HTTPStatusError("limited", request=request, response=response)
        assert classify_failure(error) == "rate_limit"

    def test_class_name_heuristics(self):
        assert classify_failure(RateLimitError()) == "rate_limit"

    @pytest.mark.parametrize("error", [TimeoutError(), ConnectionError(), ValueError()])
    def test_everything_else_is_unknown(self, error):
        assert classify_failure(error) == "unknown"
