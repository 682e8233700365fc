"""Tests for data models, settings and scan result placeholders."""

from datetime import datetime, timezone

import pytest
from pydantic import ValidationError

from arbscan.config import ScanConfig, Settings
from arbscan.exceptions import ConfigurationInvalid
from arbscan.models import (
    EventSnapshot,
    MarketSnapshot,
    MultiOutcomeScanResult,
    ScanStatus,
    ScanType,
    SettlementLagScanResult,
    empty_result,
)


class TestMarketSnapshot:
    def test_from_gamma_response(self, raw_market_response):
        market = MarketSnapshot.from_gamma_response(raw_market_response)
        assert market.id == "0xabc123"
        assert market.clob_token_ids == ["token_yes_1", "token_no_1"]
        assert market.yes_token_id == "token_yes_1"
        assert market.outcome_prices == [0.65, 0.35]
        assert market.price == 0.65
        assert market.liquidity == 5000.0
        assert market.volume == pytest.approx(12345.67)
        assert market.price_24h_ago == pytest.approx(0.60)
        assert market.avg_volume_7d == pytest.approx(300.0)
        assert market.price_velocity_1h == pytest.approx(-0.01)
        assert market.end_date == datetime(2025, 12, 31, 12, 0, tzinfo=timezone.utc)

    def test_missing_fields_default(self):
        market = MarketSnapshot.from_gamma_response({"id": "42"})
        assert market.id == "42"
        assert market.price is None
        assert market.yes_token_id is None
        assert market.avg_volume_7d is None
        assert market.end_date is None

    def test_out_of_range_prices_clamped(self):
        market = MarketSnapshot.from_gamma_response(
            {"conditionId": "0x1", "outcomePrices": ["1.2", "-0.2"], "bestBid": 1.5}
        )
        assert market.outcome_prices == [1.0, 0.0]
        assert market.best_bid == 1.0

    def test_settled_string_flag(self):
        market = MarketSnapshot.from_gamma_response({"conditionId": "0x1", "settled": "true"})
        assert market.settled is True

    def test_naive_and_epoch_datetimes_become_utc(self):
        market = MarketSnapshot(id="m", end_date="2025-01-01T00:00:00", last_trade_at=1735689600000)
        assert market.end_date.tzinfo is not None
        assert market.last_trade_at == datetime(2025, 1, 1, tzinfo=timezone.utc)

    def test_label_prefers_group_title(self):
        market = MarketSnapshot(id="m", question="Will Alice win?", group_item_title=" Alice ")
        assert market.label == "Alice"
        assert MarketSnapshot(id="m", question="Will Bob win?").label == "Will Bob win?"


class TestEventSnapshot:
    def test_from_gamma_response(self, raw_event_response):
        event = EventSnapshot.from_gamma_response(raw_event_response)
        assert event.id == "evt_001"
        assert event.title == "Bitcoin Price Predictions"
        assert [m.id for m in event.open_markets] == ["0xabc123", "0xdef789"]

    def test_description_truncated(self):
        event = EventSnapshot.from_gamma_response({"id": 7, "description": "x" * 500})
        assert event.id == "7"
        assert len(event.description) == 200


class TestScanConfig:
    def test_defaults(self):
        config = ScanConfig()
        assert config.fee_rate == 0.02
        assert config.alpha_extraction == 0.9
        assert config.min_liquidity == 100.0
        assert config.max_events == 100
        assert config.min_mispricing == 0.05

    @pytest.mark.parametrize(
        "field,value",
        [
            ("fee_rate", -0.01),
            ("fee_rate", 0.5),
            ("alpha_extraction", 0.0),
            ("alpha_extraction", 1.5),
            ("min_liquidity", -1),
            ("max_events", 0),
            ("min_mispricing", 1.0),
        ],
    )
    def test_out_of_range_values_rejected(self, field, value):
        with pytest.raises(ValidationError):
            ScanConfig(**{field: value})

    def test_unknown_fields_rejected(self):
        with pytest.raises(ValidationError):
            ScanConfig(fee=0.01)

    def test_frozen(self):
        config = ScanConfig()
        with pytest.raises(ValidationError):
            config.fee_rate = 0.05

    def test_from_settings(self):
        config = ScanConfig.from_settings(Settings(FEE_RATE=0.01, MAX_EVENTS=25))
        assert config.fee_rate == 0.01
        assert config.max_events == 25


class TestSettings:
    def test_url_normalization(self):
        settings = Settings(GAMMA_API_URL=' "https://gamma.example.com/" ')
        assert settings.GAMMA_API_URL == "https://gamma.example.com"

    def test_url_from_environment(self, monkeypatch):
        monkeypatch.setenv("CLOB_API_URL", "https://clob.example.com///")
        assert Settings().CLOB_API_URL == "https://clob.example.com"


class TestScanResults:
    @pytest.mark.parametrize(
        "scan_type,message",
        [
            (ScanType.TYPE1, "No scan performed yet. Trigger a type1 scan first."),
            (ScanType.TYPE2, "No cross-market scan performed yet. Trigger a type2 scan first."),
            (ScanType.TYPE3, "No settlement lag scan performed yet. Trigger a type3 scan first."),
        ],
    )
    def test_not_run_messages(self, scan_type, message):
        result = empty_result(scan_type, ScanStatus.NOT_RUN)
        assert result.scan_type == scan_type
        assert result.status == ScanStatus.NOT_RUN
        assert result.errors == [message]
        assert result.opportunity_count == 0

    def test_in_progress_placeholder(self):
        result = empty_result(ScanType.TYPE3, ScanStatus.IN_PROGRESS)
        assert isinstance(result, SettlementLagScanResult)
        assert result.errors == ["Scan in progress, please wait..."]

    def test_explicit_error(self):
        result = empty_result(ScanType.TYPE1, ScanStatus.COMPLETED, error="Scan failed: boom")
        assert isinstance(result, MultiOutcomeScanResult)
        assert result.errors == ["Scan failed: boom"]

    def test_result_serializes(self):
        payload = MultiOutcomeScanResult().model_dump(mode="json")
        assert payload["scan_type"] == "type1"
        assert payload["status"] == "completed"
        assert payload["qualified"] == []


class TestExceptions:
    def test_configuration_invalid_is_value_error(self):
        error = ConfigurationInvalid("bad", errors=["fee_rate: too big"])
        assert isinstance(error, ValueError)
        assert error.errors == ["fee_rate: too big"]
