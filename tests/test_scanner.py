"""
Tests for the scan orchestrator.

Tests cover:
- Type 1 cycle: classification, pricing, price-sum check, qualification
- Type 2 and Type 3 cycles end to end against a mocked data provider
- Error containment (upstream failures, unexpected exceptions)
- Single-flight per scan type, waiter timeout, cached results
- Runtime configuration updates and per-scan snapshots
"""

import asyncio
from datetime import timedelta

import pytest

from arbscan.config import ScanConfig
from arbscan.exceptions import ConfigurationInvalid, UpstreamUnavailable
from arbscan.models import EventSnapshot, OpportunityType, ScanStatus, ScanType, empty_result
from arbscan.services.dependency_graph import DependencyGraph
from arbscan.services.market_data import OutcomeQuote
from arbscan.services.qualification import QualificationGate, qualification_gate
from arbscan.services.scan_cache import ScanCache
from arbscan.services.scanner import ArbitrageScanService
from arbscan.services.settlement_lag import SettlementLagScorer
from arbscan.utils.utcnow import utcnow

from conftest import make_event, make_market

WINNER_TITLE = "Who will win the 2024 presidential election?"


def _service(provider, **kwargs) -> ArbitrageScanService:
    kwargs.setdefault("request_delay", 0)
    kwargs.setdefault("poll_interval", 0.01)
    kwargs.setdefault("wait_timeout", 2.0)
    return ArbitrageScanService(provider, config=ScanConfig(), **kwargs)


def _blocking_fetch(release: asyncio.Event, payload):
    async def fetch(*args, **kwargs):
        await release.wait()
        return payload

    return fetch


# =============================================================================
# TYPE 1
# =============================================================================


class TestMultiOutcomeScan:
    """Type 1 scan cycle against mocked events."""

    @pytest.mark.asyncio
    async def test_overpriced_event_qualifies(self, mock_data_provider):
        mock_data_provider.get_all_events.return_value = [
            make_event("evt1", WINNER_TITLE, [0.55, 0.55])
        ]
        service = _service(mock_data_provider)

        result = await service.trigger_scan(ScanType.TYPE1)

        assert result.status == ScanStatus.COMPLETED
        assert result.errors == []
        assert result.total_events == 1
        assert result.multi_outcome_events_seen == 1
        assert result.with_mispricing_count == 1
        assert result.qualifying_count == 1

        event = result.opportunities[0]
        assert event.id == "evt1"
        assert event.opportunity_type == OpportunityType.SELL_ALL
        assert event.profit_after_fees == pytest.approx(0.08)
        assert event.url == "https://polymarket.com/event/evt1"
        assert event.classification.is_valid is True

        assert len(result.qualified) == 1
        assert result.qualified[0].type == ScanType.TYPE1
        assert result.qualified[0].id == "evt1"
        mock_data_provider.get_all_events.assert_awaited_once_with(100)

    @pytest.mark.asyncio
    async def test_order_book_quote_overrides_embedded_price(self, mock_data_provider):
        mock_data_provider.get_all_events.return_value = [
            make_event("evt1", WINNER_TITLE, [0.55, 0.55, 0.55])
        ]
        mock_data_provider.get_outcome_quote.return_value = OutcomeQuote(
            best_ask=0.30, best_bid=0.28, liquidity=800.0
        )
        service = _service(mock_data_provider)

        result = await service.trigger_scan("type1")

        event = result.events[0]
        assert [o.price for o in event.outcomes] == [0.30, 0.30, 0.30]
        assert event.min_liquidity == 800.0
        assert event.opportunity_type == OpportunityType.BUY_ALL
        assert mock_data_provider.get_outcome_quote.await_count == 3
        mock_data_provider.get_outcome_quote.assert_any_await("evt1_m0_yes")

    @pytest.mark.asyncio
    async def test_events_sorted_by_absolute_mispricing(self, mock_data_provider):
        mock_data_provider.get_all_events.return_value = [
            make_event("small", WINNER_TITLE, [0.52, 0.52]),
            make_event("large", WINNER_TITLE, [0.40, 0.40]),
        ]
        service = _service(mock_data_provider)

        result = await service.trigger_scan(ScanType.TYPE1)

        assert [e.id for e in result.events] == ["large", "small"]
        assert [e.id for e in result.opportunities] == ["large"]

    @pytest.mark.asyncio
    async def test_rejected_and_skipped_events(self, mock_data_provider):
        unpriceable = EventSnapshot(
            id="broken",
            title=WINNER_TITLE,
            markets=[
                make_market("b0", "Candidate A", clob_token_ids=[]),
                make_market("b1", "Candidate B", price=0.5),
            ],
        )
        single = make_event("single", WINNER_TITLE, [0.4])
        one_open = make_event("one_open", WINNER_TITLE, [0.4, 0.4])
        one_open.markets[1].closed = True

        mock_data_provider.get_all_events.return_value = [
            make_event("temporal", "Trump out as president by...?", [0.3, 0.3]),
            make_event("overpriced", WINNER_TITLE, [0.8, 0.8]),
            unpriceable,
            single,
            one_open,
        ]
        service = _service(mock_data_provider)

        result = await service.trigger_scan(ScanType.TYPE1)

        assert result.errors == []
        assert result.events == []
        assert result.total_events == 5
        # one_open is counted and then rejected for too few open outcomes
        assert result.multi_outcome_events_seen == 4

    @pytest.mark.asyncio
    async def test_failing_event_does_not_abort_cycle(self, mock_data_provider):
        def quote(token_id):
            if token_id.startswith("bad_"):
                raise RuntimeError("boom")
            return OutcomeQuote.sentinel()

        mock_data_provider.get_all_events.return_value = [
            make_event("bad", WINNER_TITLE, [0.55, 0.55]),
            make_event("good", WINNER_TITLE, [0.55, 0.55]),
        ]
        mock_data_provider.get_outcome_quote.side_effect = quote
        service = _service(mock_data_provider)

        result = await service.trigger_scan(ScanType.TYPE1)

        assert result.status == ScanStatus.COMPLETED
        assert result.multi_outcome_events_seen == 2
        assert [e.id for e in result.opportunities] == ["good"]
        assert [q.id for q in result.qualified] == ["good"]
        assert len(result.errors) == 1
        assert result.errors[0] == "Event bad: boom"

    @pytest.mark.asyncio
    async def test_upstream_failure_reported_in_errors(self, mock_data_provider):
        mock_data_provider.get_all_events.side_effect = UpstreamUnavailable(
            "Gamma /events request failed: 503", source="gamma"
        )
        service = _service(mock_data_provider)

        result = await service.trigger_scan(ScanType.TYPE1)

        assert result.status == ScanStatus.COMPLETED
        assert result.errors == ["Gamma /events request failed: 503"]
        assert service.get_last_result(ScanType.TYPE1) is result

    @pytest.mark.asyncio
    async def test_unexpected_exception_contained(self, mock_data_provider):
        mock_data_provider.get_all_events.side_effect = RuntimeError("kaboom")
        service = _service(mock_data_provider)

        result = await service.trigger_scan(ScanType.TYPE1)

        assert result.status == ScanStatus.COMPLETED
        assert result.errors == ["Scan failed: kaboom"]
        assert service.get_status(ScanType.TYPE1).scan_in_progress is False


# =============================================================================
# SINGLE-FLIGHT AND CACHING
# =============================================================================


class TestScanLifecycle:
    @pytest.mark.asyncio
    async def test_concurrent_triggers_share_one_cycle(self, mock_data_provider):
        release = asyncio.Event()
        mock_data_provider.get_all_events.side_effect = _blocking_fetch(
            release, [make_event("evt1", WINNER_TITLE, [0.55, 0.55])]
        )
        service = _service(mock_data_provider)

        first = asyncio.create_task(service.trigger_scan(ScanType.TYPE1))
        await asyncio.sleep(0)
        second = asyncio.create_task(service.trigger_scan(ScanType.TYPE1))
        await asyncio.sleep(0.05)
        assert service.get_status(ScanType.TYPE1).scan_in_progress is True

        release.set()
        result_a, result_b = await asyncio.gather(first, second)

        assert result_a is result_b
        assert mock_data_provider.get_all_events.await_count == 1

    @pytest.mark.asyncio
    async def test_waiter_times_out_with_in_progress_result(self, mock_data_provider):
        release = asyncio.Event()
        mock_data_provider.get_all_events.side_effect = _blocking_fetch(release, [])
        service = _service(mock_data_provider, wait_timeout=0.05)

        first = asyncio.create_task(service.trigger_scan(ScanType.TYPE1))
        await asyncio.sleep(0)
        waiting = await service.trigger_scan(ScanType.TYPE1)

        assert waiting.status == ScanStatus.IN_PROGRESS
        assert waiting.errors == ["Scan in progress, please wait..."]

        release.set()
        completed = await first
        assert completed.status == ScanStatus.COMPLETED

    @pytest.mark.asyncio
    async def test_scan_types_run_independently(self, mock_data_provider):
        release = asyncio.Event()
        mock_data_provider.get_all_events.side_effect = _blocking_fetch(release, [])
        service = _service(mock_data_provider)

        type1 = asyncio.create_task(service.trigger_scan(ScanType.TYPE1))
        await asyncio.sleep(0)
        type2 = await service.trigger_scan(ScanType.TYPE2)

        assert type2.status == ScanStatus.COMPLETED
        release.set()
        await type1

    def test_not_run_sentinel(self, mock_data_provider):
        service = _service(mock_data_provider)
        result = service.get_last_result("type2")
        assert result.status == ScanStatus.NOT_RUN
        assert result.errors == [
            "No cross-market scan performed yet. Trigger a type2 scan first."
        ]

    @pytest.mark.asyncio
    async def test_status_report(self, mock_data_provider):
        mock_data_provider.get_all_events.return_value = [
            make_event("evt1", WINNER_TITLE, [0.55, 0.55])
        ]
        service = _service(mock_data_provider)

        before = service.get_status(ScanType.TYPE1)
        assert before.has_cached_result is False
        assert before.cached_result_timestamp is None

        result = await service.trigger_scan(ScanType.TYPE1)
        after = service.get_status(ScanType.TYPE1)
        assert after.has_cached_result is True
        assert after.cached_result_timestamp == result.timestamp
        assert after.cached_event_count == 1
        assert after.cached_opportunity_count == 1
        assert after.cached_errors == []

    def test_unknown_scan_type_rejected(self, mock_data_provider):
        service = _service(mock_data_provider)
        with pytest.raises(ValueError):
            service.get_last_result("type9")


# =============================================================================
# CONFIGURATION
# =============================================================================


class TestScanConfiguration:
    def test_partial_update_merges(self, mock_data_provider):
        service = _service(mock_data_provider)
        updated = service.set_config({"fee_rate": 0.01})
        assert updated.fee_rate == 0.01
        assert updated.min_liquidity == 100.0
        assert service.get_config() is updated

    def test_unknown_key_rejected(self, mock_data_provider):
        service = _service(mock_data_provider)
        with pytest.raises(ConfigurationInvalid) as exc_info:
            service.set_config({"bogus": 1})
        assert any(err.startswith("bogus") for err in exc_info.value.errors)
        assert service.get_config() == ScanConfig()

    def test_out_of_range_rejected(self, mock_data_provider):
        service = _service(mock_data_provider)
        with pytest.raises(ConfigurationInvalid) as exc_info:
            service.set_config({"fee_rate": 0.7, "max_events": 0})
        fields = {err.split(":")[0] for err in exc_info.value.errors}
        assert fields == {"fee_rate", "max_events"}
        assert service.get_config().fee_rate == 0.02

    @pytest.mark.asyncio
    async def test_running_scan_keeps_its_snapshot(self, mock_data_provider):
        release = asyncio.Event()
        mock_data_provider.get_all_events.side_effect = _blocking_fetch(
            release, [make_event("evt1", WINNER_TITLE, [0.55, 0.55])]
        )
        service = _service(mock_data_provider)

        scan = asyncio.create_task(service.trigger_scan(ScanType.TYPE1))
        await asyncio.sleep(0)
        service.set_config({"min_mispricing": 0.5})
        release.set()
        result = await scan

        assert result.qualifying_count == 1
        assert service.get_config().min_mispricing == 0.5

        mock_data_provider.get_all_events.side_effect = None
        mock_data_provider.get_all_events.return_value = [
            make_event("evt1", WINNER_TITLE, [0.55, 0.55])
        ]
        rerun = await service.trigger_scan(ScanType.TYPE1)
        assert rerun.qualifying_count == 0


# =============================================================================
# TYPE 2 AND TYPE 3
# =============================================================================


class TestCrossMarketScan:
    @pytest.mark.asyncio
    async def test_threshold_violation_found(self, mock_data_provider):
        mock_data_provider.get_all_markets.return_value = [
            make_market("btc150", "Will BTC reach $150k by June?", price=0.35),
            make_market("btc100", "Will BTC reach $100k by June?", price=0.25),
            make_market("lakers", "Will the Lakers win the NBA Finals?", price=0.15),
        ]
        service = _service(mock_data_provider, max_markets=50)

        result = await service.trigger_scan(ScanType.TYPE2)

        mock_data_provider.get_all_markets.assert_awaited_once_with(50, active=True, closed=False)
        assert result.stats.total_markets == 3
        assert len(result.dependencies) == 1
        assert len(result.violations) == 1
        assert len(result.opportunities) == 1
        assert result.qualified[0].type == ScanType.TYPE2
        assert result.qualified[0].id == "btc150->btc100"
        assert result.qualified[0].profit_after_fees == pytest.approx(0.02)

    @pytest.mark.asyncio
    async def test_upstream_failure(self, mock_data_provider):
        mock_data_provider.get_all_markets.side_effect = UpstreamUnavailable("down", source="gamma")
        service = _service(mock_data_provider)

        result = await service.trigger_scan(ScanType.TYPE2)

        assert result.errors == ["down"]
        assert result.dependencies == []


class TestSettlementLagScan:
    @pytest.mark.asyncio
    async def test_recently_closed_market_flagged(self, mock_data_provider):
        now = utcnow()
        lagging = make_market(
            "lagging",
            "Will the bill pass?",
            price=0.08,
            end_date=now - timedelta(days=3),
            last_trade_at=now - timedelta(hours=12),
            active=False,
            closed=True,
        )
        stale_history = make_market(
            "ancient", price=0.08, end_date=now - timedelta(days=200), closed=True
        )
        mock_data_provider.get_all_markets.side_effect = [[lagging, stale_history], []]
        service = _service(mock_data_provider, settlement_max_markets=20, active_page_size=10)

        result = await service.trigger_scan(ScanType.TYPE3)

        first_call, second_call = mock_data_provider.get_all_markets.await_args_list
        assert first_call.args == (20,)
        assert first_call.kwargs == {"closed": True, "order": "endDate", "ascending": False}
        assert second_call.args == (10,)
        assert second_call.kwargs["active"] is True

        assert result.stats.total_markets == 1
        assert result.stats.markets_analyzed == 1
        assert result.stats.opportunities_found == 1
        analysis = result.opportunities[0]
        assert analysis.market_id == "lagging"
        assert analysis.confidence == 55
        assert analysis.profit_after_fees == pytest.approx(0.06)
        assert result.qualified[0].strategy == "SELL YES"
        # Closed markets are never priced from the order book
        mock_data_provider.get_outcome_quote.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_active_market_priced_from_order_book(self, mock_data_provider):
        active = make_market("act", "Will the merger close?", price=0.40)
        mock_data_provider.get_all_markets.side_effect = [[], [active]]
        mock_data_provider.get_outcome_quote.return_value = OutcomeQuote(
            best_ask=0.95, best_bid=0.70, liquidity=300.0
        )
        service = _service(mock_data_provider)

        result = await service.trigger_scan(ScanType.TYPE3)

        mock_data_provider.get_outcome_quote.assert_awaited_once_with("act_yes")
        assert result.stats.markets_analyzed == 1
        # Only the wide spread fires, one signal is not enough
        assert result.opportunities == []


# =============================================================================
# BUILDING BLOCKS
# =============================================================================


class TestQualificationGate:
    def test_filters_and_orders_across_record_types(self, fixed_now):
        graph = DependencyGraph()
        graph.add_markets(
            [
                make_market("btc150", "Will BTC reach $150k by June?", price=0.35),
                make_market("btc100", "Will BTC reach $100k by June?", price=0.25),
            ]
        )
        graph.build_edges()
        edges = graph.find_violations()

        settlement = SettlementLagScorer().analyze(
            make_market(
                "lag",
                price=0.30,
                end_date=fixed_now - timedelta(days=10),
                best_bid=0.02,
                best_ask=0.30,
            ),
            fixed_now,
        )
        quiet = SettlementLagScorer().analyze(make_market("quiet", price=0.5), fixed_now)

        qualified = qualification_gate.collect([*edges, quiet, settlement])

        assert [o.id for o in qualified] == ["lag", "btc150->btc100"]
        assert [o.type for o in qualified] == [ScanType.TYPE3, ScanType.TYPE2]

    def test_empty_input(self):
        assert QualificationGate().collect([]) == []


class TestScanCache:
    def test_single_claim(self):
        cache = ScanCache(ScanType.TYPE2)
        assert cache.begin() is True
        assert cache.begin() is False

        result = empty_result(ScanType.TYPE2, ScanStatus.COMPLETED, error="x")
        cache.finish(result)
        assert cache.in_progress is False
        assert cache.last_result is result
        assert cache.begin() is True
        cache.abandon()
        assert cache.in_progress is False
        assert cache.last_result is result
