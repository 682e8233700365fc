"""
Arbitrage scan service.

Runs one on-demand scan cycle per scan type and caches its result:

- type1: multi-outcome events, classified, priced and run through the
  Bregman engine
- type2: active markets linked into a dependency graph
- type3: recently closed and active markets scored for settlement lag

At most one scan per type is in flight.  A second trigger for the same
type waits for the running scan and returns its result instead of
starting another cycle.
"""

import asyncio
import time
from datetime import timedelta
from typing import Any, Awaitable, Callable, Optional, Union

from pydantic import ValidationError

from arbscan.config import ScanConfig, settings
from arbscan.exceptions import ConfigurationInvalid, MalformedInput, UpstreamUnavailable
from arbscan.models import (
    CrossMarketScanResult,
    EventAnalysis,
    EventSnapshot,
    MarketSnapshot,
    MultiOutcomeScanResult,
    Outcome,
    ScanResult,
    ScanStatus,
    ScanStatusReport,
    ScanType,
    SettlementLagScanResult,
    SettlementLagStats,
    clamp_probability,
    empty_result,
)
from arbscan.services.dependency_graph import DependencyGraph
from arbscan.services.market_classifier import classify, validate_price_sum
from arbscan.services.market_data import MarketDataProvider
from arbscan.services.optimization import MultiOutcomeArbitrageEngine
from arbscan.services.qualification import QualificationGate
from arbscan.services.scan_cache import ScanCache
from arbscan.services.settlement_lag import SettlementLagScorer
from arbscan.utils.logger import get_logger
from arbscan.utils.utcnow import make_aware, utcnow

logger = get_logger(__name__)

# Events with |mispricing| at or above this count toward with_mispricing_count
MISPRICING_REPORT_THRESHOLD = 0.01

# Spread assumed around an embedded price when no order book is available
ESTIMATED_HALF_SPREAD = 0.02

EVENT_URL = "https://polymarket.com/event/{slug}"


class ArbitrageScanService:
    """Orchestrates scan cycles and owns the per-type result caches."""

    def __init__(
        self,
        data_provider: MarketDataProvider,
        config: Optional[ScanConfig] = None,
        wait_timeout: Optional[float] = None,
        poll_interval: Optional[float] = None,
        request_delay: Optional[float] = None,
        max_markets: Optional[int] = None,
        min_similarity: Optional[float] = None,
        settlement_max_markets: Optional[int] = None,
        settlement_lookback_days: Optional[int] = None,
        active_page_size: Optional[int] = None,
    ):
        self.data_provider = data_provider
        self._config = config or ScanConfig.from_settings(settings)
        self.wait_timeout = settings.SCAN_WAIT_TIMEOUT_SECONDS if wait_timeout is None else wait_timeout
        self.poll_interval = settings.SCAN_WAIT_POLL_SECONDS if poll_interval is None else poll_interval
        self.request_delay = settings.REQUEST_DELAY_SECONDS if request_delay is None else request_delay
        self.max_markets = max_markets or settings.MAX_MARKETS_TO_SCAN
        self.min_similarity = (
            settings.MIN_SUBJECT_SIMILARITY if min_similarity is None else min_similarity
        )
        self.settlement_max_markets = settlement_max_markets or settings.SETTLEMENT_LAG_MAX_MARKETS
        self.settlement_lookback = timedelta(
            days=settlement_lookback_days or settings.SETTLEMENT_LAG_LOOKBACK_DAYS
        )
        self.active_page_size = active_page_size or settings.PAGE_SIZE

        self.gate = QualificationGate()
        self._caches: dict[ScanType, ScanCache] = {t: ScanCache(t) for t in ScanType}
        self._runners: dict[ScanType, Callable[[ScanConfig], Awaitable[ScanResult]]] = {
            ScanType.TYPE1: self._scan_multi_outcome,
            ScanType.TYPE2: self._scan_cross_market,
            ScanType.TYPE3: self._scan_settlement_lag,
        }

    # ==================== CONFIG ====================

    def get_config(self) -> ScanConfig:
        return self._config

    def set_config(self, partial: dict[str, Any]) -> ScanConfig:
        """Merge a partial update into the current config.

        Raises:
            ConfigurationInvalid: unknown keys or out-of-range values
        """
        merged = {**self._config.model_dump(), **partial}
        try:
            new_config = ScanConfig(**merged)
        except ValidationError as e:
            details = [
                f"{'.'.join(str(p) for p in err['loc'])}: {err['msg']}" for err in e.errors()
            ]
            raise ConfigurationInvalid("Invalid scan configuration", errors=details) from e

        self._config = new_config
        logger.info("Scan configuration updated", **new_config.model_dump())
        return new_config

    # ==================== SCAN LIFECYCLE ====================

    async def trigger_scan(self, scan_type: Union[ScanType, str]) -> ScanResult:
        """Run a scan, or wait on the one already running for this type."""
        scan_type = ScanType(scan_type)
        cache = self._caches[scan_type]

        if not cache.begin():
            logger.info("Scan already in progress, waiting", scan_type=scan_type.value)
            return await self._wait_for_scan(cache)

        config = self._config
        result: Optional[ScanResult] = None
        try:
            result = await self._runners[scan_type](config)
        except Exception as e:
            # Nothing escapes a cycle: a failure is reported in errors[]
            logger.exception("Scan cycle failed", scan_type=scan_type.value, error=str(e))
            result = empty_result(scan_type, ScanStatus.COMPLETED, error=f"Scan failed: {e}")
        finally:
            if result is None:
                cache.abandon()

        cache.finish(result)
        return result

    async def _wait_for_scan(self, cache: ScanCache) -> ScanResult:
        loop = asyncio.get_running_loop()
        deadline = loop.time() + self.wait_timeout
        while cache.in_progress and loop.time() < deadline:
            await asyncio.sleep(self.poll_interval)

        if cache.last_result is not None:
            return cache.last_result
        return empty_result(cache.scan_type, ScanStatus.IN_PROGRESS)

    def get_last_result(self, scan_type: Union[ScanType, str]) -> ScanResult:
        scan_type = ScanType(scan_type)
        result = self._caches[scan_type].last_result
        if result is None:
            return empty_result(scan_type, ScanStatus.NOT_RUN)
        return result

    def get_status(self, scan_type: Union[ScanType, str]) -> ScanStatusReport:
        scan_type = ScanType(scan_type)
        cache = self._caches[scan_type]
        result = cache.last_result
        return ScanStatusReport(
            scan_type=scan_type,
            scan_in_progress=cache.in_progress,
            has_cached_result=result is not None,
            cached_result_timestamp=result.timestamp if result else None,
            cached_event_count=result.item_count if result else 0,
            cached_opportunity_count=result.opportunity_count if result else 0,
            cached_errors=list(result.errors) if result else [],
        )

    # ==================== TYPE 1 ====================

    async def _price_outcomes(self, markets: list[MarketSnapshot]) -> list[Outcome]:
        """Embedded YES price first, then the order book when it has real data."""
        outcomes = []
        for market in markets:
            price = market.price
            liquidity = market.liquidity
            token_id = market.yes_token_id

            if token_id is None and price is None:
                raise MalformedInput(
                    f"Market {market.id} has neither a YES token nor an embedded price",
                    item_id=market.id,
                )

            if token_id is not None:
                quote = await self.data_provider.get_outcome_quote(token_id)
                if quote.best_ask != 0.5 or quote.liquidity > 0:
                    price = quote.best_ask
                    liquidity = quote.liquidity
                await asyncio.sleep(self.request_delay)

            outcomes.append(
                Outcome(
                    id=market.id,
                    label=market.label,
                    price=clamp_probability(price if price is not None else 0.5),
                    liquidity=max(0.0, liquidity),
                    token_id=token_id,
                )
            )
        return outcomes

    async def _analyze_event(
        self, event: EventSnapshot, engine: MultiOutcomeArbitrageEngine
    ) -> Optional[EventAnalysis]:
        markets = event.open_markets
        classification = classify(event.title, markets)
        if not classification.is_valid:
            logger.debug(
                "Event rejected by classifier",
                event_id=event.id,
                category=classification.category.value,
                reason=classification.reason,
            )
            return None

        try:
            outcomes = await self._price_outcomes(markets)
        except MalformedInput as e:
            logger.warning("Skipping event", event_id=event.id, item_id=e.item_id, reason=str(e))
            return None

        total = sum(o.price for o in outcomes)
        check = validate_price_sum(total, len(outcomes))
        if not check.is_valid:
            logger.info("Event failed price-sum check", event_id=event.id, reason=check.reason)
            return None

        return engine.analyze_event(
            event.id,
            outcomes,
            slug=event.slug,
            title=event.title,
            description=event.description,
            url=EVENT_URL.format(slug=event.slug) if event.slug else "",
            is_neg_risk=event.neg_risk,
            classification=classification,
        )

    async def _scan_multi_outcome(self, config: ScanConfig) -> MultiOutcomeScanResult:
        start = time.perf_counter()
        result = MultiOutcomeScanResult()

        try:
            events = await self.data_provider.get_all_events(config.max_events)
        except UpstreamUnavailable as e:
            logger.error("Event fetch failed", source=e.source, error=str(e))
            result.errors.append(str(e))
            result.scan_duration_ms = (time.perf_counter() - start) * 1000
            return result

        engine = MultiOutcomeArbitrageEngine(
            fee_rate=config.fee_rate,
            alpha_extraction=config.alpha_extraction,
            epsilon_d=config.min_mispricing,
            min_liquidity=config.min_liquidity,
        )

        analyses: list[EventAnalysis] = []
        for event in events:
            if len(event.markets) < 2:
                continue
            result.multi_outcome_events_seen += 1
            try:
                analysis = await self._analyze_event(event, engine)
            except Exception as e:
                # One bad event never costs the rest of the cycle
                logger.warning("Event analysis failed", event_id=event.id, error=str(e))
                result.errors.append(f"Event {event.id}: {e}")
                continue
            if analysis is not None:
                analyses.append(analysis)

        analyses.sort(key=lambda a: a.absolute_mispricing, reverse=True)
        result.qualified = self.gate.collect(analyses)
        by_id = {a.id: a for a in analyses}

        result.events = analyses
        result.opportunities = [by_id[o.id] for o in result.qualified]
        result.total_events = len(events)
        result.with_mispricing_count = sum(
            1 for a in analyses if a.absolute_mispricing >= MISPRICING_REPORT_THRESHOLD
        )
        result.qualifying_count = len(result.opportunities)
        result.scan_duration_ms = (time.perf_counter() - start) * 1000

        logger.info(
            "Multi-outcome scan complete",
            total_events=result.total_events,
            multi_outcome_events=result.multi_outcome_events_seen,
            analyzed=len(analyses),
            with_mispricing=result.with_mispricing_count,
            qualifying=result.qualifying_count,
            duration_ms=round(result.scan_duration_ms, 1),
        )
        return result

    # ==================== TYPE 2 ====================

    async def _scan_cross_market(self, config: ScanConfig) -> CrossMarketScanResult:
        start = time.perf_counter()
        result = CrossMarketScanResult()

        try:
            markets = await self.data_provider.get_all_markets(
                self.max_markets, active=True, closed=False
            )
        except UpstreamUnavailable as e:
            logger.error("Market fetch failed", source=e.source, error=str(e))
            result.errors.append(str(e))
            result.scan_duration_ms = (time.perf_counter() - start) * 1000
            return result

        graph = DependencyGraph(fee_rate=config.fee_rate, min_similarity=self.min_similarity)
        graph.add_markets(markets)
        graph.build_edges()
        violations = graph.find_violations()

        result.dependencies = list(graph.edges)
        result.violations = violations
        result.opportunities = [e for e in violations if e.qualifies]
        result.qualified = self.gate.collect(violations)
        result.stats = graph.get_stats()
        result.scan_duration_ms = (time.perf_counter() - start) * 1000

        logger.info(
            "Cross-market scan complete",
            markets=result.stats.total_markets,
            edges=result.stats.total_edges,
            violations=result.stats.violations,
            opportunities=result.stats.opportunities,
            duration_ms=round(result.scan_duration_ms, 1),
        )
        return result

    # ==================== TYPE 3 ====================

    async def _fetch_settlement_candidates(self) -> list[MarketSnapshot]:
        closed = await self.data_provider.get_all_markets(
            self.settlement_max_markets, closed=True, order="endDate", ascending=False
        )
        active = await self.data_provider.get_all_markets(
            self.active_page_size, active=True, closed=False, order="endDate", ascending=False
        )

        now = utcnow()
        recent = []
        for market in closed + active:
            if market.end_date is None or now - make_aware(market.end_date) < self.settlement_lookback:
                recent.append(market)
        return recent

    async def _enrich_for_settlement(self, market: MarketSnapshot) -> MarketSnapshot:
        update: dict[str, Any] = {}
        if market.price is not None:
            update["best_bid"] = max(0.0, market.price - ESTIMATED_HALF_SPREAD)
            update["best_ask"] = min(1.0, market.price + ESTIMATED_HALF_SPREAD)

        token_id = market.yes_token_id
        if market.active and not market.closed and token_id is not None:
            quote = await self.data_provider.get_outcome_quote(token_id)
            if quote.best_ask != 0.5 or quote.best_bid != 0.5:
                update.update(
                    price=quote.best_ask,
                    best_bid=quote.best_bid,
                    best_ask=quote.best_ask,
                    liquidity=quote.liquidity,
                )
            await asyncio.sleep(self.request_delay)

        return market.model_copy(update=update) if update else market

    async def _scan_settlement_lag(self, config: ScanConfig) -> SettlementLagScanResult:
        start = time.perf_counter()
        result = SettlementLagScanResult()

        try:
            candidates = await self._fetch_settlement_candidates()
        except UpstreamUnavailable as e:
            logger.error("Market fetch failed", source=e.source, error=str(e))
            result.errors.append(str(e))
            result.scan_duration_ms = (time.perf_counter() - start) * 1000
            return result

        markets = [await self._enrich_for_settlement(m) for m in candidates]

        scorer = SettlementLagScorer(fee_rate=config.fee_rate)
        opportunities = scorer.scan(markets)

        result.opportunities = opportunities
        result.qualified = self.gate.collect(opportunities)
        result.stats = SettlementLagStats(
            total_markets=len(markets),
            markets_analyzed=sum(1 for m in markets if m.price is not None),
            opportunities_found=len(opportunities),
            total_potential_profit=sum(o.potential_profit for o in opportunities),
        )
        result.scan_duration_ms = (time.perf_counter() - start) * 1000

        logger.info(
            "Settlement lag scan complete",
            markets=result.stats.total_markets,
            analyzed=result.stats.markets_analyzed,
            opportunities=result.stats.opportunities_found,
            duration_ms=round(result.scan_duration_ms, 1),
        )
        return result
