"""Pricing Oracle for RenoCost.

Regionally adjusted material prices and labor rates from static tables,
with a TTL cache of resolved lookups. No network dependency: every
lookup is a deterministic function of (name, zip).

Matching rules:
- Case-insensitive, bidirectional substring match against table names
- Multiple matches: the longest table name wins, ties go to table order
- No match: documented default (lower confidence)

Regional adjustment:
- ZIP -> state via 3-digit prefix ranges
- state -> multiplier (unmapped -> 1.0, "National Average")
"""

import threading
import time
from typing import Callable, Dict, Iterable, List, Optional, Tuple

import structlog

from renocost.config.settings import settings
from renocost.models.estimate import CostRange
from renocost.models.estimate_request import EstimateRequest, QualityTier, RoomType
from renocost.models.pricing import (
    LaborRate,
    PriceCacheEntry,
    PriceQuote,
    PricingContext,
    RegionalProfile,
)
from renocost.services.pricing_tables import (
    DEFAULT_CONFIDENCE,
    DEFAULT_MATERIAL_PRICE,
    DEFAULT_TRADE,
    DEFAULT_TRADES,
    LABOR_RATES,
    LABOR_SOURCE,
    MATCHED_CONFIDENCE,
    MATERIAL_PRICES,
    MATERIAL_SOURCE,
    ROOM_COST_PER_SQFT,
    STATE_MULTIPLIERS,
    STATE_NAMES,
    TRADES_BY_ROOM,
    ZIP_PREFIX_RANGES,
)

logger = structlog.get_logger(__name__)

CacheKey = Tuple[str, str]


def best_match(query: str, names: Iterable[str]) -> Optional[str]:
    """Find the table name matching a free-text query.

    Args:
        query: Free-text item or trade name.
        names: Table names in table order.

    Returns:
        The longest name that contains or is contained in the query,
        first in table order among equals; None when nothing matches.
    """
    term = query.strip().lower()
    if not term:
        return None

    best = None
    for name in names:
        if term in name or name in term:
            if best is None or len(name) > len(best):
                best = name
    return best


def _adjust(value: float, multiplier: float) -> float:
    return round(value * multiplier, 2)


class PricingOracle:
    """Static-table pricing reference with a TTL cache.

    Safe to share between concurrent pipeline runs: the cache is guarded
    by a lock held only for dictionary reads and writes.
    """

    def __init__(
        self,
        ttl_seconds: Optional[float] = None,
        clock: Callable[[], float] = time.monotonic,
    ):
        """Initialize PricingOracle.

        Args:
            ttl_seconds: Cache TTL (default from settings).
            clock: Monotonic time source (injectable for tests).
        """
        self.ttl_seconds = ttl_seconds if ttl_seconds is not None else settings.price_cache_ttl_seconds
        self._clock = clock
        self._lock = threading.Lock()
        self._price_cache: Dict[CacheKey, PriceCacheEntry] = {}
        self._labor_cache: Dict[CacheKey, PriceCacheEntry] = {}

    # -------------------------------------------------------------------------
    # Region
    # -------------------------------------------------------------------------

    @staticmethod
    def resolve_region(zip_code: Optional[str]) -> RegionalProfile:
        """Resolve a ZIP code to its state and regional multiplier."""
        if not zip_code:
            return RegionalProfile()

        prefix = zip_code.strip()[:3]
        if len(prefix) < 3 or not prefix.isdigit():
            return RegionalProfile()

        prefix_int = int(prefix)
        for zip_range in ZIP_PREFIX_RANGES:
            if zip_range.contains(prefix_int):
                state = zip_range.state
                return RegionalProfile(
                    state=state,
                    state_name=STATE_NAMES.get(state, state),
                    multiplier=STATE_MULTIPLIERS.get(state, 1.0),
                )
        return RegionalProfile()

    # -------------------------------------------------------------------------
    # Materials
    # -------------------------------------------------------------------------

    def price_for(self, item_name: str, zip_code: Optional[str] = None) -> PriceQuote:
        """Get the regionally adjusted price of a material.

        Args:
            item_name: Free-text material name.
            zip_code: Optional ZIP code for regional adjustment.

        Returns:
            PriceQuote (cached for ttl_seconds per (name, zip)).
        """
        key = (item_name.strip().lower(), (zip_code or "").strip())
        return self._cached(self._price_cache, key, lambda: self._lookup_price(item_name, zip_code))

    def prices_for(self, names: Iterable[str], zip_code: Optional[str] = None) -> List[PriceQuote]:
        """Get prices for several materials, in order."""
        return [self.price_for(name, zip_code) for name in names]

    def _lookup_price(self, item_name: str, zip_code: Optional[str]) -> PriceQuote:
        region = self.resolve_region(zip_code)
        matched = best_match(item_name, MATERIAL_PRICES)
        price, unit, low, high = MATERIAL_PRICES[matched] if matched else DEFAULT_MATERIAL_PRICE

        quote = PriceQuote(
            query=item_name,
            matched_name=matched.title() if matched else item_name,
            price=_adjust(price, region.multiplier),
            low=_adjust(low, region.multiplier),
            high=_adjust(high, region.multiplier),
            unit=unit,
            confidence=MATCHED_CONFIDENCE if matched else DEFAULT_CONFIDENCE,
            source=MATERIAL_SOURCE,
            region=region.state_name,
        )
        logger.debug(
            "material_price_resolved",
            item=item_name,
            matched=matched,
            price=quote.price,
            region=region.state_name,
        )
        return quote

    # -------------------------------------------------------------------------
    # Labor
    # -------------------------------------------------------------------------

    def labor_rate_for(self, trade: str, zip_code: Optional[str] = None) -> LaborRate:
        """Get the regionally adjusted hourly rate for a trade.

        Unknown trades fall back to the general contractor rate.
        """
        key = (trade.strip().lower(), (zip_code or "").strip())
        return self._cached(self._labor_cache, key, lambda: self._lookup_labor_rate(trade, zip_code))

    def labor_rates_for_project(
        self,
        room_type: RoomType,
        zip_code: Optional[str] = None,
    ) -> List[LaborRate]:
        """Get rates for the trades typically involved in a room type."""
        trades = TRADES_BY_ROOM.get(room_type, DEFAULT_TRADES)
        return [self.labor_rate_for(trade, zip_code) for trade in trades]

    def _lookup_labor_rate(self, trade: str, zip_code: Optional[str]) -> LaborRate:
        region = self.resolve_region(zip_code)
        matched = best_match(trade, LABOR_RATES) or DEFAULT_TRADE
        rate, low, high = LABOR_RATES[matched]

        return LaborRate(
            trade=trade,
            matched_trade=matched,
            rate=_adjust(rate, region.multiplier),
            low=_adjust(low, region.multiplier),
            high=_adjust(high, region.multiplier),
            location=region.state_name,
            source=LABOR_SOURCE,
        )

    # -------------------------------------------------------------------------
    # Room reference and context
    # -------------------------------------------------------------------------

    def room_cost_per_sqft(
        self,
        room_type: RoomType,
        zip_code: Optional[str] = None,
        quality_tier: QualityTier = QualityTier.STANDARD,
    ) -> CostRange:
        """Regionally and quality adjusted cost reference per square foot."""
        low, high = ROOM_COST_PER_SQFT[room_type]
        factor = self.resolve_region(zip_code).multiplier * quality_tier.multiplier
        return CostRange(low=_adjust(low, factor), high=_adjust(high, factor))

    def build_context(self, request: EstimateRequest) -> PricingContext:
        """Assemble the pricing reference for one estimate request."""
        zip_code = request.zip_code
        context = PricingContext(
            zip_code=zip_code,
            region=self.resolve_region(zip_code),
            labor_rates=self.labor_rates_for_project(request.room_type, zip_code),
            material_quotes=self.prices_for(request.materials, zip_code),
            room_cost_per_sqft=self.room_cost_per_sqft(request.room_type, zip_code, request.quality_tier),
        )
        logger.info(
            "pricing_context_built",
            zip_code=zip_code,
            region=context.region.state_name,
            multiplier=context.region.multiplier,
            labor_rates=len(context.labor_rates),
            material_quotes=len(context.material_quotes),
        )
        return context

    # -------------------------------------------------------------------------
    # Cache
    # -------------------------------------------------------------------------

    def _cached(self, cache: Dict[CacheKey, PriceCacheEntry], key: CacheKey, compute):
        now = self._clock()
        with self._lock:
            entry = cache.get(key)

        if entry is not None and entry.is_fresh(now, self.ttl_seconds):
            logger.debug("pricing_cache_hit", name=key[0], zip_code=key[1])
            return entry.value

        value = compute()
        with self._lock:
            cache[key] = PriceCacheEntry(value=value, timestamp=now)
        return value

    def clear_cache(self) -> None:
        """Clear all cached lookups."""
        with self._lock:
            self._price_cache.clear()
            self._labor_cache.clear()
        logger.info("pricing_cache_cleared")
