"""Wiring: builds the query and valuation objects from a GrecoConfig."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from functools import cached_property

from greco_tracker.core.config import GrecoConfig
from greco_tracker.core.models import Basket
from greco_tracker.storage import DateRangeIndex, QueryService, ShardStore
from greco_tracker.valuation import (
    BasketValuationEngine,
    ExchangeRateTable,
    LazyPriceSource,
    PriceLoader,
    TimeSeriesOrchestrator,
    load_basket,
)

logger = logging.getLogger(__name__)


@dataclass
class Services:
    """Shared objects for one process.

    The index and query layers are built eagerly. The basket and exchange
    rates are read on first use, so commands that only query prices work
    without a basket file.
    """

    config: GrecoConfig
    index: DateRangeIndex
    store: ShardStore
    query: QueryService
    loader: PriceLoader

    @cached_property
    def basket(self) -> Basket:
        return load_basket(self.config.data.basket_path)

    @cached_property
    def exchange_rates(self) -> ExchangeRateTable | None:
        path = self.config.data.exchange_rates_path
        if not path.exists():
            logger.info("No exchange-rate file at %s; only USD valuations available", path)
            return None
        return ExchangeRateTable.from_file(path)

    @cached_property
    def engine(self) -> BasketValuationEngine:
        return BasketValuationEngine(
            self.basket,
            exchange_rates=self.exchange_rates,
            settings=self.config.valuation,
            lazy_source=LazyPriceSource(self.loader),
        )

    @cached_property
    def timeseries(self) -> TimeSeriesOrchestrator:
        return TimeSeriesOrchestrator(self.engine, self.loader)


def create_services(config: GrecoConfig) -> Services:
    """Build the service graph for `config`. Reads no files yet."""
    index = DateRangeIndex(
        config.data.index_path, ttl_seconds=config.index.cache_ttl_seconds
    )
    store = ShardStore(config.data.prices_path)
    query = QueryService(
        index,
        store,
        default_lookback_years=config.query.default_lookback_years,
        recent_count=config.query.recent_count,
    )
    return Services(
        config=config,
        index=index,
        store=store,
        query=query,
        loader=PriceLoader(query),
    )
