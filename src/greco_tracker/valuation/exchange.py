"""USD exchange rates for non-USD valuations."""

from __future__ import annotations

import bisect
import json
import logging
from collections import defaultdict
from datetime import date
from pathlib import Path
from typing import Iterable, Protocol, runtime_checkable

from pydantic import TypeAdapter, ValidationError

from greco_tracker.core.exceptions import ConfigError
from greco_tracker.core.models import BASE_CURRENCY, CurrencyId, ExchangeRate

logger = logging.getLogger(__name__)

_RATES_ADAPTER = TypeAdapter(list[ExchangeRate])


@runtime_checkable
class ExchangeRateProvider(Protocol):
    """Consumer-facing interface for USD exchange rates."""

    async def get_rate(self, currency_id: CurrencyId, on: date) -> float | None:
        """Units of `currency_id` per one USD on (or nearest to) `on`.

        Returns None when no rate is known for the currency.
        """
        ...


class ExchangeRateTable:
    """In-memory exchange rates answering with the nearest-dated rate.

    Ties between an earlier and a later rate go to the earlier one. USD
    always converts at 1.0.
    """

    def __init__(self, rates: Iterable[ExchangeRate]) -> None:
        by_currency: dict[CurrencyId, list[ExchangeRate]] = defaultdict(list)
        for rate in rates:
            if rate.base_currency.upper() != BASE_CURRENCY:
                logger.warning(
                    "Ignoring %s->%s rate: only %s-based rates are supported",
                    rate.base_currency, rate.target_currency, BASE_CURRENCY,
                )
                continue
            by_currency[rate.target_currency.upper()].append(rate)

        self._rates = {cur: sorted(rs, key=lambda r: r.date) for cur, rs in by_currency.items()}
        self._dates = {cur: [r.date for r in rs] for cur, rs in self._rates.items()}

    @classmethod
    def from_file(cls, path: Path | str) -> ExchangeRateTable:
        """Load a JSON array of `{baseCurrency, targetCurrency, date, rate}`.

        Raises:
            ConfigError: Missing, unreadable or malformed file.
        """
        path = Path(path)
        try:
            raw = json.loads(path.read_text(encoding="utf-8"))
            rates = _RATES_ADAPTER.validate_python(raw)
        except (OSError, json.JSONDecodeError, ValidationError) as e:
            raise ConfigError(
                f"Invalid exchange-rate file {path}: {e}",
                context={"field": "exchange_rates_file", "value": str(path)},
            ) from e
        return cls(rates)

    @property
    def currencies(self) -> list[CurrencyId]:
        return sorted({BASE_CURRENCY, *self._rates})

    def nearest(self, currency_id: CurrencyId, on: date) -> ExchangeRate | None:
        """The stored rate dated closest to `on`, or None for unknown currencies."""
        cur = currency_id.upper()
        dates = self._dates.get(cur)
        if not dates:
            return None
        rates = self._rates[cur]

        i = bisect.bisect_left(dates, on)
        if i == 0:
            return rates[0]
        if i == len(dates):
            return rates[-1]
        before, after = rates[i - 1], rates[i]
        if (after.date - on) < (on - before.date):
            return after
        return before

    async def get_rate(self, currency_id: CurrencyId, on: date) -> float | None:
        if currency_id.upper() == BASE_CURRENCY:
            return 1.0
        rate = self.nearest(currency_id, on)
        return rate.rate if rate is not None else None
