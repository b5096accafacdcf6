"""Shared pytest fixtures for greco-tracker.

`data_dir` builds a small on-disk store:

- copper: one point per year on Jan 1, 1900-1999, split across two shards
  (1900-1949, 1950-1999). Price = year - 1800, so 1950 -> 150.0.
- gold: monthly on the 1st, 1950-01..1951-12, price 35.0.
- wheat: monthly on the 1st, 1950-01..1951-12, price 2.0; 1951 rows are
  `interpolated_linear`.
- basket: gold 0.4, copper 0.3, wheat 0.3.
- exchange rates: GBP 0.36 (1950-01-01) and 0.357 (1951-01-01).
"""

import json
from datetime import date
from pathlib import Path

import pytest

from greco_tracker.core.config import DataConfig, GrecoConfig
from greco_tracker.core.models import Basket, BasketWeight, PricePoint, QualityTier


def _point(d: date, price: float | None, quality: str = "high", unit: str = "USD/t") -> dict:
    return {"date": d.isoformat(), "price": price, "unit": unit, "quality": quality}


def _monthly(start_year: int, end_year: int) -> list[date]:
    return [date(y, m, 1) for y in range(start_year, end_year + 1) for m in range(1, 13)]


def _write_shard(prices_dir: Path, file: str, rows: list[dict]) -> dict:
    """Write rows newest-first and return the index ShardInfo entry."""
    rows = sorted(rows, key=lambda r: r["date"], reverse=True)
    path = prices_dir / file
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(json.dumps(rows), encoding="utf-8")
    return {
        "file": file,
        "startDate": rows[-1]["date"],
        "endDate": rows[0]["date"],
        "recordCount": len(rows),
        "sizeBytes": path.stat().st_size,
    }


def _entry(shards: list[dict]) -> dict:
    return {
        "shards": shards,
        "dateRange": {
            "start": min(s["startDate"] for s in shards),
            "end": max(s["endDate"] for s in shards),
        },
        "totalRecords": sum(s["recordCount"] for s in shards),
        "totalSize": sum(s["sizeBytes"] for s in shards),
    }


def build_data_dir(root: Path) -> Path:
    prices_dir = root / "prices"

    copper = [
        _write_shard(
            prices_dir,
            "copper/copper-1900-1949.json",
            [_point(date(y, 1, 1), float(y - 1800)) for y in range(1900, 1950)],
        ),
        _write_shard(
            prices_dir,
            "copper/copper-1950-1999.json",
            [_point(date(y, 1, 1), float(y - 1800)) for y in range(1950, 2000)],
        ),
    ]
    gold = [
        _write_shard(
            prices_dir,
            "gold/gold-1950-1959.json",
            [_point(d, 35.0, unit="USD/oz") for d in _monthly(1950, 1951)],
        )
    ]
    wheat = [
        _write_shard(
            prices_dir,
            "wheat/wheat-1950-1959.json",
            [
                _point(d, 2.0, "high" if d.year == 1950 else "interpolated_linear", "USD/bu")
                for d in _monthly(1950, 1951)
            ],
        )
    ]

    commodities = {"copper": _entry(copper), "gold": _entry(gold), "wheat": _entry(wheat)}
    index = {
        "generatedAt": "2024-01-01T00:00:00Z",
        "commodityCount": len(commodities),
        "totalRecords": sum(c["totalRecords"] for c in commodities.values()),
        "totalSize": sum(c["totalSize"] for c in commodities.values()),
        "commodities": commodities,
    }
    index_path = root / "indexes" / "date-range-index.json"
    index_path.parent.mkdir(parents=True, exist_ok=True)
    index_path.write_text(json.dumps(index), encoding="utf-8")

    basket_path = root / "metadata" / "basket-weights.json"
    basket_path.parent.mkdir(parents=True, exist_ok=True)
    basket_path.write_text(
        json.dumps(
            {
                "version": "1.0",
                "effectiveDate": "1950-01-01",
                "description": "Test basket",
                "weights": [
                    {"commodityId": "gold", "weight": 0.4, "rationale": "store of value"},
                    {"commodityId": "copper", "weight": 0.3},
                    {"commodityId": "wheat", "weight": 0.3},
                ],
            }
        ),
        encoding="utf-8",
    )

    (root / "exchange-rates.json").write_text(
        json.dumps(
            [
                {"baseCurrency": "USD", "targetCurrency": "GBP", "date": "1950-01-01", "rate": 0.36},
                {"baseCurrency": "USD", "targetCurrency": "GBP", "date": "1951-01-01", "rate": 0.357},
            ]
        ),
        encoding="utf-8",
    )
    return root


@pytest.fixture
def data_dir(tmp_path: Path) -> Path:
    return build_data_dir(tmp_path / "data")


@pytest.fixture
def greco_config(data_dir: Path) -> GrecoConfig:
    return GrecoConfig(data=DataConfig(data_dir=str(data_dir)))


@pytest.fixture
def gold_wheat_basket() -> Basket:
    return Basket(
        version="test",
        weights=[
            BasketWeight(commodity_id="gold", weight=0.5),
            BasketWeight(commodity_id="wheat", weight=0.5),
        ],
    )


@pytest.fixture
def make_point():
    """Factory for PricePoint objects."""

    def _make(
        d: date,
        price: float | None = 1.0,
        quality: QualityTier = QualityTier.HIGH,
        unit: str = "USD/t",
    ) -> PricePoint:
        return PricePoint(date=d, price=price, unit=unit, quality=quality)

    return _make
