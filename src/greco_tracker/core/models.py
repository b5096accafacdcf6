"""Pydantic models for stored prices, the index, baskets and valuations."""

from __future__ import annotations

from datetime import date, datetime
from enum import StrEnum

from pydantic import (
    AliasChoices,
    BaseModel,
    ConfigDict,
    Field,
    computed_field,
    field_validator,
    model_validator,
)

# --- Type Aliases ---

CommodityId = str
CurrencyId = str

BASE_CURRENCY: CurrencyId = "USD"

# --- Enumerations ---


class QualityTier(StrEnum):
    """Quality label carried by each stored price record."""

    HIGH = "high"
    INTERPOLATED_LINEAR = "interpolated_linear"
    QUARTERLY_AVERAGE = "quarterly_average"
    ANNUAL_AVERAGE = "annual_average"
    UNAVAILABLE = "unavailable"


class ValuationQuality(StrEnum):
    """Quality label of an aggregate Greco valuation."""

    HIGH = "high"
    MEDIUM = "medium"
    LOW = "low"
    MISSING = "missing"


class Interval(StrEnum):
    """Time-series sampling intervals."""

    MONTHLY = "monthly"
    QUARTERLY = "quarterly"
    ANNUAL = "annual"

    @property
    def months(self) -> int:
        return {"monthly": 1, "quarterly": 3, "annual": 12}[self.value]


class QualityPolicyName(StrEnum):
    """Selectable strategies for labelling valuation quality."""

    COMPLETENESS = "completeness"
    CONSTITUENT = "constituent"


# --- Price Store Models ---


class PricePoint(BaseModel):
    """A single stored commodity price (USD).

    Shard files hold JSON arrays of these, sorted by date descending.
    """

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    date: date
    price: float | None
    unit: str
    quality: QualityTier = Field(
        default=QualityTier.HIGH,
        validation_alias=AliasChoices("quality", "qualityTier"),
    )
    source: str = "imported"
    source_id: str | None = Field(default=None, alias="sourceId")
    fetched_at: datetime | None = Field(default=None, alias="fetchedAt")

    @property
    def is_usable(self) -> bool:
        """True if this point can back a basket valuation."""
        return (
            self.price is not None
            and self.price > 0
            and self.quality != QualityTier.UNAVAILABLE
        )


class DateRange(BaseModel):
    """Closed calendar range."""

    model_config = ConfigDict(frozen=True)

    start: date
    end: date


class ShardInfo(BaseModel):
    """Index metadata for one shard file."""

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    file: str
    start_date: date = Field(alias="startDate")
    end_date: date = Field(alias="endDate")
    record_count: int = Field(default=0, alias="recordCount")
    size_bytes: int = Field(default=0, alias="sizeBytes")

    @model_validator(mode="after")
    def end_not_before_start(self) -> ShardInfo:
        if self.end_date < self.start_date:
            raise ValueError(
                f"shard {self.file}: endDate ({self.end_date}) is before "
                f"startDate ({self.start_date})"
            )
        return self

    def overlaps(self, start: date, end: date) -> bool:
        """Closed-interval overlap with [start, end]."""
        return self.start_date <= end and self.end_date >= start


class CommodityIndexEntry(BaseModel):
    """All shards of one commodity plus precomputed totals."""

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    commodity_id: CommodityId = Field(default="", alias="commodityId")
    shards: list[ShardInfo] = []
    date_range: DateRange | None = Field(default=None, alias="dateRange")
    total_records: int = Field(default=0, alias="totalRecords")
    total_size: int = Field(default=0, alias="totalSize")


class IndexDocument(BaseModel):
    """The parsed date-range index file."""

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    generated_at: datetime | None = Field(default=None, alias="generatedAt")
    commodity_count: int = Field(default=0, alias="commodityCount")
    total_records: int = Field(default=0, alias="totalRecords")
    total_size: int = Field(default=0, alias="totalSize")
    commodities: dict[CommodityId, CommodityIndexEntry] = {}

    @field_validator("commodities", mode="after")
    @classmethod
    def fill_commodity_ids(
        cls, v: dict[CommodityId, CommodityIndexEntry]
    ) -> dict[CommodityId, CommodityIndexEntry]:
        """Entries without an explicit commodityId take their key."""
        return {
            key: entry if entry.commodity_id else entry.model_copy(update={"commodity_id": key})
            for key, entry in v.items()
        }


class IndexStats(BaseModel):
    """Summary numbers for the loaded index."""

    model_config = ConfigDict(frozen=True)

    generated_at: datetime | None
    commodity_count: int
    total_records: int
    total_size_mb: float


# --- Basket Models ---


class BasketWeight(BaseModel):
    """One commodity's share of the basket."""

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    commodity_id: CommodityId = Field(alias="commodityId")
    weight: float
    rationale: str | None = None

    @field_validator("weight")
    @classmethod
    def weight_non_negative(cls, v: float) -> float:
        if v < 0:
            raise ValueError(f"weight must be >= 0, got {v}")
        return v


class Basket(BaseModel):
    """Versioned basket definition."""

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    version: str
    effective_date: date | None = Field(default=None, alias="effectiveDate")
    description: str = ""
    weights: list[BasketWeight]

    @field_validator("weights")
    @classmethod
    def weights_valid(cls, v: list[BasketWeight]) -> list[BasketWeight]:
        if not v:
            raise ValueError("basket must contain at least one weight")
        ids = [w.commodity_id for w in v]
        if len(ids) != len(set(ids)):
            raise ValueError("basket contains duplicate commodity ids")
        total = sum(w.weight for w in v)
        if abs(total - 1.0) > 0.01:
            raise ValueError(f"basket weights must sum to 1.0, got {total:.4f}")
        return v

    @property
    def commodity_ids(self) -> list[CommodityId]:
        return [w.commodity_id for w in self.weights]

    @property
    def total_weight(self) -> float:
        return sum(w.weight for w in self.weights)


# --- Exchange Rates ---


class ExchangeRate(BaseModel):
    """Units of `target_currency` per one USD on a date."""

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    base_currency: CurrencyId = Field(default=BASE_CURRENCY, alias="baseCurrency")
    target_currency: CurrencyId = Field(alias="targetCurrency")
    date: date
    rate: float
    source_id: str | None = Field(default=None, alias="sourceId")

    @field_validator("rate")
    @classmethod
    def rate_positive(cls, v: float) -> float:
        if v <= 0:
            raise ValueError(f"rate must be > 0, got {v}")
        return v


# --- Valuation ---


class GrecoValuation(BaseModel):
    """One basket valuation for a date and currency. Never persisted."""

    model_config = ConfigDict(frozen=True)

    date: date
    currency_id: CurrencyId
    value: float
    value_usd: float
    completeness: float
    quality: ValuationQuality
    basket_version: str
    contributing_commodity_ids: list[CommodityId]
    missing_commodity_ids: list[CommodityId] = []

    @field_validator("completeness")
    @classmethod
    def completeness_in_range(cls, v: float) -> float:
        if not 0.0 <= v <= 1.0 + 1e-9:
            raise ValueError(f"completeness must be in [0, 1], got {v}")
        return v

    @computed_field  # type: ignore[prop-decorator]
    @property
    def completeness_pct(self) -> float:
        """Completeness as a percentage (0-100)."""
        return self.completeness * 100.0
