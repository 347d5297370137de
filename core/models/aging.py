"""Receivables aging report models."""

from datetime import date, datetime
from decimal import Decimal
from enum import Enum

from pydantic import BaseModel, Field

from core.models.invoice import Invoice


class AgingBucket(str, Enum):
    """Days-past-due ranges. Upper bounds are inclusive."""

    CURRENT = "current"
    THIRTY_TO_SIXTY = "thirty_to_sixty"
    SIXTY_TO_NINETY = "sixty_to_ninety"
    OVER_NINETY = "over_ninety"

    @classmethod
    def for_days_past_due(cls, days: int) -> "AgingBucket":
        if days <= 30:
            return cls.CURRENT
        if days <= 60:
            return cls.THIRTY_TO_SIXTY
        if days <= 90:
            return cls.SIXTY_TO_NINETY
        return cls.OVER_NINETY


class AgingTotals(BaseModel):
    """Balance due per bucket plus the sum of all buckets."""

    current: Decimal = Decimal("0")
    thirty_to_sixty: Decimal = Decimal("0")
    sixty_to_ninety: Decimal = Decimal("0")
    over_ninety: Decimal = Decimal("0")
    total: Decimal = Decimal("0")

    def add(self, bucket: AgingBucket, amount: Decimal) -> None:
        setattr(self, bucket.value, getattr(self, bucket.value) + amount)
        self.total += amount

    def bucket_sum(self) -> Decimal:
        return self.current + self.thirty_to_sixty + self.sixty_to_ninety + self.over_ninety


class AgingBuckets(BaseModel):
    current: list[Invoice] = Field(default_factory=list)
    thirty_to_sixty: list[Invoice] = Field(default_factory=list)
    sixty_to_ninety: list[Invoice] = Field(default_factory=list)
    over_ninety: list[Invoice] = Field(default_factory=list)

    def get(self, bucket: AgingBucket) -> list[Invoice]:
        return getattr(self, bucket.value)


class AgingReport(BaseModel):
    """Outstanding receivables grouped by days past due."""

    as_of: date
    aging_buckets: AgingBuckets
    totals: AgingTotals
    client_breakdown: dict[int, AgingTotals]
    total_receivables: Decimal
    generated_at: datetime
