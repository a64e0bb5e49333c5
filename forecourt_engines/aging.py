"""
Module: forecourt_engines.aging
Responsibility:
    Classify outstanding receivables into days-past-due buckets for the
    customer aging report.
Architecture position:
    Engines -- pure calculation layer, zero I/O.  The caller supplies the
    as-of date and the open invoices.
Invariants enforced:
    - Deterministic bucket classification for identical inputs.
    - Items not yet due (negative age) fall in the "Current" bucket.
    - total_amount() == sum of bucket totals.
Failure modes:
    - ValueError when an age does not fall into any configured bucket.

Usage:
    calculator = AgingCalculator()
    item = calculator.age_item(
        document_id=invoice.id, reference=invoice.invoice_number,
        counterparty_id=invoice.customer_id, due_date=invoice.due_date,
        amount=invoice.amount_due, as_of_date=today,
    )
    report = calculator.generate_report([item], as_of_date=today)
    report.total_by_bucket()["1-30"]
"""

from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass
from datetime import date
from decimal import Decimal
from typing import Any

from forecourt_engines.tracer import traced_engine
from forecourt_kernel.db.types import ZERO
from forecourt_kernel.logging_config import get_logger

logger = get_logger("engines.aging")


@dataclass(frozen=True)
class AgeBucket:
    """
    Contiguous range of days past due.

    Guarantees:
        - min_days >= 0.
        - max_days >= min_days (when bounded).
    """

    name: str
    min_days: int
    max_days: int | None  # None = unbounded (e.g., 90+)

    def __post_init__(self) -> None:
        if self.min_days < 0:
            raise ValueError("min_days cannot be negative")
        if self.max_days is not None and self.max_days < self.min_days:
            raise ValueError("max_days cannot be less than min_days")

    def contains(self, age_days: int) -> bool:
        if age_days < self.min_days:
            return False
        if self.max_days is None:
            return True
        return age_days <= self.max_days


STANDARD_BUCKETS: tuple[AgeBucket, ...] = (
    AgeBucket("Current", 0, 0),
    AgeBucket("1-30", 1, 30),
    AgeBucket("31-60", 31, 60),
    AgeBucket("61-90", 61, 90),
    AgeBucket("Over 90", 91, None),
)


@dataclass(frozen=True)
class AgedItem:
    """An open document with its age classification."""

    document_id: Any
    reference: str
    counterparty_id: Any
    due_date: date
    amount: Decimal
    age_days: int
    bucket: AgeBucket

    @property
    def days_past_due(self) -> int:
        return max(0, self.age_days)


@dataclass(frozen=True)
class AgingReport:
    """Snapshot aging report."""

    as_of_date: date
    buckets: tuple[AgeBucket, ...]
    items: tuple[AgedItem, ...]

    @property
    def item_count(self) -> int:
        return len(self.items)

    def total_amount(self) -> Decimal:
        return sum((i.amount for i in self.items), ZERO)

    def total_by_bucket(self) -> dict[str, Decimal]:
        """Every bucket name mapped to its total (zero for empty buckets)."""
        result = {b.name: ZERO for b in self.buckets}
        for item in self.items:
            result[item.bucket.name] += item.amount
        return result

    def total_by_counterparty(self) -> dict[Any, dict[str, Decimal]]:
        result: dict[Any, dict[str, Decimal]] = {}
        for item in self.items:
            row = result.setdefault(item.counterparty_id, {b.name: ZERO for b in self.buckets})
            row[item.bucket.name] += item.amount
        return result

    def items_in_bucket(self, bucket_name: str) -> tuple[AgedItem, ...]:
        return tuple(i for i in self.items if i.bucket.name == bucket_name)


class AgingCalculator:
    """Stateless aging calculator."""

    DEFAULT_BUCKETS = STANDARD_BUCKETS

    def calculate_age(self, due_date: date, as_of_date: date) -> int:
        """Days past due (negative when not yet due)."""
        return (as_of_date - due_date).days

    def classify(
        self,
        age_days: int,
        buckets: Sequence[AgeBucket] | None = None,
    ) -> AgeBucket:
        """
        Classify age into a bucket.

        Raises:
            ValueError: If age doesn't fit any bucket.
        """
        if buckets is None:
            buckets = self.DEFAULT_BUCKETS

        if age_days < 0:
            for bucket in buckets:
                if bucket.min_days == 0:
                    return bucket
            return buckets[0]

        for bucket in buckets:
            if bucket.contains(age_days):
                return bucket

        logger.warning("age_classification_no_bucket", extra={
            "age_days": age_days,
            "bucket_count": len(buckets),
        })
        raise ValueError(f"Age {age_days} does not fit any bucket")

    def age_item(
        self,
        document_id: Any,
        reference: str,
        counterparty_id: Any,
        due_date: date,
        amount: Decimal,
        as_of_date: date,
        buckets: Sequence[AgeBucket] | None = None,
    ) -> AgedItem:
        age_days = self.calculate_age(due_date, as_of_date)
        return AgedItem(
            document_id=document_id,
            reference=reference,
            counterparty_id=counterparty_id,
            due_date=due_date,
            amount=amount,
            age_days=age_days,
            bucket=self.classify(age_days, buckets),
        )

    @traced_engine("aging", "1.0", fingerprint_fields=("items", "as_of_date"))
    def generate_report(
        self,
        items: Sequence[AgedItem],
        as_of_date: date,
        buckets: Sequence[AgeBucket] | None = None,
    ) -> AgingReport:
        if buckets is None:
            buckets = self.DEFAULT_BUCKETS

        logger.info("aging_report_generated", extra={
            "as_of_date": as_of_date.isoformat(),
            "item_count": len(items),
            "bucket_count": len(buckets),
        })

        return AgingReport(
            as_of_date=as_of_date,
            buckets=tuple(buckets),
            items=tuple(items),
        )
