"""
Tests for the receivables aging calculator.

Covers:
- Age calculation from due date
- Bucket classification, including not-yet-due items
- Report totals by bucket and customer
"""

from datetime import date
from decimal import Decimal
from uuid import uuid4

import pytest

from forecourt_engines.aging import STANDARD_BUCKETS, AgeBucket, AgingCalculator


class TestClassification:

    def setup_method(self):
        self.calculator = AgingCalculator()

    def test_age_is_days_past_due(self):
        assert self.calculator.calculate_age(date(2024, 1, 31), date(2024, 3, 1)) == 30

    @pytest.mark.parametrize(
        "age, bucket",
        [(-10, "Current"), (0, "Current"), (1, "1-30"), (30, "1-30"),
         (31, "31-60"), (90, "61-90"), (91, "Over 90"), (400, "Over 90")],
    )
    def test_standard_buckets(self, age, bucket):
        assert self.calculator.classify(age).name == bucket

    def test_gap_in_custom_buckets(self):
        buckets = (AgeBucket("Current", 0, 0), AgeBucket("Late", 10, None))
        with pytest.raises(ValueError):
            self.calculator.classify(5, buckets)

    def test_invalid_bucket(self):
        with pytest.raises(ValueError):
            AgeBucket("Bad", 10, 5)

    def test_days_past_due_never_negative(self):
        item = self.calculator.age_item(
            document_id=uuid4(), reference="INV-1", counterparty_id=uuid4(),
            due_date=date(2024, 2, 1), amount=Decimal("10"), as_of_date=date(2024, 1, 1),
        )
        assert item.age_days == -31
        assert item.days_past_due == 0


class TestReport:

    def test_totals(self):
        calculator = AgingCalculator()
        as_of = date(2024, 4, 1)
        alpha, beta = uuid4(), uuid4()
        items = [
            calculator.age_item(uuid4(), "INV-1", alpha, date(2024, 4, 15), Decimal("100.00"), as_of),
            calculator.age_item(uuid4(), "INV-2", alpha, date(2024, 3, 20), Decimal("250.00"), as_of),
            calculator.age_item(uuid4(), "INV-3", beta, date(2023, 12, 1), Decimal("75.50"), as_of),
        ]
        report = calculator.generate_report(items, as_of_date=as_of)

        by_bucket = report.total_by_bucket()
        assert by_bucket["Current"] == Decimal("100.00")
        assert by_bucket["1-30"] == Decimal("250.00")
        assert by_bucket["Over 90"] == Decimal("75.50")
        assert by_bucket["31-60"] == Decimal("0")
        assert report.total_amount() == Decimal("425.50")
        assert sum(by_bucket.values()) == report.total_amount()
        assert report.total_by_counterparty()[alpha]["1-30"] == Decimal("250.00")
        assert len(report.items_in_bucket("Over 90")) == 1
        assert report.item_count == 3
        assert report.buckets == STANDARD_BUCKETS
