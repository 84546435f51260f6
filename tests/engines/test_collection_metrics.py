"""Tests for DSO and CEI."""

from datetime import date
from decimal import Decimal

import pytest

from erp_engines.collection_metrics import CollectionMetricsCalculator, InvoiceFigures
from erp_kernel.domain.values import Money


def _figures(on, total, outstanding, invoice_id="inv"):
    return InvoiceFigures(
        invoice_id=invoice_id,
        invoice_date=on,
        total=Money.of(total),
        outstanding=Money.of(outstanding),
    )


class TestCollectionMetrics:

    def setup_method(self):
        self.calculator = CollectionMetricsCalculator()
        self.as_of = date(2024, 6, 30)

    def test_dso_and_cei(self):
        metrics = self.calculator.calculate(
            invoices=[
                _figures(date(2024, 1, 10), "1000.00", "700.00"),
                _figures(date(2024, 3, 5), "500.00", "0"),
            ],
            collected=Money.of("800.00"),
            as_of=self.as_of,
        )

        # 700 / 1500 * 365 = 170.33
        assert metrics.dso == Decimal("170.3")
        # 800 / 1500 * 100 = 53.33
        assert metrics.cei == Decimal("53.3")
        assert metrics.open_receivables == Money.of("700.00")
        assert metrics.total_invoiced == Money.of("1500.00")

    def test_no_sales_in_window_gives_zero_dso(self):
        metrics = self.calculator.calculate(
            invoices=[_figures(date(2022, 1, 1), "100.00", "100.00")],
            collected=Money.zero(),
            as_of=self.as_of,
        )
        assert metrics.dso == Decimal("0.0")
        assert metrics.period_sales.is_zero

    def test_nothing_invoiced_is_fully_effective(self):
        metrics = self.calculator.calculate(invoices=[], collected=Money.zero(), as_of=self.as_of)
        assert metrics.cei == Decimal("100.0")
        assert metrics.dso == Decimal("0.0")

    def test_rounds_half_up_to_one_place(self):
        # 1 / 8 * 100 = 12.5 exactly; 3 / 8 * 100 = 37.5
        metrics = self.calculator.calculate(
            invoices=[_figures(self.as_of, "8.00", "0")],
            collected=Money.of("3.00"),
            as_of=self.as_of,
        )
        assert metrics.cei == Decimal("37.5")

    def test_window_is_configurable(self):
        calculator = CollectionMetricsCalculator(window_days=30)
        metrics = calculator.calculate(
            invoices=[
                _figures(date(2024, 6, 15), "300.00", "300.00"),
                _figures(date(2024, 1, 15), "900.00", "0"),
            ],
            collected=Money.of("900.00"),
            as_of=self.as_of,
        )
        # 300 / 300 * 30
        assert metrics.dso == Decimal("30.0")

    def test_window_must_be_positive(self):
        with pytest.raises(ValueError):
            CollectionMetricsCalculator(window_days=0)
