"""
Property-based tests for the pure calculation engines.

Properties checked:
- Loan schedules: installments sum to the total repayable, the balance
  reaches exactly zero, and only the final installment absorbs rounding.
- Invoice totals: total = subtotal + tax - discount and due = total - paid.
- Statutory contributions: each share is the rounded rate of gross pay.
- Payroll: net = gross - deductions and cost = gross + contributions.
"""

from datetime import date
from decimal import Decimal

from hypothesis import HealthCheck, assume, given, settings
from hypothesis import strategies as st

from forecourt_config.schema import StatutoryRates
from forecourt_engines.amortization import compute_loan_schedule
from forecourt_engines.invoice_totals import (
    DiscountType,
    InvoicePaymentStatus,
    compute_invoice_totals,
    derive_payment_status,
)
from forecourt_engines.payroll_calculator import (
    AdditionalDeductions,
    AdditionalEarnings,
    Allowance,
    InstallmentSnapshot,
    LoanSnapshot,
    PayrollCalculator,
    SalaryStructure,
)
from forecourt_engines.statutory import StatutoryContributionCalculator
from forecourt_kernel.db.types import ZERO, round_money

CENT = Decimal("0.01")

money = st.decimals(
    min_value=Decimal("0.00"),
    max_value=Decimal("9999999.99"),
    places=2,
    allow_nan=False,
    allow_infinity=False,
)
positive_money = st.decimals(
    min_value=Decimal("100.00"),
    max_value=Decimal("9999999.99"),
    places=2,
    allow_nan=False,
    allow_infinity=False,
)
percent = st.decimals(
    min_value=Decimal("0"),
    max_value=Decimal("100"),
    places=2,
    allow_nan=False,
    allow_infinity=False,
)

_settings = settings(max_examples=200, suppress_health_check=[HealthCheck.too_slow])


class TestLoanScheduleProperties:
    """Schedules for arbitrary principal, term and rate."""

    @given(
        principal=positive_money,
        months=st.integers(min_value=1, max_value=120),
        rate=st.decimals(min_value=Decimal("0"), max_value=Decimal("40"), places=2),
        start=st.dates(min_value=date(2000, 1, 1), max_value=date(2090, 12, 31)),
    )
    @_settings
    def test_schedule_repays_exactly(self, principal, months, rate, start):
        schedule = compute_loan_schedule(principal, months, start, rate)
        amounts = [i.amount for i in schedule.installments]

        assert len(amounts) == months
        assert sum(amounts, ZERO) == schedule.total_repayable
        assert schedule.total_repayable == schedule.principal + schedule.interest_amount
        assert schedule.installments[-1].remaining_balance == ZERO
        assert all(a == schedule.monthly_installment for a in amounts[:-1])
        assert abs(schedule.final_installment_adjustment) <= CENT * months / 2

    @given(
        principal=positive_money,
        months=st.integers(min_value=1, max_value=60),
    )
    @_settings
    def test_remaining_balance_never_increases(self, principal, months):
        schedule = compute_loan_schedule(principal, months, date(2024, 1, 15), Decimal("23"))
        balances = [i.remaining_balance for i in schedule.installments]

        assert balances == sorted(balances, reverse=True)
        assert [i.installment_number for i in schedule.installments] == list(range(1, months + 1))


class TestInvoiceTotalsProperties:

    @given(
        lines=st.lists(money, min_size=1, max_size=20),
        tax_rate=percent,
        discount_pct=percent,
    )
    @_settings
    def test_percentage_discount_identity(self, lines, tax_rate, discount_pct):
        totals = compute_invoice_totals(
            lines, tax_rate=tax_rate,
            discount_type=DiscountType.PERCENTAGE, discount_value=discount_pct,
        )

        assert totals.subtotal == round_money(sum(lines, ZERO))
        assert totals.total_amount == totals.subtotal + totals.tax_amount - totals.discount_amount
        assert totals.total_amount >= ZERO
        assert totals.amount_due == totals.total_amount

    @given(
        lines=st.lists(money, min_size=1, max_size=10),
        tax_rate=percent,
        fixed=money,
        paid_share=st.decimals(min_value=Decimal("0"), max_value=Decimal("1"), places=2),
    )
    @_settings
    def test_paid_and_due_identity(self, lines, tax_rate, fixed, paid_share):
        subtotal = round_money(sum(lines, ZERO))
        assume(fixed <= subtotal)
        base = compute_invoice_totals(
            lines, tax_rate=tax_rate, discount_type=DiscountType.FIXED, discount_value=fixed,
        )
        paid = round_money(base.total_amount * paid_share)

        totals = compute_invoice_totals(
            lines, tax_rate=tax_rate, discount_type=DiscountType.FIXED, discount_value=fixed,
            payment_amounts=[paid] if paid > 0 else [],
        )

        assert totals.amount_paid == paid
        assert totals.amount_due == totals.total_amount - totals.amount_paid
        assert totals.amount_due >= ZERO

        status = derive_payment_status(
            totals.amount_due, totals.amount_paid, date(2024, 2, 14), date(2024, 1, 15),
        )
        if totals.amount_due == 0:
            assert status is InvoicePaymentStatus.PAID
        elif paid > 0:
            assert status is InvoicePaymentStatus.PARTIAL
        else:
            assert status is InvoicePaymentStatus.UNPAID


class TestStatutoryProperties:

    @given(gross=money, employee=percent, employer=percent, levy=percent)
    @_settings
    def test_each_share_is_rounded_rate(self, gross, employee, employer, levy):
        rates = StatutoryRates(employee_rate=employee, employer_rate=employer, levy_rate=levy)

        result = StatutoryContributionCalculator(rates).calculate(gross)

        assert result.employee_contribution == round_money(gross * employee / 100)
        assert result.employer_contribution == round_money(gross * employer / 100)
        assert result.employer_levy == round_money(gross * levy / 100)
        assert result.employee_contribution <= gross

    @given(low=money, extra=money)
    @_settings
    def test_monotonic_in_gross_pay(self, low, extra):
        calc = StatutoryContributionCalculator(StatutoryRates())
        a, b = calc.calculate(low), calc.calculate(low + extra)

        assert a.employee_contribution <= b.employee_contribution
        assert a.total_employer_contribution <= b.total_employer_contribution


class TestPayrollProperties:

    @given(
        basic=money,
        allowances=st.lists(money, max_size=4),
        overtime=money,
        advances=money,
        installment=st.one_of(st.none(), money.filter(lambda m: m > 0)),
    )
    @_settings
    def test_net_and_cost_identities(self, basic, allowances, overtime, advances, installment):
        loans = ()
        if installment is not None:
            loans = (
                LoanSnapshot(
                    loan_id="loan-1",
                    status="active",
                    installments=(InstallmentSnapshot(1, date(2024, 2, 15), installment, "pending"),),
                ),
            )

        calc = PayrollCalculator(StatutoryRates()).calculate(
            SalaryStructure(
                basic_salary=basic,
                allowances=tuple(Allowance(f"A{i}", a) for i, a in enumerate(allowances)),
            ),
            active_loans=loans,
            extra_earnings=AdditionalEarnings(overtime=overtime),
            extra_deductions=AdditionalDeductions(advances=advances),
        )

        gross = basic + sum(allowances, ZERO) + overtime
        assert calc.earnings.total == gross
        assert calc.deductions.loan_repayment == (installment or ZERO)
        assert calc.net_salary == gross - calc.deductions.total
        assert calc.cost_to_company == gross + calc.contributions.total
