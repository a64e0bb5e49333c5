"""
Invoice Ledger Service (``forecourt_modules.ar.service``).

Responsibility
--------------
Issue, revise, collect and cancel customer invoices while keeping the
customer's credit balance and the receiving bank account consistent with
them.  Every derived invoice amount is recomputed by
``forecourt_engines.invoice_totals`` after each mutation; every status
change is checked against ``INVOICE_WORKFLOW``.

Architecture position
---------------------
**Modules layer** -- service owning the transaction boundary.  Composes
``CreditAccountService`` (``auto_commit=False``) and ``BankLedger`` so that
the invoice, the credit balance and any bank deposit commit together.

Invariants enforced
-------------------
* ``total_amount == subtotal + tax_amount - discount_amount``.
* ``amount_paid == sum(payments)``; ``amount_due == total - paid``.
* A payment never exceeds ``amount_due``.
* Only invoices flagged ``on_credit_account`` move the credit balance.
* Cancelled and Paid invoices accept no further changes.
* Invoices are never deleted; cancellation appends an audit note.

Failure modes
-------------
* ``InvalidAmountError`` / ``ValidationError`` for bad input.
* ``IllegalTransitionError`` for payments on cancelled invoices and for
  revising or cancelling a terminal invoice.
* ``PaymentExceedsAmountDueError``, ``InvoiceTotalBelowPaidError``,
  ``CreditLimitExceededError``, ``CreditAccountDisabledError``,
  ``NoInvoiceableSalesError``.
* Any failure rolls back every write made by the call.
"""

from __future__ import annotations

from collections.abc import Sequence
from datetime import date, timedelta
from decimal import Decimal
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.orm import Session

from forecourt_config.schema import InvoicingPolicy
from forecourt_engines.aging import AgingCalculator, AgingReport
from forecourt_engines.invoice_totals import (
    DiscountType,
    InvoicePaymentStatus,
    InvoiceTotals,
    compute_invoice_totals,
    derive_payment_status,
    line_amount,
)
from forecourt_kernel.db.types import ZERO, round_money, to_decimal
from forecourt_kernel.domain.clock import Clock, SystemClock
from forecourt_kernel.exceptions import (
    CreditAccountDisabledError,
    CreditLimitExceededError,
    IllegalTransitionError,
    InvalidAmountError,
    InvoiceNotFoundError,
    InvoiceTotalBelowPaidError,
    NoInvoiceableSalesError,
    PaymentExceedsAmountDueError,
    ValidationError,
)
from forecourt_kernel.logging_config import get_logger
from forecourt_kernel.utils.numbering import INVOICE_PREFIX, document_number
from forecourt_modules._unit_of_work import load, load_for_update, unit_of_work
from forecourt_modules.ar.credit import CreditAccountService
from forecourt_modules.ar.models import Invoice, InvoiceItemInput, PaymentMethod
from forecourt_modules.ar.orm import (
    CustomerModel,
    InvoiceItemModel,
    InvoiceModel,
    InvoicePaymentModel,
)
from forecourt_modules.ar.workflows import INVOICE_WORKFLOW, invoice_state
from forecourt_modules.cash.ledger import BankLedger
from forecourt_modules.cash.models import TransactionCategory
from forecourt_modules.sales.models import FuelType, SalePaymentMethod
from forecourt_modules.sales.orm import SaleModel

logger = get_logger("modules.ar.service")

_OPEN_STATUSES = (
    InvoicePaymentStatus.UNPAID.value,
    InvoicePaymentStatus.PARTIAL.value,
    InvoicePaymentStatus.OVERDUE.value,
)


class InvoiceService:
    """
    Customer invoice lifecycle.

    Usage:
        service = InvoiceService(session, clock=clock)
        invoice = service.create_invoice(
            customer_id,
            [InvoiceItemInput("Diesel", Decimal("100"), Decimal("350"))],
            actor_id=user,
            tax_rate=Decimal("8"),
        )
        service.add_payment(invoice.id, Decimal("10000"), PaymentMethod.CASH, actor_id=user)
    """

    def __init__(
        self,
        session: Session,
        clock: Clock | None = None,
        policy: InvoicingPolicy | None = None,
    ):
        self._session = session
        self._clock = clock or SystemClock()
        self._policy = policy or InvoicingPolicy.with_defaults()
        self._credit = CreditAccountService(session, auto_commit=False)
        self._ledger = BankLedger(session, self._clock)
        self._aging = AgingCalculator()

    # -------------------------------------------------------------------------
    # Issue
    # -------------------------------------------------------------------------

    def create_invoice(
        self,
        customer_id: UUID,
        items: Sequence[InvoiceItemInput],
        actor_id: UUID,
        tax_rate: Decimal = ZERO,
        discount_type: DiscountType | str = DiscountType.NONE,
        discount_value: Decimal = ZERO,
        issue_date: date | None = None,
        payment_terms_days: int | None = None,
        notes: str | None = None,
    ) -> Invoice:
        """
        Issue a manual invoice.

        When the customer's credit account is enabled the total is charged
        to it in the same transaction and the invoice is flagged
        ``on_credit_account``.
        """
        if not items:
            raise ValidationError("items", "at least one item is required")
        if payment_terms_days is not None and payment_terms_days < 0:
            raise ValidationError("payment_terms_days", "cannot be negative")
        discount_type = DiscountType(discount_type)

        with unit_of_work(
            self._session, logger, "create_invoice",
            actor_id=actor_id, entity_type="Invoice",
        ):
            customer = self._credit.lock(customer_id)
            if not customer.is_active:
                raise ValidationError("customer_id", f"customer {customer_id} is inactive")

            item_models = [
                InvoiceItemModel(
                    line_number=number,
                    description=item.description,
                    fuel_type=item.fuel_type,
                    quantity=to_decimal(item.quantity),
                    unit_price=round_money(to_decimal(item.unit_price)),
                    amount=line_amount(item.quantity, item.unit_price),
                    created_by_id=actor_id,
                )
                for number, item in enumerate(items, start=1)
            ]
            if payment_terms_days is None:
                payment_terms_days = (
                    customer.payment_terms_days
                    if customer.credit_enabled
                    else self._policy.default_payment_terms_days
                )
            invoice = self._issue(
                customer,
                item_models,
                actor_id=actor_id,
                tax_rate=to_decimal(tax_rate),
                discount_type=discount_type,
                discount_value=round_money(to_decimal(discount_value)),
                issue_date=issue_date or self._clock.today(),
                payment_terms_days=payment_terms_days,
                notes=notes,
            )
        return invoice.to_dto()

    def generate_from_sales(
        self,
        customer_id: UUID,
        start_date: date,
        end_date: date,
        actor_id: UUID,
        station_code: str | None = None,
    ) -> Invoice:
        """
        Bill every uninvoiced credit sale of the customer in the period.

        Sales are grouped into one item per fuel type and stamped with the
        new invoice id, so a sale is billed at most once.
        """
        if start_date > end_date:
            raise ValidationError("start_date", "must not be after end_date")

        with unit_of_work(
            self._session, logger, "generate_invoice_from_sales",
            actor_id=actor_id, entity_type="Invoice",
        ):
            customer = self._credit.lock(customer_id)
            if not customer.credit_enabled:
                raise CreditAccountDisabledError(str(customer_id))

            stmt = (
                select(SaleModel)
                .where(
                    SaleModel.customer_id == customer_id,
                    SaleModel.payment_method == SalePaymentMethod.CREDIT.value,
                    SaleModel.sale_date >= start_date,
                    SaleModel.sale_date <= end_date,
                    SaleModel.invoice_id.is_(None),
                )
                .order_by(SaleModel.sale_date, SaleModel.sale_number)
                .with_for_update()
            )
            if station_code is not None:
                stmt = stmt.where(SaleModel.station_code == station_code)
            sales = list(self._session.scalars(stmt))
            if not sales:
                raise NoInvoiceableSalesError(str(customer_id), start_date, end_date)

            item_models = self._aggregate_sales(sales, actor_id)
            invoice = self._issue(
                customer,
                item_models,
                actor_id=actor_id,
                tax_rate=ZERO,
                discount_type=DiscountType.NONE,
                discount_value=ZERO,
                issue_date=self._clock.today(),
                payment_terms_days=customer.payment_terms_days,
                notes=(
                    f"Auto-generated from {len(sales)} credit sales "
                    f"for {start_date.isoformat()} to {end_date.isoformat()}"
                ),
                billing_start=start_date,
                billing_end=end_date,
            )
            for sale in sales:
                sale.invoice_id = invoice.id
                sale.updated_by_id = actor_id
            logger.info("sales_invoiced", extra={
                "invoice_id": str(invoice.id),
                "customer_id": str(customer_id),
                "sale_count": len(sales),
                "station_code": station_code,
            })
        return invoice.to_dto()

    # -------------------------------------------------------------------------
    # Revise
    # -------------------------------------------------------------------------

    def update_invoice(
        self,
        invoice_id: UUID,
        actor_id: UUID,
        items: Sequence[InvoiceItemInput] | None = None,
        tax_rate: Decimal | None = None,
        discount_type: DiscountType | str | None = None,
        discount_value: Decimal | None = None,
        due_date: date | None = None,
        notes: str | None = None,
    ) -> Invoice:
        """
        Revise an open invoice and recompute every derived amount.

        A change in total moves the credit balance by the difference when
        the invoice is on the customer's credit account.
        """
        with unit_of_work(
            self._session, logger, "update_invoice",
            actor_id=actor_id, entity_type="Invoice", entity_id=invoice_id,
        ):
            invoice = self._lock(invoice_id)
            current = invoice_state(invoice.payment_status)
            if current in INVOICE_WORKFLOW.terminal_states:
                raise IllegalTransitionError("Invoice", str(invoice_id), current, "revise")
            previous_total = round_money(invoice.total_amount)

            if items is not None:
                if not items:
                    raise ValidationError("items", "at least one item is required")
                # Old rows go first; the new ones reuse their line numbers.
                invoice.items.clear()
                self._session.flush()
                invoice.items.extend(
                    InvoiceItemModel(
                        line_number=number,
                        description=item.description,
                        fuel_type=item.fuel_type,
                        quantity=to_decimal(item.quantity),
                        unit_price=round_money(to_decimal(item.unit_price)),
                        amount=line_amount(item.quantity, item.unit_price),
                        created_by_id=actor_id,
                    )
                    for number, item in enumerate(items, start=1)
                )
            if tax_rate is not None:
                invoice.tax_rate = to_decimal(tax_rate)
            if discount_type is not None:
                invoice.discount_type = DiscountType(discount_type).value
            if discount_value is not None:
                invoice.discount_value = round_money(to_decimal(discount_value))
            if due_date is not None:
                if due_date < invoice.issue_date:
                    raise ValidationError("due_date", "cannot be before the issue date")
                invoice.due_date = due_date
            if notes is not None:
                invoice.notes = notes

            totals = self._totals(invoice)
            if totals.amount_due < 0:
                raise InvoiceTotalBelowPaidError(
                    str(invoice_id), totals.total_amount, totals.amount_paid,
                )
            self._apply(invoice, totals, "revise", actor_id)

            delta = totals.total_amount - previous_total
            if invoice.on_credit_account and delta > 0:
                self._credit.increase(invoice.customer_id, delta, actor_id)
            elif invoice.on_credit_account and delta < 0:
                self._credit.decrease(invoice.customer_id, -delta, actor_id)

            logger.info("invoice_updated", extra={
                "invoice_id": str(invoice_id),
                "previous_total": str(previous_total),
                "total_amount": str(totals.total_amount),
                "payment_status": invoice.payment_status,
            })
        return invoice.to_dto()

    # -------------------------------------------------------------------------
    # Collect
    # -------------------------------------------------------------------------

    def add_payment(
        self,
        invoice_id: UUID,
        amount: Decimal,
        method: PaymentMethod | str,
        actor_id: UUID,
        reference: str | None = None,
        bank_account_id: UUID | None = None,
        payment_date: date | None = None,
        notes: str | None = None,
    ) -> Invoice:
        """
        Record a payment against an invoice.

        A Bank Transfer deposits the amount into ``bank_account_id`` in the
        same transaction, and a credit-account invoice lowers the
        customer's credit balance by the amount.

        Raises:
            InvalidAmountError: amount <= 0.
            IllegalTransitionError: invoice is cancelled.
            PaymentExceedsAmountDueError: amount > amount_due.
            ValidationError: Bank Transfer without a bank account.
        """
        amount = round_money(to_decimal(amount))
        if amount <= 0:
            raise InvalidAmountError("amount", amount)

        with unit_of_work(
            self._session, logger, "add_invoice_payment",
            actor_id=actor_id, entity_type="Invoice", entity_id=invoice_id,
        ):
            invoice = self._lock(invoice_id)
            if invoice.payment_status == InvoicePaymentStatus.CANCELLED.value:
                raise IllegalTransitionError(
                    "Invoice", str(invoice_id), invoice_state(invoice.payment_status), "apply_payment",
                )
            amount_due = round_money(invoice.amount_due)
            if amount > amount_due:
                logger.warning("invoice_overpayment_rejected", extra={
                    "invoice_id": str(invoice_id),
                    "amount": str(amount),
                    "amount_due": str(amount_due),
                })
                raise PaymentExceedsAmountDueError(str(invoice_id), amount, amount_due)
            method = PaymentMethod(method)
            if method is PaymentMethod.BANK_TRANSFER and bank_account_id is None:
                raise ValidationError("bank_account_id", "is required for Bank Transfer payments")

            payment_date = payment_date or self._clock.today()
            bank_transaction_id = None
            if method is PaymentMethod.BANK_TRANSFER:
                account = self._ledger.lock_account(bank_account_id)
                txn = self._ledger.deposit(
                    account, amount,
                    actor_id=actor_id,
                    description=f"Payment for invoice {invoice.invoice_number}",
                    category=TransactionCategory.INVOICE_PAYMENT.value,
                    transaction_date=payment_date,
                    source_type="invoice",
                    source_id=invoice.id,
                )
                bank_transaction_id = txn.id

            invoice.payments.append(
                InvoicePaymentModel(
                    payment_date=payment_date,
                    amount=amount,
                    method=method.value,
                    reference=reference,
                    bank_account_id=bank_account_id,
                    bank_transaction_id=bank_transaction_id,
                    notes=notes,
                    received_by_id=actor_id,
                    created_by_id=actor_id,
                )
            )
            self._apply(invoice, self._totals(invoice), "apply_payment", actor_id)

            if invoice.on_credit_account:
                self._credit.decrease(invoice.customer_id, amount, actor_id)

            logger.info("invoice_payment_recorded", extra={
                "invoice_id": str(invoice_id),
                "amount": str(amount),
                "method": method.value,
                "bank_transaction_id": str(bank_transaction_id) if bank_transaction_id else None,
                "amount_due": str(invoice.amount_due),
                "payment_status": invoice.payment_status,
            })
        return invoice.to_dto()

    # -------------------------------------------------------------------------
    # Cancel
    # -------------------------------------------------------------------------

    def cancel_invoice(
        self,
        invoice_id: UUID,
        actor_id: UUID,
        reason: str | None = None,
    ) -> Invoice:
        """
        Cancel an unpaid, partially paid or overdue invoice.

        The outstanding amount is released from the customer's credit
        balance; payments already received stay on record.
        """
        with unit_of_work(
            self._session, logger, "cancel_invoice",
            actor_id=actor_id, entity_type="Invoice", entity_id=invoice_id,
        ):
            invoice = self._lock(invoice_id)
            INVOICE_WORKFLOW.resolve(
                "Invoice", str(invoice_id), invoice_state(invoice.payment_status),
                "cancel", "cancelled",
            )
            outstanding = round_money(invoice.amount_due)
            note = f"Cancelled by {actor_id} on {self._clock.now_utc().isoformat()}"
            if reason:
                note = f"{note}: {reason}"
            invoice.notes = f"{invoice.notes}\n{note}" if invoice.notes else note
            previous_status = invoice.payment_status
            invoice.payment_status = InvoicePaymentStatus.CANCELLED.value
            invoice.updated_by_id = actor_id

            if invoice.on_credit_account and outstanding > 0:
                self._credit.decrease(invoice.customer_id, outstanding, actor_id)

            logger.info("invoice_cancelled", extra={
                "invoice_id": str(invoice_id),
                "from_status": previous_status,
                "released_credit": str(outstanding) if invoice.on_credit_account else "0.00",
            })
        return invoice.to_dto()

    # -------------------------------------------------------------------------
    # Queries and maintenance
    # -------------------------------------------------------------------------

    def refresh_overdue(self, as_of: date | None = None) -> int:
        """Move Unpaid invoices past their due date to Overdue."""
        as_of = as_of or self._clock.today()
        with unit_of_work(self._session, logger, "refresh_overdue_invoices"):
            invoices = self._session.scalars(
                select(InvoiceModel)
                .where(
                    InvoiceModel.payment_status == InvoicePaymentStatus.UNPAID.value,
                    InvoiceModel.due_date < as_of,
                )
                .with_for_update()
            ).all()
            for invoice in invoices:
                INVOICE_WORKFLOW.resolve(
                    "Invoice", str(invoice.id), "unpaid", "mark_overdue", "overdue",
                )
                invoice.payment_status = InvoicePaymentStatus.OVERDUE.value
            logger.info("overdue_invoices_refreshed", extra={
                "as_of": as_of.isoformat(),
                "updated": len(invoices),
            })
        return len(invoices)

    def aging_report(
        self,
        as_of: date | None = None,
        customer_id: UUID | None = None,
    ) -> AgingReport:
        """Outstanding amounts of open invoices by days past due."""
        as_of = as_of or self._clock.today()
        stmt = (
            select(InvoiceModel)
            .where(
                InvoiceModel.payment_status.in_(_OPEN_STATUSES),
                InvoiceModel.amount_due > 0,
            )
            .order_by(InvoiceModel.due_date, InvoiceModel.invoice_number)
        )
        if customer_id is not None:
            stmt = stmt.where(InvoiceModel.customer_id == customer_id)
        items = [
            self._aging.age_item(
                document_id=invoice.id,
                reference=invoice.invoice_number,
                counterparty_id=invoice.customer_id,
                due_date=invoice.due_date,
                amount=round_money(invoice.amount_due),
                as_of_date=as_of,
            )
            for invoice in self._session.scalars(stmt)
        ]
        return self._aging.generate_report(items, as_of_date=as_of)

    def get_invoice(self, invoice_id: UUID) -> Invoice:
        return load(self._session, InvoiceModel, invoice_id, InvoiceNotFoundError).to_dto()

    # -------------------------------------------------------------------------
    # Internals
    # -------------------------------------------------------------------------

    def _lock(self, invoice_id: UUID) -> InvoiceModel:
        return load_for_update(self._session, InvoiceModel, invoice_id, InvoiceNotFoundError)

    def _issue(
        self,
        customer: CustomerModel,
        item_models: list[InvoiceItemModel],
        *,
        actor_id: UUID,
        tax_rate: Decimal,
        discount_type: DiscountType,
        discount_value: Decimal,
        issue_date: date,
        payment_terms_days: int,
        notes: str | None,
        billing_start: date | None = None,
        billing_end: date | None = None,
    ) -> InvoiceModel:
        totals = compute_invoice_totals(
            [item.amount for item in item_models],
            tax_rate=tax_rate,
            discount_type=discount_type,
            discount_value=discount_value,
        )
        due_date = issue_date + timedelta(days=payment_terms_days)
        on_credit = customer.credit_enabled
        if on_credit and self._policy.enforce_credit_limit:
            if not self._credit.has_sufficient_credit(customer.id, totals.total_amount):
                raise CreditLimitExceededError(
                    customer_id=str(customer.id),
                    amount=totals.total_amount,
                    available_credit=round_money(customer.available_credit),
                )

        invoice = InvoiceModel(
            invoice_number=document_number(INVOICE_PREFIX, issue_date),
            customer_id=customer.id,
            issue_date=issue_date,
            due_date=due_date,
            tax_rate=tax_rate,
            discount_type=discount_type.value,
            discount_value=discount_value,
            on_credit_account=on_credit,
            notes=notes,
            billing_start=billing_start,
            billing_end=billing_end,
            payment_status=InvoicePaymentStatus.UNPAID.value,
            created_by_id=actor_id,
        )
        invoice.items = item_models
        self._write_totals(invoice, totals)
        invoice.payment_status = derive_payment_status(
            totals.amount_due, totals.amount_paid, due_date, self._clock.today(),
        ).value
        self._session.add(invoice)
        self._session.flush()

        if on_credit and totals.total_amount > 0:
            self._credit.increase(customer.id, totals.total_amount, actor_id)

        logger.info("invoice_created", extra={
            "invoice_id": str(invoice.id),
            "invoice_number": invoice.invoice_number,
            "customer_id": str(customer.id),
            "total_amount": str(totals.total_amount),
            "due_date": due_date.isoformat(),
            "on_credit_account": on_credit,
            "payment_status": invoice.payment_status,
        })
        return invoice

    @staticmethod
    def _aggregate_sales(sales: list[SaleModel], actor_id: UUID) -> list[InvoiceItemModel]:
        """One item per fuel type, in fuel-type declaration order."""
        quantities: dict[str, Decimal] = {}
        amounts: dict[str, Decimal] = {}
        for sale in sales:
            quantities[sale.fuel_type] = quantities.get(sale.fuel_type, ZERO) + sale.quantity
            amounts[sale.fuel_type] = amounts.get(sale.fuel_type, ZERO) + sale.total_amount

        order = [fuel.value for fuel in FuelType]
        items = []
        for number, fuel_type in enumerate(sorted(amounts, key=order.index), start=1):
            quantity = quantities[fuel_type]
            amount = round_money(amounts[fuel_type])
            items.append(
                InvoiceItemModel(
                    line_number=number,
                    description=f"Fuel Sales - {fuel_type}",
                    fuel_type=fuel_type,
                    quantity=quantity,
                    unit_price=round_money(amount / quantity),
                    amount=amount,
                    created_by_id=actor_id,
                )
            )
        return items

    @staticmethod
    def _totals(invoice: InvoiceModel) -> InvoiceTotals:
        return compute_invoice_totals(
            [item.amount for item in invoice.items],
            tax_rate=invoice.tax_rate,
            discount_type=invoice.discount_type,
            discount_value=invoice.discount_value,
            payment_amounts=[payment.amount for payment in invoice.payments],
        )

    def _apply(
        self,
        invoice: InvoiceModel,
        totals: InvoiceTotals,
        action: str,
        actor_id: UUID,
    ) -> None:
        """Write recomputed totals and the workflow-checked status."""
        new_status = derive_payment_status(
            totals.amount_due, totals.amount_paid, invoice.due_date, self._clock.today(),
        )
        transition = INVOICE_WORKFLOW.resolve(
            "Invoice", str(invoice.id), invoice_state(invoice.payment_status),
            action, invoice_state(new_status),
        )
        self._write_totals(invoice, totals)
        if transition.from_state != transition.to_state:
            logger.info("invoice_status_changed", extra={
                "invoice_id": str(invoice.id),
                "action": action,
                "from_state": transition.from_state,
                "to_state": transition.to_state,
            })
        invoice.payment_status = new_status.value
        invoice.updated_by_id = actor_id

    @staticmethod
    def _write_totals(invoice: InvoiceModel, totals: InvoiceTotals) -> None:
        invoice.subtotal = totals.subtotal
        invoice.tax_amount = totals.tax_amount
        invoice.discount_amount = totals.discount_amount
        invoice.total_amount = totals.total_amount
        invoice.amount_paid = totals.amount_paid
        invoice.amount_due = totals.amount_due
