"""Tests for the ORM immutability listeners (erp_kernel/db/immutability.py)."""

from datetime import date
from decimal import Decimal

import pytest
from sqlalchemy import select

from erp_kernel.exceptions import ImmutabilityViolationError
from erp_modules.ar.models import InvoiceStatus
from erp_modules.ar.orm import (
    ARPaymentModel,
    CreditNoteModel,
    InvoiceHistoryModel,
    InvoiceModel,
    InvoicePaymentModel,
)
from erp_modules.inventory.models import ItemCount
from erp_modules.inventory.orm import (
    ReconciliationItemModel,
    StockMovementLogModel,
    StockReconciliationModel,
)


class TestAppendOnlyRecords:

    @pytest.fixture
    def paid_invoice(self, create_customer, create_invoice, payment_service, test_actor_id):
        customer = create_customer()
        invoice = create_invoice(customer.id, amount="1000.00")
        payment_service.apply_payment(
            invoice.id, "400.00", "bank_transfer", date(2024, 1, 10), test_actor_id,
        )
        return invoice

    def test_receipt_cannot_be_updated(self, session, paid_invoice):
        receipt = session.execute(
            select(InvoicePaymentModel).where(InvoicePaymentModel.invoice_id == paid_invoice.id)
        ).scalar_one()
        receipt.amount = Decimal("1.00")

        with pytest.raises(ImmutabilityViolationError) as exc_info:
            session.flush()
        assert exc_info.value.entity_type == "InvoicePayment"
        session.rollback()

    def test_receipt_cannot_be_deleted(self, session, paid_invoice):
        receipt = session.execute(
            select(InvoicePaymentModel).where(InvoicePaymentModel.invoice_id == paid_invoice.id)
        ).scalar_one()
        session.delete(receipt)

        with pytest.raises(ImmutabilityViolationError):
            session.flush()
        session.rollback()

    def test_history_cannot_be_rewritten(self, session, paid_invoice):
        entry = session.execute(
            select(InvoiceHistoryModel).where(InvoiceHistoryModel.invoice_id == paid_invoice.id)
        ).scalars().first()
        entry.description = "rewritten"

        with pytest.raises(ImmutabilityViolationError):
            session.flush()
        session.rollback()

    def test_audit_metadata_change_is_allowed(self, session, paid_invoice, test_actor_id):
        receipt = session.execute(
            select(InvoicePaymentModel).where(InvoicePaymentModel.invoice_id == paid_invoice.id)
        ).scalar_one()
        receipt.updated_by_id = test_actor_id
        session.flush()

    def test_credit_note_and_ar_payment_are_append_only(
        self, session, create_customer, receivables_service, test_actor_id,
    ):
        customer = create_customer()
        receivables_service.issue_credit_note(
            customer.id, "50.00", "Short delivery", date(2024, 2, 1), test_actor_id,
        )
        receivables_service.record_payment(
            customer.id, "75.00", "cash", date(2024, 2, 2), test_actor_id,
        )

        note = session.execute(select(CreditNoteModel)).scalars().first()
        note.reason = "changed"
        with pytest.raises(ImmutabilityViolationError):
            session.flush()
        session.rollback()

        payment = session.execute(select(ARPaymentModel)).scalars().first()
        session.delete(payment)
        with pytest.raises(ImmutabilityViolationError):
            session.flush()
        session.rollback()


class TestInvoiceProtection:

    def test_posted_invoice_amounts_are_frozen(
        self, session, create_customer, create_invoice,
    ):
        invoice = create_invoice(create_customer().id, amount="250.00")
        row = session.get(InvoiceModel, invoice.id)
        row.total_amount = Decimal("1.00")

        with pytest.raises(ImmutabilityViolationError) as exc_info:
            session.flush()
        assert "total_amount" in exc_info.value.reason
        session.rollback()

    def test_draft_invoice_amounts_can_change(
        self, session, create_customer, create_invoice,
    ):
        invoice = create_invoice(create_customer().id, amount="250.00", draft=True)
        row = session.get(InvoiceModel, invoice.id)
        row.subtotal = Decimal("300.00")
        row.total_amount = Decimal("300.00")
        row.balance = Decimal("300.00")
        session.flush()

    def test_invoice_with_payments_cannot_be_deleted(
        self, session, create_customer, create_invoice, payment_service, test_actor_id,
    ):
        invoice = create_invoice(create_customer().id, amount="100.00")
        payment_service.apply_payment(invoice.id, "10.00", "cash", date(2024, 1, 2), test_actor_id)

        session.delete(session.get(InvoiceModel, invoice.id))
        with pytest.raises(ImmutabilityViolationError):
            session.flush()
        session.rollback()

    def test_status_changes_are_not_amount_changes(
        self, session, create_customer, create_invoice,
    ):
        invoice = create_invoice(create_customer().id)
        row = session.get(InvoiceModel, invoice.id)
        row.status = InvoiceStatus.SENT.value
        session.flush()


class TestCompletedReconciliationIsFrozen:

    @pytest.fixture
    def completed_session(
        self, create_warehouse, location_of, add_raw_material,
        reconciliation_service, test_actor_id,
    ):
        warehouse = create_warehouse()
        add_raw_material(location_of(warehouse), quantity="500")
        recon = reconciliation_service.start_session(warehouse.id, test_actor_id)
        reconciliation_service.record_counts(
            recon.id, [ItemCount(recon.items[0].id, Decimal("480"))], test_actor_id,
        )
        return reconciliation_service.finalize(recon.id, test_actor_id)

    def test_session_fields_cannot_change(self, session, completed_session):
        row = session.get(StockReconciliationModel, completed_session.id)
        row.notes = "edited afterwards"

        with pytest.raises(ImmutabilityViolationError):
            session.flush()
        session.rollback()

    def test_items_cannot_change(self, session, completed_session):
        item = session.get(ReconciliationItemModel, completed_session.items[0].id)
        item.physical_quantity = Decimal("500")

        with pytest.raises(ImmutabilityViolationError):
            session.flush()
        session.rollback()

    def test_movement_log_cannot_be_deleted(self, session, completed_session):
        log = session.execute(
            select(StockMovementLogModel)
            .where(StockMovementLogModel.reference_id == completed_session.id)
        ).scalar_one()
        session.delete(log)

        with pytest.raises(ImmutabilityViolationError):
            session.flush()
        session.rollback()
