"""Tests for InvoiceTrackingService status transitions and overdue marking."""

from datetime import date, datetime, timezone
from uuid import uuid4

import pytest

from erp_kernel.exceptions import InvalidStateError, NotFoundError
from erp_modules.ar.models import HistoryAction, InvoiceStatus
from erp_modules.ar.tracking import ALLOWED_TRANSITIONS


def _naive_utc(value: datetime) -> datetime:
    """SQLite drops tzinfo on load; compare instants as naive UTC."""
    if value.tzinfo is not None:
        value = value.astimezone(timezone.utc).replace(tzinfo=None)
    return value


class TestUpdateStatus:

    def test_sent_then_viewed_stamps_once(
        self, tracking_service, create_customer, create_invoice, test_actor_id, deterministic_clock,
    ):
        invoice = create_invoice(create_customer().id)

        sent = tracking_service.update_status(invoice.id, InvoiceStatus.SENT, test_actor_id)
        assert sent.status is InvoiceStatus.SENT
        assert sent.sent_at is not None
        first_sent_at = sent.sent_at

        deterministic_clock.advance(3600)
        viewed = tracking_service.update_status(invoice.id, InvoiceStatus.VIEWED, test_actor_id)
        assert viewed.viewed_at is not None
        assert _naive_utc(viewed.sent_at) == _naive_utc(first_sent_at)

    def test_status_change_is_recorded_in_history(
        self, tracking_service, create_customer, create_invoice, test_actor_id,
    ):
        invoice = create_invoice(create_customer().id)
        tracking_service.update_status(invoice.id, "sent", test_actor_id, notes="emailed to buyer")

        changes = [
            h for h in tracking_service.get_history(invoice.id)
            if h.action is HistoryAction.STATUS_CHANGED
        ]
        assert len(changes) == 1
        assert changes[0].old_value == "pending"
        assert changes[0].new_value == "sent"
        assert changes[0].description == "Status changed from pending to sent: emailed to buyer"

    def test_same_status_is_a_no_op(
        self, tracking_service, create_customer, create_invoice, test_actor_id,
    ):
        invoice = create_invoice(create_customer().id)
        tracking_service.update_status(invoice.id, InvoiceStatus.PENDING, test_actor_id)
        assert len(tracking_service.get_history(invoice.id)) == 1

    def test_paid_can_only_be_reached_through_payments(
        self, tracking_service, create_customer, create_invoice, test_actor_id,
    ):
        invoice = create_invoice(create_customer().id)
        for target in (InvoiceStatus.PAID, InvoiceStatus.PARTIALLY_PAID):
            with pytest.raises(InvalidStateError):
                tracking_service.update_status(invoice.id, target, test_actor_id)

    def test_terminal_states_reject_changes(
        self, tracking_service, create_customer, create_invoice, test_actor_id,
    ):
        invoice = create_invoice(create_customer().id)
        tracking_service.update_status(invoice.id, InvoiceStatus.VOID, test_actor_id)
        with pytest.raises(InvalidStateError):
            tracking_service.update_status(invoice.id, InvoiceStatus.PENDING, test_actor_id)

    def test_cannot_cancel_after_payment(
        self, tracking_service, payment_service, create_customer, create_invoice, test_actor_id,
    ):
        invoice = create_invoice(create_customer().id, amount="100.00")
        payment_service.apply_payment(invoice.id, "10.00", "cash", date(2024, 1, 2), test_actor_id)
        with pytest.raises(InvalidStateError):
            tracking_service.update_status(invoice.id, InvoiceStatus.CANCELLED, test_actor_id)

    def test_draft_can_be_posted(
        self, tracking_service, create_customer, create_invoice, test_actor_id,
    ):
        invoice = create_invoice(create_customer().id, draft=True)
        posted = tracking_service.update_status(invoice.id, InvoiceStatus.PENDING, test_actor_id)
        assert posted.status is InvoiceStatus.PENDING

    def test_unknown_invoice(self, tracking_service, test_actor_id):
        with pytest.raises(NotFoundError):
            tracking_service.update_status(uuid4(), InvoiceStatus.SENT, test_actor_id)

    def test_terminal_states_have_no_exits(self):
        for status in (InvoiceStatus.PAID, InvoiceStatus.CANCELLED, InvoiceStatus.VOID):
            assert ALLOWED_TRANSITIONS[status] == frozenset()


class TestMarkOverdue:

    def test_only_unpaid_past_due_invoices_move(
        self, tracking_service, payment_service, create_customer, create_invoice, test_actor_id,
    ):
        customer = create_customer()
        past_due = create_invoice(customer.id, invoice_date=date(2024, 1, 1), due_date=date(2024, 1, 31))
        partly_paid = create_invoice(customer.id, invoice_date=date(2024, 1, 1), due_date=date(2024, 1, 31))
        not_due = create_invoice(customer.id, invoice_date=date(2024, 2, 1), due_date=date(2024, 3, 31))
        draft = create_invoice(
            customer.id, invoice_date=date(2024, 1, 1), due_date=date(2024, 1, 31), draft=True,
        )
        payment_service.apply_payment(partly_paid.id, "1.00", "cash", date(2024, 1, 20), test_actor_id)

        changed = tracking_service.mark_overdue(date(2024, 2, 15), test_actor_id)

        assert [inv.id for inv in changed] == [past_due.id]
        assert changed[0].status is InvoiceStatus.OVERDUE
        assert tracking_service.get_invoice(partly_paid.id).status is InvoiceStatus.PARTIALLY_PAID
        assert tracking_service.get_invoice(not_due.id).status is InvoiceStatus.PENDING
        assert tracking_service.get_invoice(draft.id).status is InvoiceStatus.DRAFT

    def test_due_today_is_not_overdue(
        self, tracking_service, create_customer, create_invoice, test_actor_id,
    ):
        create_invoice(create_customer().id, invoice_date=date(2024, 1, 1), due_date=date(2024, 1, 31))
        assert tracking_service.mark_overdue(date(2024, 1, 31), test_actor_id) == []


class TestReads:

    def test_get_payments_ordered_by_receipt(
        self, tracking_service, payment_service, create_customer, create_invoice, test_actor_id,
    ):
        invoice = create_invoice(create_customer().id, amount="100.00")
        for amount in ("10.00", "20.00"):
            payment_service.apply_payment(invoice.id, amount, "cash", date(2024, 1, 2), test_actor_id)

        payments = tracking_service.get_payments(invoice.id)
        assert [p.receipt_number for p in payments] == sorted(p.receipt_number for p in payments)
        assert len(payments) == 2

    def test_history_keeps_write_order_within_the_same_instant(
        self, tracking_service, payment_service, create_customer, create_invoice, test_actor_id,
    ):
        invoice = create_invoice(create_customer().id, amount="100.00")
        tracking_service.update_status(invoice.id, InvoiceStatus.SENT, test_actor_id)
        tracking_service.update_status(invoice.id, InvoiceStatus.VIEWED, test_actor_id)
        payment_service.apply_payment(invoice.id, "100.00", "cash", date(2024, 1, 2), test_actor_id)

        history = tracking_service.get_history(invoice.id)
        assert [h.entry_seq for h in history] == [1, 2, 3, 4]
        assert [h.action for h in history] == [
            HistoryAction.CREATED,
            HistoryAction.STATUS_CHANGED,
            HistoryAction.STATUS_CHANGED,
            HistoryAction.PAYMENT_RECEIVED,
        ]
        assert [h.new_value for h in history[1:3]] == ["sent", "viewed"]
