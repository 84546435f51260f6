"""Tests for ReceivablesService: customers, invoices, payments, notes, provisions, follow-ups."""

from datetime import date
from decimal import Decimal
from uuid import uuid4

import pytest

from erp_kernel.exceptions import InvalidStateError, NotFoundError, OverpaymentError, ValidationError
from erp_modules.ar.models import FollowUpStatus, HistoryAction, InvoiceLineInput, InvoiceStatus
from erp_modules.ar.service import format_document_number


class TestCustomers:

    def test_create_and_get(self, receivables_service, test_actor_id):
        customer = receivables_service.create_customer(
            "C-100", "Loom & Co", test_actor_id, credit_limit="50000.00",
        )
        fetched = receivables_service.get_customer(customer.id)
        assert fetched.name == "Loom & Co"
        assert fetched.credit_limit == Decimal("50000.00")

    def test_duplicate_code_rejected(self, receivables_service, test_actor_id):
        receivables_service.create_customer("C-DUP", "First", test_actor_id)
        with pytest.raises(ValidationError) as exc_info:
            receivables_service.create_customer("C-DUP", "Second", test_actor_id)
        assert exc_info.value.field == "code"

    def test_blank_name_rejected(self, receivables_service, test_actor_id):
        with pytest.raises(ValidationError):
            receivables_service.create_customer("C-1", "   ", test_actor_id)

    def test_update_credit_limit(self, receivables_service, create_customer, test_actor_id):
        customer = create_customer()
        updated = receivables_service.update_credit_limit(customer.id, "12000.00", test_actor_id)
        assert updated.credit_limit == Decimal("12000.00")

    def test_list_customers_ordered_by_code(self, receivables_service, create_customer):
        create_customer(code="B-2", name="Beta")
        create_customer(code="A-1", name="Alpha")
        assert [c.code for c in receivables_service.list_customers()] == ["A-1", "B-2"]


class TestCreateInvoice:

    def test_totals_tax_and_defaults(self, receivables_service, create_customer, test_actor_id):
        customer = create_customer(name="Acme Textiles")
        invoice = receivables_service.create_invoice(
            customer.id,
            [
                InvoiceLineInput("Denim 12oz, meters", Decimal("120"), Decimal("4.25")),
                InvoiceLineInput("Dyeing charge", Decimal("1"), Decimal("90.00")),
            ],
            invoice_date=date(2024, 1, 1),
            actor_id=test_actor_id,
        )

        assert invoice.subtotal == Decimal("600.00")
        assert invoice.tax_amount == Decimal("108.00")
        assert invoice.total_amount == Decimal("708.00")
        assert invoice.balance == Decimal("708.00")
        assert invoice.paid_amount == Decimal("0")
        assert invoice.status is InvoiceStatus.PENDING
        assert invoice.due_date == date(2024, 1, 31)
        assert invoice.customer_name == "Acme Textiles"
        assert invoice.invoice_number == "INV-202401-0001"
        assert [item.total_price for item in invoice.items] == [Decimal("510.00"), Decimal("90.00")]

    def test_line_totals_are_rounded(self, receivables_service, create_customer, test_actor_id):
        invoice = receivables_service.create_invoice(
            create_customer().id,
            [InvoiceLineInput("Yarn, kg", Decimal("3"), Decimal("0.335"))],
            invoice_date=date(2024, 1, 1),
            actor_id=test_actor_id,
            tax_rate="0",
        )
        assert invoice.total_amount == Decimal("1.01")

    def test_created_history_entry(
        self, receivables_service, tracking_service, create_customer, test_actor_id,
    ):
        invoice = receivables_service.create_invoice(
            create_customer().id,
            [InvoiceLineInput("Canvas", Decimal("1"), Decimal("10.00"))],
            invoice_date=date(2024, 1, 1),
            actor_id=test_actor_id,
        )
        (entry,) = tracking_service.get_history(invoice.id)
        assert entry.action is HistoryAction.CREATED
        assert entry.new_value == "pending"

    def test_invoice_numbers_restart_each_month(self, create_customer, create_invoice):
        customer = create_customer()
        jan = create_invoice(customer.id, invoice_date=date(2024, 1, 5))
        jan2 = create_invoice(customer.id, invoice_date=date(2024, 1, 20))
        feb = create_invoice(customer.id, invoice_date=date(2024, 2, 1))
        assert (jan.invoice_number, jan2.invoice_number, feb.invoice_number) == (
            "INV-202401-0001", "INV-202401-0002", "INV-202402-0001",
        )

    def test_unknown_customer(self, receivables_service, test_actor_id):
        with pytest.raises(NotFoundError):
            receivables_service.create_invoice(
                uuid4(),
                [InvoiceLineInput("Canvas", Decimal("1"), Decimal("10.00"))],
                invoice_date=date(2024, 1, 1),
                actor_id=test_actor_id,
            )

    @pytest.mark.parametrize("items", [
        [],
        [InvoiceLineInput("Canvas", Decimal("0"), Decimal("10.00"))],
        [InvoiceLineInput("Canvas", Decimal("1"), Decimal("-1"))],
        [InvoiceLineInput("", Decimal("1"), Decimal("1"))],
        [InvoiceLineInput("Canvas", 1.0, Decimal("1"))],
    ])
    def test_invalid_items(self, items, receivables_service, create_customer, test_actor_id):
        with pytest.raises(ValidationError):
            receivables_service.create_invoice(
                create_customer().id, items, invoice_date=date(2024, 1, 1), actor_id=test_actor_id,
            )

    @pytest.mark.parametrize("tax_rate", [0.05, "five percent", "NaN", Decimal("-0.01")])
    def test_invalid_tax_rate(self, tax_rate, receivables_service, create_customer, test_actor_id):
        with pytest.raises(ValidationError) as exc_info:
            receivables_service.create_invoice(
                create_customer().id,
                [InvoiceLineInput("Canvas", Decimal("1"), Decimal("10.00"))],
                invoice_date=date(2024, 1, 1),
                actor_id=test_actor_id,
                tax_rate=tax_rate,
            )
        assert exc_info.value.field == "tax_rate"

    def test_due_date_before_invoice_date(self, receivables_service, create_customer, test_actor_id):
        with pytest.raises(ValidationError):
            receivables_service.create_invoice(
                create_customer().id,
                [InvoiceLineInput("Canvas", Decimal("1"), Decimal("10.00"))],
                invoice_date=date(2024, 1, 10),
                due_date=date(2024, 1, 1),
                actor_id=test_actor_id,
            )


class TestRecordPayment:

    def test_unapplied_payment_touches_no_invoice(
        self, receivables_service, tracking_service, create_customer, create_invoice, test_actor_id,
    ):
        customer = create_customer()
        invoice = create_invoice(customer.id, amount="500.00")

        payment = receivables_service.record_payment(
            customer.id, "200.00", "bank_transfer", date(2024, 1, 15), test_actor_id,
        )

        assert payment.invoice_id is None
        assert tracking_service.get_invoice(invoice.id).paid_amount == Decimal("0")

    def test_linked_payment_updates_invoice(
        self, receivables_service, tracking_service, create_customer, create_invoice, test_actor_id,
    ):
        customer = create_customer()
        invoice = create_invoice(customer.id, amount="500.00")

        receivables_service.record_payment(
            customer.id, "500.00", "bank_transfer", date(2024, 1, 15), test_actor_id,
            invoice_id=invoice.id, reference="UTR-8812",
        )

        updated = tracking_service.get_invoice(invoice.id)
        assert updated.status is InvoiceStatus.PAID
        assert updated.is_locked is True
        history = tracking_service.get_history(invoice.id)
        assert any(
            h.action is HistoryAction.PAYMENT_RECEIVED and h.new_value == "paid" for h in history
        )

    def test_linked_overpayment_rejected(
        self, receivables_service, create_customer, create_invoice, test_actor_id,
    ):
        customer = create_customer()
        invoice = create_invoice(customer.id, amount="500.00")
        with pytest.raises(OverpaymentError):
            receivables_service.record_payment(
                customer.id, "500.01", "cash", date(2024, 1, 15), test_actor_id, invoice_id=invoice.id,
            )

    def test_invoice_of_other_customer_rejected(
        self, receivables_service, create_customer, create_invoice, test_actor_id,
    ):
        owner = create_customer()
        other = create_customer()
        invoice = create_invoice(owner.id)
        with pytest.raises(ValidationError):
            receivables_service.record_payment(
                other.id, "10.00", "cash", date(2024, 1, 15), test_actor_id, invoice_id=invoice.id,
            )


class TestNotesAndProvisions:

    def test_credit_and_debit_note_numbers(self, receivables_service, create_customer, test_actor_id):
        customer = create_customer()
        credit = receivables_service.issue_credit_note(
            customer.id, "25.00", "Shade variation", date(2024, 2, 3), test_actor_id,
        )
        debit = receivables_service.issue_debit_note(
            customer.id, "15.00", "Freight recharge", date(2024, 2, 4), test_actor_id,
        )
        assert credit.note_number == "CN-202402-0001"
        assert debit.note_number == "DN-202402-0001"
        assert credit.amount == Decimal("25.00")

    def test_note_does_not_change_invoice_paid_amount(
        self, receivables_service, tracking_service, create_customer, create_invoice, test_actor_id,
    ):
        customer = create_customer()
        invoice = create_invoice(customer.id, amount="100.00")
        receivables_service.issue_credit_note(
            customer.id, "30.00", "Damaged roll", date(2024, 1, 5), test_actor_id, invoice_id=invoice.id,
        )
        assert tracking_service.get_invoice(invoice.id).paid_amount == Decimal("0")

    def test_note_requires_reason(self, receivables_service, create_customer, test_actor_id):
        with pytest.raises(ValidationError):
            receivables_service.issue_credit_note(
                create_customer().id, "30.00", "", date(2024, 1, 5), test_actor_id,
            )

    def test_provision(self, receivables_service, create_customer, test_actor_id):
        provision = receivables_service.provision_bad_debt(
            create_customer().id, "400.00", date(2024, 3, 31), test_actor_id, notes="Customer insolvent",
        )
        assert provision.amount == Decimal("400.00")
        assert provision.notes == "Customer insolvent"

    def test_provision_must_be_positive(self, receivables_service, create_customer, test_actor_id):
        with pytest.raises(ValidationError):
            receivables_service.provision_bad_debt(
                create_customer().id, "0", date(2024, 3, 31), test_actor_id,
            )


class TestDocumentNumbers:

    def test_format(self):
        assert format_document_number("INV", "202401", 42) == "INV-202401-0042"


class TestFollowUps:

    def test_follow_up_starts_open(
        self, receivables_service, create_customer, create_invoice, test_actor_id,
    ):
        customer = create_customer()
        invoice = create_invoice(customer.id)
        follow_up = receivables_service.create_follow_up(
            customer.id, date(2024, 2, 5), test_actor_id,
            invoice_id=invoice.id, notes="call accounts payable",
        )
        assert follow_up.status is FollowUpStatus.OPEN
        assert follow_up.invoice_id == invoice.id
        assert follow_up.notes == "call accounts payable"

    def test_invoice_of_other_customer_rejected(
        self, receivables_service, create_customer, create_invoice, test_actor_id,
    ):
        invoice = create_invoice(create_customer().id)
        with pytest.raises(ValidationError):
            receivables_service.create_follow_up(
                create_customer().id, date(2024, 2, 5), test_actor_id, invoice_id=invoice.id,
            )

    def test_unknown_customer(self, receivables_service, test_actor_id):
        with pytest.raises(NotFoundError):
            receivables_service.create_follow_up(uuid4(), date(2024, 2, 5), test_actor_id)

    def test_list_by_due_date_and_close_once(
        self, receivables_service, create_customer, test_actor_id,
    ):
        customer = create_customer()
        late = receivables_service.create_follow_up(customer.id, date(2024, 3, 1), test_actor_id)
        early = receivables_service.create_follow_up(customer.id, date(2024, 2, 1), test_actor_id)

        listed = receivables_service.list_follow_ups(customer.id)
        assert [f.id for f in listed] == [early.id, late.id]

        closed = receivables_service.close_follow_up(early.id, test_actor_id)
        assert closed.status is FollowUpStatus.CLOSED
        still_open = receivables_service.list_follow_ups(customer.id, status=FollowUpStatus.OPEN)
        assert [f.id for f in still_open] == [late.id]

        with pytest.raises(InvalidStateError):
            receivables_service.close_follow_up(early.id, test_actor_id)
