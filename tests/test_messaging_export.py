"""
Tests for WhatsApp messaging helpers and CSV export.
"""

from datetime import date, datetime
from decimal import Decimal

import pytest

from tailorbook.models import Account, BusinessSettings, Customer, Expense, OrderItem
from tailorbook.services.export import customer_rows, expense_rows, order_rows, to_csv
from tailorbook.services.messaging import (
    format_currency,
    normalize_phone,
    order_confirmation_message,
    payment_reminder_message,
    whatsapp_link,
)


class TestPhoneNumbers:
    """Tests for phone normalization."""

    @pytest.mark.parametrize("raw", ["0300-1234567", "3001234567", "+92 300 1234567", "923001234567"])
    def test_normalize(self, raw):
        """Test the accepted local and international forms."""
        assert normalize_phone(raw) == "923001234567"

    def test_explicit_country_code(self):
        """Test a different country code."""
        assert normalize_phone("07700 900123", country_code="44") == "447700900123"

    def test_whatsapp_link_encodes_text(self):
        """Test that the message text is fully URL-encoded."""
        link = whatsapp_link("03001234567", "Hi & bye")
        assert link == "https://wa.me/923001234567?text=Hi%20%26%20bye"


class TestMessages:
    """Tests for message templates."""

    def test_currency(self):
        """Test amount formatting."""
        assert format_currency(Decimal("1500")) == "Rs. 1,500"
        assert format_currency(Decimal("-250.5")) == "-Rs. 250.50"

    def test_confirmation(self, make_order):
        """Test the booking confirmation text."""
        order = make_order(
            total=5000,
            paid=[(1000, None)],
            customer_name="Imran",
            order_number="ORD-Mar-24-0001",
            items_list=[OrderItem(type="Suit", qty=2)],
            delivery_date=date(2024, 4, 1),
        )
        text = order_confirmation_message(order, BusinessSettings(business_phone="042-111"))

        assert "*Designer Tailors - Order Confirmed*" in text
        assert "#ORD-Mar-24-0001" in text
        assert "  - Suit (Qty: 2)" in text
        assert "Balance: Rs. 4,000" in text
        assert "*Due Date:* 01 Apr 2024" in text
        assert text.endswith("Contact: 042-111")

    def test_reminder(self, make_order):
        """Test the payment reminder text."""
        order = make_order(total=3000, paid=[(500, None)], customer_name="Bilal")
        text = payment_reminder_message(order, BusinessSettings(business_name="Khan Tailors"))
        assert text.startswith("Dear Bilal,")
        assert "*Balance due: Rs. 2,500*" in text


class TestCsv:
    """Tests for CSV rendering."""

    def test_quoting(self):
        """Test that commas, quotes and newlines are quoted."""
        text = to_csv([{"Name": 'Ali "Master", Jr', "Note": "two\nlines", "Amount": Decimal("12.50")}])
        lines = text.split("\n")
        assert lines[0] == "Name,Note,Amount"
        assert text.startswith('Name,Note,Amount\n"Ali ""Master"", Jr","two\nlines",12.50\n')

    def test_empty_without_columns(self):
        """Test that nothing renders as an empty string."""
        assert to_csv([]) == ""

    def test_dotted_columns(self, make_order):
        """Test nested lookups with explicit columns."""
        order = make_order(cutter="Ali", cutter_rate=300)
        text = to_csv([order], columns=[("assignments.cutter", "Cutter"), ("assignments.stitcher", "Stitcher")])
        assert text == "Cutter,Stitcher\nAli,\n"

    def test_order_rows(self, make_order):
        """Test the order export columns."""
        order = make_order(total=5000, paid=[(1000, None)], customer_name="Imran",
                           when=datetime(2024, 3, 10), items_list=[OrderItem(type="Suit", price=Decimal("5000"))])
        row = order_rows([order])[0]
        assert row["Balance"] == Decimal("4000")
        assert row["Order Date"] == date(2024, 3, 10)
        assert row["Items"] == "1x Suit @5000"

    def test_customer_rows(self, make_order):
        """Test per-customer totals."""
        customers = [Customer(id="C-1", name="Imran")]
        orders = [make_order(customer_id="C-1", total=1000, paid=[(400, None)]),
                  make_order(customer_id="C-2", total=9000)]
        row = customer_rows(customers, orders)[0]
        assert row["Total Orders"] == 1
        assert row["Balance"] == Decimal("600")

    def test_expense_account_names(self):
        """Test that expenses show their account name, or the legacy mode."""
        rows = expense_rows(
            [
                Expense(amount=Decimal("10"), account_id="acc-1", date=datetime(2024, 1, 2)),
                Expense(amount=Decimal("20"), mode="Cash", date=datetime(2024, 1, 3)),
            ],
            [Account(id="acc-1", name="Bank")],
        )
        assert [r["Account"] for r in rows] == ["Bank", "Cash"]


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
