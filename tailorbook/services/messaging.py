"""
Messaging Helpers

Customer messages go out through WhatsApp deep links; nothing is sent
from here. This module normalizes phone numbers, builds the links and
renders the message templates.
"""

import re
from decimal import Decimal
from typing import Optional
from urllib.parse import quote

from tailorbook.config import get_settings
from tailorbook.ledger.calculator import order_balance, order_paid
from tailorbook.models.entities import BusinessSettings, Order


WHATSAPP_BASE_URL = "https://wa.me"


def normalize_phone(phone: str, country_code: Optional[str] = None) -> str:
    """
    Digits-only international number.

    A leading trunk 0 is replaced by the country code; a number without
    the country code gets it prepended.

        normalize_phone("0300-1234567")  -> "923001234567"
        normalize_phone("3001234567")    -> "923001234567"
        normalize_phone("+92 300 1234567") -> "923001234567"
    """
    code = country_code or get_settings().app.phone_country_code
    digits = re.sub(r"\D", "", phone or "")
    if digits.startswith("0"):
        return code + digits[1:]
    if not digits.startswith(code):
        return code + digits
    return digits


def whatsapp_link(phone: str, text: str, country_code: Optional[str] = None) -> str:
    return f"{WHATSAPP_BASE_URL}/{normalize_phone(phone, country_code)}?text={quote(text, safe='')}"


def format_currency(amount: Decimal, label: Optional[str] = None) -> str:
    """Rs. 1,500 style; negatives keep the sign in front of the label."""
    label = label or get_settings().app.currency_label
    value = Decimal(amount)
    sign = "-" if value < 0 else ""
    magnitude = abs(value)
    if magnitude == magnitude.to_integral_value():
        body = f"{int(magnitude):,}"
    else:
        body = f"{magnitude:,.2f}"
    return f"{sign}{label} {body}"


def order_confirmation_message(order: Order, business: BusinessSettings) -> str:
    """WhatsApp text sent when an order is booked."""
    lines = [
        f"*{business.business_name} - Order Confirmed*",
        "",
        f"*Order ID:* #{order.display_number}",
        f"*Customer:* {order.customer_name}",
        "",
        "*Order Details:*",
    ]
    for item in order.items_list:
        lines.append(f"  - {item.type} (Qty: {item.qty})")
    lines += [
        "",
        "*Amount Summary:*",
        f"  *Total: {format_currency(order.total_price)}*",
        f"  Advance Received: {format_currency(order_paid(order))}",
        f"  Balance: {format_currency(order_balance(order))}",
    ]
    if order.delivery_date:
        lines += ["", f"*Due Date:* {order.delivery_date.strftime('%d %b %Y')}"]
    lines += ["", "Thank you for your order!"]
    if business.business_phone:
        lines.append(f"Contact: {business.business_phone}")
    return "\n".join(lines)


def payment_reminder_message(order: Order, business: BusinessSettings) -> str:
    """WhatsApp text asking a customer to settle an order balance."""
    return "\n".join([
        f"Dear {order.customer_name},",
        "",
        f"This is a reminder from {business.business_name} about order #{order.display_number}.",
        f"Total: {format_currency(order.total_price)}",
        f"Paid: {format_currency(order_paid(order))}",
        f"*Balance due: {format_currency(order_balance(order))}*",
        "",
        "Thank you!",
    ])
