"""
CSV export service for orders.

Generates the spreadsheet export used by admins for finance reconciliation.

Format:
- UTF-8 with a leading BOM so Excel detects the encoding
- One row per order, status rendered as a human label
- Amounts with exactly two decimals, timestamps in ISO-8601 UTC

Security:
- CSV Injection Prevention: free-text fields that start with a formula
  trigger are prefixed with a single quote so spreadsheets treat them as text
- Security Logging: every neutralised field is logged
"""

from __future__ import annotations

import csv
import logging
from io import StringIO
from typing import Iterable, Optional

from domain.money import format_money
from services.order_query_service import OrderExportRow

logger = logging.getLogger(__name__)

UTF8_BOM = "\ufeff"

CSV_HEADER = [
    "Order No",
    "Customer Name",
    "Customer Email",
    "Phone",
    "Ticket Type",
    "Quantity",
    "Attendees",
    "Total Amount",
    "Status",
    "Payment Method",
    "Payer Bank Last 4",
    "Verified By",
    "Paid At",
    "Created At",
]

_FORMULA_TRIGGERS = ("=", "+", "-", "@", "\t", "\r")


def sanitize_csv_field(value: Optional[str], field_name: str = "unknown") -> str:
    """
    Neutralise a field that could be executed as a formula by Excel/Sheets.

    Values starting with =, +, -, @, tab or carriage return get a leading
    single quote. Unlike stripping, this keeps data such as "+64 21 555 0100"
    intact. A warning is logged whenever a value is changed.

    Example:
        sanitize_csv_field("=1+1", "customer_name")
        # Returns "'=1+1" and logs a warning

        sanitize_csv_field("Ada Lovelace", "customer_name")
        # Returns "Ada Lovelace" (unchanged, no logging)
    """

    if value is None or value == "":
        return ""

    text = str(value).strip()
    if text.startswith(_FORMULA_TRIGGERS):
        logger.warning(
            f"CSV formula trigger neutralised in field '{field_name}'",
            extra={
                "field_name": field_name,
                "trigger_character": repr(text[0]),
                "original_value": text[:100],
                "modification_type": "csv_injection_prevention",
            },
        )
        return "'" + text

    return text


def generate_orders_csv(rows: Iterable[OrderExportRow]) -> str:
    """
    Render export rows as CSV text (BOM included).

    Example:
        rows = query_service.export_orders(caller, status="paid")
        return Response(content=generate_orders_csv(rows), media_type="text/csv")
    """

    output = StringIO()
    writer = csv.writer(output)
    writer.writerow(CSV_HEADER)

    for row in rows:
        writer.writerow([
            row.order_no,
            sanitize_csv_field(row.customer_name, "customer_name"),
            sanitize_csv_field(row.customer_email, "customer_email"),
            sanitize_csv_field(row.customer_phone, "customer_phone"),
            sanitize_csv_field(row.ticket_name, "ticket_name"),
            row.quantity,
            sanitize_csv_field(row.attendee_names, "attendee_names"),
            format_money(row.total_amount),
            row.status_label,
            row.payment_method,
            row.payer_bank_last4,
            sanitize_csv_field(row.verified_by, "verified_by"),
            row.paid_at.isoformat() if row.paid_at else "",
            row.created_at.isoformat(),
        ])

    return UTF8_BOM + output.getvalue()


__all__ = ["CSV_HEADER", "UTF8_BOM", "generate_orders_csv", "sanitize_csv_field"]
