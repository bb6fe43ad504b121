"""
Order confirmation notifications.

After an order is paid the lifecycle engine hands the resolved order to an
OutboxNotifier and returns immediately. The notifier delivers it on a worker
thread through a NotificationSink, retrying a few times. Delivery failures
are logged and never reach the code that triggered the payment.

Sinks:
- SmtpNotificationSink: e-mails the customer (plain text + HTML)
- LoggingNotificationSink: logs the confirmation (used when SMTP is not configured)
"""

from __future__ import annotations

import html
import logging
import smtplib
import time
from concurrent.futures import Future, ThreadPoolExecutor
from email.message import EmailMessage
from typing import Optional, Protocol

from domain.errors import NotificationDeliveryError
from domain.money import format_money
from services.order_details import OrderDetails

logger = logging.getLogger(__name__)


class NotificationSink(Protocol):
    def send_order_confirmation(self, details: OrderDetails) -> None:
        ...


class Notifier(Protocol):
    def enqueue(self, details: OrderDetails) -> object:
        ...


def _paid_at_text(details: OrderDetails) -> str:
    paid_at = details.order.paid_at
    return paid_at.strftime("%Y-%m-%d %H:%M UTC") if paid_at else "-"


def render_confirmation_subject(details: OrderDetails) -> str:
    return f"Order Confirmation - {details.order.order_no}"


def render_confirmation_text(details: OrderDetails, conference_name: str) -> str:
    order = details.order
    attendee_lines = "\n".join(
        f"  - {a.name}: {a.ticket_name} ({format_money(a.ticket_price)})" for a in order.attendees
    )
    return (
        f"{conference_name}\n"
        f"{'=' * len(conference_name)}\n\n"
        "Order Confirmation\n\n"
        "Thank you for your registration! Your order has been paid successfully.\n\n"
        f"Order No: {order.order_no}\n"
        "Status: Paid\n"
        f"Paid at: {_paid_at_text(details)}\n\n"
        "Attendees\n"
        "---------\n"
        f"{attendee_lines}\n\n"
        f"Total: {format_money(order.total_amount)}\n\n"
        "This is an automated e-mail. Please do not reply directly.\n"
    )


def render_confirmation_html(details: OrderDetails, conference_name: str) -> str:
    order = details.order
    rows = "".join(
        "<tr>"
        f"<td>{html.escape(a.name)}</td>"
        f"<td>{html.escape(a.ticket_name)}</td>"
        f"<td style=\"text-align: right\">{format_money(a.ticket_price)}</td>"
        "</tr>"
        for a in order.attendees
    )
    return (
        "<!DOCTYPE html><html><head><meta charset=\"utf-8\"></head><body>"
        f"<h1>{html.escape(conference_name)}</h1>"
        "<h2>Order Confirmation</h2>"
        "<p>Thank you for your registration! Your order has been paid successfully.</p>"
        f"<p><strong>Order No:</strong> {html.escape(order.order_no)}<br>"
        f"<strong>Paid at:</strong> {_paid_at_text(details)}</p>"
        "<table><thead><tr><th>Attendee</th><th>Ticket Type</th><th>Price</th></tr></thead>"
        f"<tbody>{rows}</tbody></table>"
        f"<p><strong>Total: {format_money(order.total_amount)}</strong></p>"
        "<p>This is an automated e-mail. Please do not reply directly.</p>"
        "</body></html>"
    )


class LoggingNotificationSink:
    """Writes confirmations to the log instead of sending them."""

    def __init__(self, conference_name: str = "Conference") -> None:
        self._conference_name = conference_name

    def send_order_confirmation(self, details: OrderDetails) -> None:
        logger.info(
            "Order confirmation (not e-mailed, SMTP not configured)",
            extra={
                "order_no": details.order.order_no,
                "recipient": details.order.customer_email,
                "body": render_confirmation_text(details, self._conference_name),
            },
        )


class SmtpNotificationSink:
    """E-mails order confirmations through an SMTP relay."""

    def __init__(
        self,
        *,
        host: str,
        port: int,
        sender: str,
        conference_name: str,
        username: Optional[str] = None,
        password: Optional[str] = None,
        use_tls: bool = True,
        timeout: float = 10.0,
    ) -> None:
        self._host = host
        self._port = port
        self._sender = sender
        self._conference_name = conference_name
        self._username = username
        self._password = password
        self._use_tls = use_tls
        self._timeout = timeout

    def build_message(self, details: OrderDetails) -> EmailMessage:
        message = EmailMessage()
        message["From"] = self._sender
        message["To"] = details.order.customer_email
        message["Subject"] = render_confirmation_subject(details)
        message.set_content(render_confirmation_text(details, self._conference_name))
        message.add_alternative(render_confirmation_html(details, self._conference_name), subtype="html")
        return message

    def send_order_confirmation(self, details: OrderDetails) -> None:
        message = self.build_message(details)
        with smtplib.SMTP(self._host, self._port, timeout=self._timeout) as smtp:
            if self._use_tls:
                smtp.starttls()
            if self._username:
                smtp.login(self._username, self._password or "")
            smtp.send_message(message)


class OutboxNotifier:
    """
    Fire-and-forget delivery of order confirmations.

    `enqueue` returns a Future resolving to True (delivered) or False (gave up);
    the future never raises.
    """

    def __init__(
        self,
        sink: NotificationSink,
        *,
        max_attempts: int = 3,
        retry_delay_seconds: float = 0.5,
        max_workers: int = 2,
    ) -> None:
        if max_attempts < 1:
            raise ValueError("max_attempts must be >= 1")
        self._sink = sink
        self._max_attempts = max_attempts
        self._retry_delay_seconds = retry_delay_seconds
        self._executor = ThreadPoolExecutor(max_workers=max_workers, thread_name_prefix="notify")

    def enqueue(self, details: OrderDetails) -> "Future[bool]":
        return self._executor.submit(self._deliver, details)

    def _deliver(self, details: OrderDetails) -> bool:
        order_no = details.order.order_no
        attempt = 1

        while True:
            try:
                self._sink.send_order_confirmation(details)
            except Exception as e:
                logger.warning(
                    "Order confirmation delivery failed",
                    extra={"order_no": order_no, "attempt": attempt, "error": str(e)},
                )
                if attempt >= self._max_attempts:
                    failure = NotificationDeliveryError(order_no, attempt, e)
                    logger.error(str(failure), exc_info=(type(e), e, e.__traceback__))
                    return False
                time.sleep(self._retry_delay_seconds * attempt)
                attempt += 1
                continue

            logger.info("Order confirmation delivered", extra={"order_no": order_no, "attempt": attempt})
            return True

    def shutdown(self, wait: bool = True) -> None:
        self._executor.shutdown(wait=wait)


__all__ = [
    "LoggingNotificationSink",
    "NotificationSink",
    "Notifier",
    "OutboxNotifier",
    "SmtpNotificationSink",
    "render_confirmation_html",
    "render_confirmation_subject",
    "render_confirmation_text",
]
