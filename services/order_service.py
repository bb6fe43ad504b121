"""
Order lifecycle engine.

The only component allowed to create orders, move them through payment and
record bank transfer verification.

Handles:
- Request validation (contact details, attendee names, attendee count)
- Per-attendee pricing with price snapshots
- Atomic inventory reservation + order insert (delegated to the OrderStore)
- pending -> paid transitions with a double-payment guard
- Best-effort confirmation notifications (never block or fail a payment)
- One-time transfer verification by an admin
"""

from __future__ import annotations

import logging
import re
from collections import Counter
from typing import Callable, Dict, List, Optional, Sequence

from domain.errors import (
    DuplicateOrderNumberError,
    InsufficientInventoryError,
    InvalidTicketTypeError,
    OrderNotFoundError,
    ValidationError,
)
from domain.identity import CallerIdentity, require_admin
from domain.order import MAX_ATTENDEES, Order, OrderStatus, validate_bank_last4
from domain.ticket import TicketType
from domain.time import Clock, utc_now
from repositories.interfaces import OrderStore, TicketStore
from services.notification_service import Notifier
from services.order_details import OrderDetails, build_order_details
from services.order_number import generate_order_no
from services.pricing_service import AttendeeRequest, price_attendees

logger = logging.getLogger(__name__)

EMAIL_RE = re.compile(r"^[^\s@]+@[^\s@]+\.[^\s@]+$")
MAX_NAME_LENGTH = 100
MAX_ORDER_NO_ATTEMPTS = 3


def _normalize_email(email: Optional[str]) -> str:
    cleaned = (email or "").strip().lower()
    if not EMAIL_RE.match(cleaned):
        raise ValidationError("customer_email", "Please provide a valid e-mail address")
    return cleaned


def _normalize_phone(phone: Optional[str]) -> Optional[str]:
    cleaned = (phone or "").strip()
    if len(cleaned) > 32:
        raise ValidationError("customer_phone", "Phone number must be at most 32 characters")
    return cleaned or None


def _normalize_attendees(attendees: Sequence[AttendeeRequest]) -> List[AttendeeRequest]:
    if not 1 <= len(attendees) <= MAX_ATTENDEES:
        raise ValidationError(
            "attendees",
            f"An order must have between 1 and {MAX_ATTENDEES} attendees",
        )

    normalized: List[AttendeeRequest] = []
    for index, attendee in enumerate(attendees):
        name = (attendee.name or "").strip()
        if not name:
            raise ValidationError(f"attendees[{index}].name", f"Attendee {index + 1} needs a name")
        if len(name) > MAX_NAME_LENGTH:
            raise ValidationError(
                f"attendees[{index}].name",
                f"Attendee {index + 1} name must be at most {MAX_NAME_LENGTH} characters",
            )
        normalized.append(AttendeeRequest(name=name, ticket_type_id=attendee.ticket_type_id))
    return normalized


class OrderService:
    """
    Order lifecycle engine.

    Stores and the notifier are injected; their lifecycle belongs to the host
    application.
    """

    def __init__(
        self,
        tickets: TicketStore,
        orders: OrderStore,
        notifier: Notifier,
        clock: Clock = utc_now,
        order_no_factory: Callable[[], str] = generate_order_no,
    ) -> None:
        self._tickets = tickets
        self._orders = orders
        self._notifier = notifier
        self._clock = clock
        self._order_no_factory = order_no_factory

    def create_order(
        self,
        contact_email: str,
        contact_phone: Optional[str],
        attendees: Sequence[AttendeeRequest],
    ) -> OrderDetails:
        """
        Create a pending order and reserve its tickets.

        Process:
        1. Validate contact details and attendees
        2. Count attendees per ticket type
        3. Resolve every ticket type (InvalidTicketTypeError if any is unknown)
        4. Check availability per ticket type (InsufficientInventoryError)
        5. Snapshot prices and compute the total, one term per attendee
        6. Persist the order and increment sold counts atomically; the store
           re-checks availability inside the same unit so concurrent requests
           cannot oversell

        Nothing is persisted when any step fails.
        """

        email = _normalize_email(contact_email)
        phone = _normalize_phone(contact_phone)
        requested = _normalize_attendees(attendees)

        counts: Dict[int, int] = dict(Counter(a.ticket_type_id for a in requested))

        resolved: Dict[int, TicketType] = {}
        unknown: List[int] = []
        for ticket_type_id in counts:
            ticket = self._tickets.get_by_id(ticket_type_id)
            if ticket is None:
                unknown.append(ticket_type_id)
            else:
                resolved[ticket_type_id] = ticket
        if unknown:
            raise InvalidTicketTypeError(unknown)

        shortages = [
            (ticket.id, ticket.name, counts[ticket.id], ticket.remaining if ticket.is_active else None)
            for ticket in resolved.values()
            if not ticket.can_fulfil(counts[ticket.id])
        ]
        if shortages:
            raise InsufficientInventoryError(shortages)

        manifest = price_attendees(requested, resolved)

        for attempt in range(1, MAX_ORDER_NO_ATTEMPTS + 1):
            order = Order(
                order_no=self._order_no_factory(),
                customer_name=manifest.attendees[0].name,
                customer_email=email,
                customer_phone=phone,
                attendees=tuple(manifest.attendees),
                total_amount=manifest.total,
                status=OrderStatus.PENDING,
                created_at=self._clock(),
            )
            try:
                stored = self._orders.create_with_reservation(order, counts)
            except DuplicateOrderNumberError:
                logger.warning(
                    "Order number collision, retrying",
                    extra={"order_no": order.order_no, "attempt": attempt},
                )
                if attempt == MAX_ORDER_NO_ATTEMPTS:
                    raise
                continue
            break

        logger.info(
            "Order created",
            extra={
                "order_no": stored.order_no,
                "attendee_count": stored.quantity,
                "total_amount": str(stored.total_amount),
                "reservations": counts,
            },
        )
        return build_order_details(stored, self._tickets)

    def get_order(self, order_no: str) -> OrderDetails:
        order = self._orders.get_by_order_no(order_no)
        if order is None:
            raise OrderNotFoundError(order_no)
        return build_order_details(order, self._tickets)

    def pay_order(self, order_no: str) -> OrderDetails:
        """
        Transition a pending order to paid (simulated payment).

        Raises:
            OrderNotFoundError: No such order.
            AlreadyPaidError: The order was already paid; nothing changes.
            OrderCancelledError: The order was cancelled.

        On success a confirmation is queued; its outcome does not affect the result.
        """

        order = self._orders.get_by_order_no(order_no)
        if order is None:
            raise OrderNotFoundError(order_no)

        paid_at = self._clock()
        # Raises early for paid/cancelled orders; the store re-checks atomically.
        order.mark_paid(paid_at)
        paid = self._orders.mark_paid(order_no, paid_at)

        logger.info("Order paid", extra={"order_no": order_no, "paid_at": paid.paid_at.isoformat()})

        details = build_order_details(paid, self._tickets)
        self._request_confirmation(details)
        return details

    def confirm_payment(self, order_no: str, caller: CallerIdentity) -> OrderDetails:
        """Admin confirmation that a bank transfer arrived. Same guarantees as pay_order."""

        require_admin(caller)
        details = self.pay_order(order_no)
        logger.info("Payment confirmed by admin", extra={"order_no": order_no, "admin_id": caller.id})
        return details

    def verify_transfer_payment(
        self,
        order_no: str,
        payer_bank_last4: str,
        caller: CallerIdentity,
    ) -> OrderDetails:
        """
        Record bank statement evidence for an already-paid order.

        The digits are an audit note entered by the admin; only their shape is
        checked. Amount, status and timestamps are not changed.

        Raises:
            ValidationError: payer_bank_last4 is not exactly 4 digits.
            OrderNotFoundError: No such order.
            InvalidOrderStateError: The order is not paid yet.
            AlreadyVerifiedError: The order was verified before.
        """

        require_admin(caller)
        digits = (payer_bank_last4 or "").strip()
        validate_bank_last4(digits)

        order = self._orders.get_by_order_no(order_no)
        if order is None:
            raise OrderNotFoundError(order_no)
        order.with_transfer_verification(digits, caller.id)

        verified = self._orders.record_transfer_verification(order_no, digits, caller.id)
        logger.info(
            "Transfer payment verified",
            extra={"order_no": order_no, "admin_id": caller.id},
        )
        return build_order_details(verified, self._tickets)

    def _request_confirmation(self, details: OrderDetails) -> None:
        try:
            self._notifier.enqueue(details)
        except Exception:
            logger.exception(
                "Could not queue order confirmation",
                extra={"order_no": details.order.order_no},
            )


__all__ = ["AttendeeRequest", "EMAIL_RE", "OrderService"]
