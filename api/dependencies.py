"""
FastAPI dependencies.

Builds the service container from settings (storage backend, notifier) and
resolves the caller identity from a bearer JWT.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Optional

from fastapi import Depends, HTTPException, Query, Request
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from jose import JWTError, jwt

from api.settings import STORAGE_SUPABASE, Settings
from domain.identity import CallerIdentity
from repositories.interfaces import OrderStore, TicketStore
from repositories.memory import InMemoryDatabase, InMemoryOrderStore, InMemoryTicketStore
from services.notification_service import (
    LoggingNotificationSink,
    NotificationSink,
    OutboxNotifier,
    SmtpNotificationSink,
)
from services.order_query_service import OrderQueryService
from services.order_service import OrderService
from services.ticket_service import TicketService

logger = logging.getLogger(__name__)

JWT_ALGORITHM = "HS256"

_bearer = HTTPBearer(auto_error=False)


@dataclass
class ServiceContainer:
    """Everything the routers need, built once per application."""

    settings: Settings
    tickets: TicketService
    orders: OrderService
    queries: OrderQueryService
    notifier: OutboxNotifier

    def shutdown(self) -> None:
        self.notifier.shutdown(wait=True)


def _build_stores(settings: Settings) -> tuple[TicketStore, OrderStore]:
    if settings.storage_backend == STORAGE_SUPABASE:
        # Imported lazily so the memory backend never needs the supabase package configured.
        from repositories.client import create_supabase_client
        from repositories.supabase_order_repository import SupabaseOrderStore
        from repositories.supabase_ticket_repository import SupabaseTicketStore

        client = create_supabase_client(settings.supabase_url, settings.supabase_key)
        return SupabaseTicketStore(client), SupabaseOrderStore(client)

    db = InMemoryDatabase()
    return InMemoryTicketStore(db), InMemoryOrderStore(db)


def _build_sink(settings: Settings) -> NotificationSink:
    if settings.smtp_host:
        return SmtpNotificationSink(
            host=settings.smtp_host,
            port=settings.smtp_port,
            sender=settings.email_from,
            conference_name=settings.conference_name,
            username=settings.smtp_user,
            password=settings.smtp_password,
            use_tls=settings.smtp_use_tls,
        )
    logger.warning("SMTP_HOST not set; order confirmations will only be logged")
    return LoggingNotificationSink(settings.conference_name)


def build_container(
    settings: Settings,
    *,
    ticket_store: Optional[TicketStore] = None,
    order_store: Optional[OrderStore] = None,
    notifier: Optional[OutboxNotifier] = None,
) -> ServiceContainer:
    """
    Wire stores, notifier and services together.

    Stores and notifier can be passed in (tests); otherwise they are built
    from `settings`. Passing only one of the two stores is an error.
    """

    if (ticket_store is None) != (order_store is None):
        raise ValueError("Pass both ticket_store and order_store, or neither")
    if ticket_store is None or order_store is None:
        ticket_store, order_store = _build_stores(settings)

    notifier = notifier or OutboxNotifier(_build_sink(settings))

    logger.info("Service container built", extra={"storage_backend": settings.storage_backend})
    return ServiceContainer(
        settings=settings,
        tickets=TicketService(ticket_store, order_store),
        orders=OrderService(ticket_store, order_store, notifier),
        queries=OrderQueryService(order_store, ticket_store),
        notifier=notifier,
    )


def get_container(request: Request) -> ServiceContainer:
    return request.app.state.container


def decode_caller_token(token: str, secret: str) -> CallerIdentity:
    """
    Decode a bearer token into a CallerIdentity.

    Raises:
        HTTPException(401): The token is invalid, expired or lacks id/role.
    """

    try:
        payload = jwt.decode(token, secret, algorithms=[JWT_ALGORITHM])
    except JWTError as e:
        raise HTTPException(status_code=401, detail=f"Invalid or expired token: {e}") from None

    caller_id = payload.get("id")
    role = payload.get("role")
    if caller_id is None or not role:
        raise HTTPException(status_code=401, detail="Token is missing id or role")
    return CallerIdentity(id=str(caller_id), role=str(role), username=payload.get("username"))


def get_caller_identity(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(_bearer),
    container: ServiceContainer = Depends(get_container),
) -> CallerIdentity:
    if credentials is None or not credentials.credentials:
        raise HTTPException(status_code=401, detail="No token provided")
    return decode_caller_token(credentials.credentials, container.settings.jwt_secret)


def get_caller_identity_for_download(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(_bearer),
    token: Optional[str] = Query(None, description="Bearer token, for direct browser downloads"),
    container: ServiceContainer = Depends(get_container),
) -> CallerIdentity:
    """Same as get_caller_identity, but also accepts the token as `?token=`."""

    raw = credentials.credentials if credentials is not None else token
    if not raw:
        raise HTTPException(status_code=401, detail="No token provided")
    return decode_caller_token(raw, container.settings.jwt_secret)


def require_super_admin(caller: CallerIdentity = Depends(get_caller_identity)) -> CallerIdentity:
    if not caller.is_super_admin():
        raise HTTPException(status_code=403, detail="Super admin privileges are required")
    return caller


__all__ = [
    "JWT_ALGORITHM",
    "ServiceContainer",
    "build_container",
    "decode_caller_token",
    "get_caller_identity",
    "get_caller_identity_for_download",
    "get_container",
    "require_super_admin",
]
