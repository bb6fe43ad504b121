"""
Seed demo ticket types for testing and demos.

Creates the ticket types used by the registration frontend, skipping any
whose name already exists:
- Early Bird: 199.00, 50 seats
- General: 299.00, 200 seats
- Student: 99.00, unlimited

Usage:
    STORAGE_BACKEND=supabase python scripts/seed_ticket_types.py
"""

import sys
from pathlib import Path

# Add parent directory to path so we can import from repositories
sys.path.insert(0, str(Path(__file__).parent.parent))

from decimal import Decimal
from typing import List

from api.settings import STORAGE_SUPABASE, Settings
from domain.ticket import UNLIMITED_QUOTA, TicketType
from domain.time import utc_now
from repositories.interfaces import NewTicketType, TicketStore


DEMO_TICKET_TYPES = [
    NewTicketType(name="Early Bird", description="Discounted full access", price=Decimal("199.00"), quota=50),
    NewTicketType(name="General", description="Full conference access", price=Decimal("299.00"), quota=200),
    NewTicketType(name="Student", description="Valid student ID required", price=Decimal("99.00"), quota=UNLIMITED_QUOTA),
]


def seed_ticket_types(store: TicketStore) -> List[TicketType]:
    """Create missing demo ticket types. Returns the ones created."""

    existing = {ticket.name for ticket in store.list_all()}
    created = []
    for values in DEMO_TICKET_TYPES:
        if values.name in existing:
            print(f"Ticket type already exists: {values.name}")
            continue
        ticket = store.create(values, created_at=utc_now())
        print(f"[SUCCESS] Created ticket type {ticket.id}: {ticket.name} ({ticket.price})")
        created.append(ticket)
    return created


def main() -> int:
    settings = Settings.from_env()
    if settings.storage_backend != STORAGE_SUPABASE:
        print("[ERROR] Seeding needs STORAGE_BACKEND=supabase; the memory backend is per process")
        return 1

    from repositories.client import create_supabase_client
    from repositories.supabase_ticket_repository import SupabaseTicketStore

    store = SupabaseTicketStore(create_supabase_client(settings.supabase_url, settings.supabase_key))
    created = seed_ticket_types(store)
    print(f"Done. {len(created)} ticket type(s) created.")
    return 0


if __name__ == "__main__":
    sys.exit(main())
