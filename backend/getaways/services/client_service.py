"""
Client deduplication.

For a given email there is at most one clients row: emails are lowercased
before lookup and the column is unique. Every inbound contact or booking
request touches last_contact.
"""

from typing import Optional

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from getaways.core.logging import get_logger
from getaways.core.timeutils import utcnow
from getaways.models.client import Client

logger = get_logger(__name__)


async def find_or_create_client(
    db: AsyncSession,
    name: str,
    email: str,
    phone: Optional[str] = None,
) -> Client:
    normalized = email.strip().lower()
    result = await db.execute(select(Client).where(Client.email == normalized))
    client = result.scalar_one_or_none()
    now = utcnow()

    if client is None:
        client = Client(name=name, email=normalized, phone=phone or "", status="Lead", last_contact=now)
        db.add(client)
        await db.flush()
        logger.info("client_created", client_id=client.id, email=normalized)
        return client

    client.last_contact = now
    if phone:
        client.phone = phone
    await db.flush()
    logger.info("client_contact_touched", client_id=client.id)
    return client
