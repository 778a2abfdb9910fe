"""
Catalog lookups - Map display names from the landing page to ids.

The landing page only knows service and salon names. Before a stored intent
can become a booking, both names must resolve to exactly one venue and one
service offered there.
"""

import logging
from dataclasses import dataclass
from uuid import UUID

from sqlalchemy import func, select
from sqlalchemy.exc import SQLAlchemyError

from booking.errors import StoreError
from database.connection import get_async_session
from database.models import Service, Venue

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ResolvedIds:
    service_id: UUID
    venue_id: UUID


def _normalize(name: str) -> str:
    return " ".join(name.split()).lower()


async def resolve_names_to_ids(service_name: str, venue_name: str) -> ResolvedIds | None:
    """
    Resolve a (service name, venue name) pair to ids.

    Venue matching is case-insensitive: an exact name match wins, otherwise
    a single venue whose name contains venue_name is accepted (the landing
    page shows shortened names such as "Glam Studio" for "Glam Studio Cebu").
    The service must match exactly (case-insensitive) within that venue.

    Returns:
        ResolvedIds, or None when either name is unknown or ambiguous

    Raises:
        StoreError: Database read failed
    """
    venue_key = _normalize(venue_name)
    service_key = _normalize(service_name)
    if not venue_key or not service_key:
        return None

    try:
        async with get_async_session() as session:
            result = await session.execute(
                select(Venue.id, Venue.name).where(
                    func.lower(Venue.name).contains(venue_key, autoescape=True)
                )
            )
            venues = list(result.all())

            exact = [row for row in venues if _normalize(row.name) == venue_key]
            candidates = exact or venues
            if len(candidates) != 1:
                logger.warning(
                    f"Venue name '{venue_name}' matched {len(candidates)} venues"
                )
                return None
            venue_id = candidates[0].id

            result = await session.execute(
                select(Service.id)
                .where(Service.venue_id == venue_id)
                .where(func.lower(Service.name) == service_key)
            )
            service_ids = list(result.scalars().all())

    except SQLAlchemyError as e:
        logger.error(f"Error resolving '{service_name}' @ '{venue_name}': {e}", exc_info=True)
        raise StoreError(str(e)) from e

    if len(service_ids) != 1:
        logger.warning(
            f"Service name '{service_name}' matched {len(service_ids)} services at venue {venue_id}"
        )
        return None

    return ResolvedIds(service_id=service_ids[0], venue_id=venue_id)
