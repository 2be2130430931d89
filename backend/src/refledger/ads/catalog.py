"""Read side of the ad inventory."""

from sqlalchemy import select

from refledger.ads.models import Ad
from refledger.storage.db import Database, db


def list_active_ads(placement: str, database: Database | None = None) -> list[Ad]:
    """Active banner ads for a placement, newest first."""
    with (database or db).session() as session:
        return list(
            session.scalars(
                select(Ad)
                .where(Ad.is_active.is_(True), Ad.placement == placement)
                .order_by(Ad.created_at.desc())
            )
        )
