from __future__ import annotations

import logging
from typing import List

from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from models.holding import PortfolioHolding
from schemas.holding import Holding

logger = logging.getLogger(__name__)


class StorageUnavailable(Exception):
    """The holdings store couldn't be read."""


def get_holdings(user_id: str, db: Session) -> List[Holding]:
    """Current holdings for a user, ordered by symbol. Read-only."""
    stmt = (
        select(PortfolioHolding)
        .where(PortfolioHolding.user_id == user_id)
        .order_by(PortfolioHolding.symbol)
    )
    try:
        rows = db.execute(stmt).scalars().all()
    except SQLAlchemyError as e:
        logger.exception("reading holdings failed for user %s", user_id)
        raise StorageUnavailable("holdings store unavailable") from e

    return [Holding.model_validate(r) for r in rows]
