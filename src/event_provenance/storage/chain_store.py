# SPDX-License-Identifier: Apache-2.0
# Copyright (C) 2024-2026 The Birthmark Standard Foundation

"""Append-only chain link storage."""

import logging
import threading
from typing import List, Optional

from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError

from ..database.connection import Database
from ..database.models import ChainLinkDB
from ..exceptions import ChainAppendFailure
from ..models.schemas import ChainLink

logger = logging.getLogger(__name__)


class ChainStore:
    """
    Ordered ledger of chain links.

    Appends are compare-and-append: the caller's previous_hash must equal
    the stored tail, and the next position is assigned in the same
    transaction. Links are never updated or deleted.
    """

    def __init__(self, db: Database):
        self.db = db
        self._append_lock = threading.Lock()

    def append(self, event_id: str, previous_hash: Optional[str], current_hash: str) -> int:
        """
        Append a link after the current tail.

        Args:
            event_id: Event the link binds
            previous_hash: Tail hash the caller chained against (None = genesis)
            current_hash: Link hash for this event

        Returns:
            Assigned 1-based position

        Raises:
            ChainAppendFailure: Stale previous_hash, duplicate link or store error
        """
        with self._append_lock:
            try:
                with self.db.session() as db:
                    tail = db.execute(
                        select(ChainLinkDB).order_by(ChainLinkDB.position.desc()).limit(1)
                    ).scalar_one_or_none()

                    tail_hash = tail.current_hash if tail else None
                    if previous_hash != tail_hash:
                        raise ChainAppendFailure(
                            event_id,
                            f"previous_hash {previous_hash} does not match chain tail {tail_hash}",
                        )

                    position = tail.position + 1 if tail else 1
                    db.add(ChainLinkDB(
                        event_id=event_id,
                        previous_hash=previous_hash,
                        current_hash=current_hash,
                        position=position,
                    ))
            except SQLAlchemyError as e:
                raise ChainAppendFailure(event_id, str(e)) from e

        logger.debug(f"Appended link {position} for event {event_id}")
        return position

    def read_ordered(self) -> List[ChainLink]:
        """All links in position order, lowest first."""
        with self.db.session() as db:
            rows = db.execute(
                select(ChainLinkDB).order_by(ChainLinkDB.position.asc())
            ).scalars().all()
            return [_to_link(row) for row in rows]

    def tail_hash(self) -> Optional[str]:
        """current_hash of the highest-position link, or None if empty."""
        with self.db.session() as db:
            return db.execute(
                select(ChainLinkDB.current_hash).order_by(ChainLinkDB.position.desc()).limit(1)
            ).scalar_one_or_none()


def _to_link(row: ChainLinkDB) -> ChainLink:
    return ChainLink(
        event_id=row.event_id,
        previous_hash=row.previous_hash,
        current_hash=row.current_hash,
        position=row.position,
    )
