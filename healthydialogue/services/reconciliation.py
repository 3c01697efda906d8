import logging
from dataclasses import dataclass
from typing import List

from sqlalchemy import func
from sqlalchemy.orm import Session

from healthydialogue import crud
from healthydialogue.core.database_utils import transaction
from healthydialogue.models.conversation import Conversation, Message, Sender

logger = logging.getLogger(__name__)


@dataclass
class UnreadDrift:
    conversation_id: int
    cached: int
    actual: int


def reconcile_unread_counts(db: Session, fix: bool = True) -> List[UnreadDrift]:
    """
    Compare every conversation's cached unread count with the number of
    unread patient messages in its ledger, optionally repairing drift.
    """
    actual = (
        db.query(Message.conversation_id, func.count(Message.id).label("unread"))
        .filter(Message.sender == Sender.PATIENT, Message.read.is_(False))
        .group_by(Message.conversation_id)
        .subquery()
    )
    rows = (
        db.query(Conversation.id, Conversation.unread_count, func.coalesce(actual.c.unread, 0))
        .outerjoin(actual, actual.c.conversation_id == Conversation.id)
        .order_by(Conversation.id)
        .all()
    )
    drifts = [
        UnreadDrift(conversation_id=cid, cached=cached, actual=int(count))
        for cid, cached, count in rows
        if cached != int(count)
    ]
    for drift in drifts:
        logger.warning(
            f"Conversation {drift.conversation_id} unread_count={drift.cached}, ledger has {drift.actual}"
        )

    if fix and drifts:
        with transaction(db):
            for drift in drifts:
                conversation = crud.conversation.lock(db, conversation_id=drift.conversation_id)
                if conversation is None:
                    continue
                # Recount under the lock; the ledger may have moved since the scan
                conversation.unread_count = crud.message.count_unread_from(
                    db, conversation_id=conversation.id, sender=Sender.PATIENT
                )
        logger.info(f"Repaired unread counts on {len(drifts)} conversations")

    return drifts
