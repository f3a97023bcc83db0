"""
Automated status transitions for polls and hangouts
Handles ACTIVE → EXPIRED for polls whose voting window closed without consensus
Handles confirmed → completed for hangouts whose finalized date has passed
"""

import logging
from datetime import datetime
from typing import Optional

from sqlalchemy.orm import Session

from ..cache import invalidate_poll_state
from ..models import Hangout, HangoutOption, HangoutState, Poll, PollStatus

logger = logging.getLogger(__name__)


def expire_stale_polls(db: Session, now: Optional[datetime] = None) -> dict:
    """
    Expire ACTIVE polls past their deadline.
    Polls are never finalized here; a poll that reached consensus was already
    finalized by the vote that got it there.

    Returns:
        dict: Summary of status changes made
    """
    summary = {"polls_expired": 0}
    now = now or datetime.utcnow()

    try:
        stale_polls = (
            db.query(Poll)
            .filter(
                Poll.status == PollStatus.ACTIVE,
                Poll.expires_at.isnot(None),
                Poll.expires_at <= now,
            )
            .all()
        )

        for poll in stale_polls:
            poll.status = PollStatus.EXPIRED
            poll.completed_at = now
            poll.tally_version = poll.tally_version + 1
            summary["polls_expired"] += 1
            logger.info(f"✅ Poll {poll.id} transitioned: ACTIVE → EXPIRED")

        if summary["polls_expired"] > 0:
            db.commit()
            for poll in stale_polls:
                invalidate_poll_state(poll.id)
            logger.info(f"📊 Poll expiry summary: {summary}")
        else:
            logger.debug("ℹ️ No polls to expire")

        return summary

    except Exception as e:
        logger.error(f"❌ Error expiring polls: {str(e)}")
        db.rollback()
        raise


def complete_past_hangouts(db: Session, now: Optional[datetime] = None) -> dict:
    """
    Mark confirmed hangouts as completed once the chosen option's date passed.
    Hangouts whose option has no date stay confirmed.

    Returns:
        dict: Summary of status changes made
    """
    summary = {"hangouts_completed": 0}
    now = now or datetime.utcnow()

    try:
        past_hangouts = (
            db.query(Hangout)
            .join(HangoutOption, HangoutOption.id == Hangout.finalized_option_id)
            .filter(
                Hangout.state == HangoutState.CONFIRMED,
                HangoutOption.date_time.isnot(None),
                HangoutOption.date_time <= now,
            )
            .all()
        )

        for hangout in past_hangouts:
            hangout.state = HangoutState.COMPLETED
            summary["hangouts_completed"] += 1
            logger.info(f"✅ Hangout {hangout.id} transitioned: confirmed → completed")

        if summary["hangouts_completed"] > 0:
            db.commit()
            logger.info(f"📊 Hangout completion summary: {summary}")
        else:
            logger.debug("ℹ️ No hangouts to complete")

        return summary

    except Exception as e:
        logger.error(f"❌ Error completing hangouts: {str(e)}")
        db.rollback()
        raise
