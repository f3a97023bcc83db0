"""
Hangout notification emission
Records "vote cast", "plan finalized" and "RSVP requested" events for the
external notifier to deliver. Emission is fire-and-forget: it runs after the
business transaction has committed and never fails the calling request.
"""

import logging
from typing import Iterable, Optional

from sqlalchemy.orm import Session

from ..models import FinalPlan, Hangout, Notification, NotificationType

logger = logging.getLogger(__name__)


def send_notification(
    db: Session,
    recipient_ids: Iterable[str],
    notification_type: str,
    title: str,
    message: str,
    related_id: Optional[str] = None,
    sender_id: Optional[str] = None,
    data: Optional[dict] = None,
) -> dict:
    """
    Store one notification per recipient

    Args:
        db: Database session (the caller's transaction must already be committed)
        recipient_ids: Users to notify; the sender is skipped
        notification_type: One of NotificationType
        title: Short title
        message: Body text
        related_id: Hangout id the notification points at
        sender_id: User who triggered the event
        data: Extra payload for the client

    Returns:
        Dict with the number of notifications recorded and any error
    """
    result = {"sent": 0, "error": None}
    recipients = [rid for rid in dict.fromkeys(recipient_ids) if rid and rid != sender_id]
    if not recipients:
        return result

    try:
        for recipient_id in recipients:
            db.add(
                Notification(
                    recipient_id=recipient_id,
                    sender_id=sender_id,
                    type=notification_type,
                    title=title,
                    message=message,
                    related_id=related_id,
                    data=data or {},
                )
            )
        db.commit()
        result["sent"] = len(recipients)
        logger.info(f"📣 {notification_type} recorded for {len(recipients)} recipient(s)")
    except Exception as e:
        db.rollback()
        result["error"] = str(e)
        logger.error(f"❌ Failed to record {notification_type} notifications: {e}")

    return result


def notify_vote_cast(db: Session, hangout: Hangout, poll_id: str, voter_id: str, voter_name: str, option_id: str) -> dict:
    return send_notification(
        db,
        [hangout.creator_id],
        NotificationType.POLL_VOTE_CAST,
        title="New Vote",
        message=f'{voter_name} voted on your poll "{hangout.title}"',
        related_id=hangout.id,
        sender_id=voter_id,
        data={"pollId": poll_id, "optionId": option_id},
    )


def notify_plan_finalized(db: Session, hangout: Hangout, final_plan: FinalPlan, winner_title: str) -> dict:
    return send_notification(
        db,
        [p.user_id for p in hangout.participants],
        NotificationType.PLAN_FINALIZED,
        title="Plan Finalized",
        message=f'"{hangout.title}" is happening! The winner is: {winner_title}',
        related_id=hangout.id,
        data={
            "pollId": final_plan.poll_id,
            "optionId": final_plan.option_id,
            "consensusLevel": final_plan.consensus_level,
        },
    )


def notify_rsvp_requested(db: Session, hangout: Hangout, sender_id: Optional[str] = None) -> dict:
    return send_notification(
        db,
        [p.user_id for p in hangout.participants],
        NotificationType.RSVP_REQUESTED,
        title="RSVP Requested",
        message=f'Let everyone know if you can make "{hangout.title}"',
        related_id=hangout.id,
        sender_id=sender_id,
    )
