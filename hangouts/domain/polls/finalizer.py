"""
Poll finalization.

Turns a poll that reached consensus into the hangout's FinalPlan. The poll
status flip, the FinalPlan row, the hangout confirmation and the reset of
every RSVP to PENDING commit together or not at all. The status flip is a
compare-and-swap on Poll.tally_version, so a vote landing between the
consensus check and the write makes finalize fail with Conflict instead of
locking in a stale winner.
"""

import logging
from datetime import datetime
from typing import Optional, Sequence

from sqlalchemy.orm import Session

from ...cache import invalidate_poll_state
from ...errors import BadRequest, Conflict, HangoutError, Internal
from ...models import FinalPlan, HangoutState, Poll, PollStatus, PollVote
from ...services.notification_service import notify_plan_finalized, notify_rsvp_requested
from ..hangouts.repository import HangoutRepository
from .consensus import ConsensusResult, ConsensusSettings, evaluate
from .repository import PollRepository
from .tally import build_tally

logger = logging.getLogger(__name__)


def evaluate_poll(db: Session, poll: Poll, votes: Optional[Sequence[PollVote]] = None) -> ConsensusResult:
    """Load the poll's tally and run the consensus evaluator over it"""
    if votes is None:
        votes = PollRepository.get_votes(db, poll.id)
    hangout = poll.hangout
    tally = build_tally(hangout.options, votes)
    settings = ConsensusSettings.from_model(poll.consensus_config)
    return evaluate(tally, settings, len(hangout.participants))


class PlanFinalizer:
    """Locks in the winning option of a poll"""

    def __init__(self, db: Session):
        self.db = db
        self.repo = PollRepository()
        self.hangout_repo = HangoutRepository()

    def finalize(self, poll: Poll, finalized_by: str, expected_version: Optional[int] = None) -> FinalPlan:
        """
        Finalize a poll whose consensus is reached.

        Args:
            poll: The poll to finalize
            finalized_by: User id recorded on the plan
            expected_version: tally_version the caller last saw, if any

        Raises:
            Conflict: poll not ACTIVE, or votes changed since they were read
            BadRequest: poll past its deadline, or consensus not reached
        """
        if poll.status != PollStatus.ACTIVE:
            raise Conflict(f"Poll is already {poll.status.lower()}")
        if poll.is_expired():
            raise BadRequest("Poll has expired")

        read_version = poll.tally_version
        if expected_version is not None and expected_version != read_version:
            raise Conflict(
                f"Poll votes changed since version {expected_version} (now {read_version}); reload and retry"
            )

        result = evaluate_poll(self.db, poll)
        if not result.consensus_reached:
            raise BadRequest(result.shortfall())

        hangout = poll.hangout
        winner = next((o for o in hangout.options if o.id == result.leading_option_id), None)
        if winner is None:
            raise Internal(f"Leading option {result.leading_option_id} is not part of hangout {hangout.id}")
        now = datetime.utcnow()

        try:
            if not self.repo.complete_poll(self.db, poll.id, read_version, now):
                raise Conflict("Poll was finalized or received new votes; reload and retry")

            final_plan = FinalPlan(
                hangout_id=hangout.id,
                poll_id=poll.id,
                option_id=winner.id,
                consensus_level=result.consensus_level,
                total_votes=result.total_votes,
                finalized_by=finalized_by,
                finalized_at=now,
            )
            self.db.add(final_plan)

            hangout.state = HangoutState.CONFIRMED
            hangout.finalized_option_id = winner.id
            hangout.requires_voting = False
            hangout.requires_rsvp = True

            pending = self.hangout_repo.reset_rsvps_to_pending(self.db, hangout)
            self.db.commit()
        except HangoutError:
            self.db.rollback()
            raise
        except Exception as e:
            self.db.rollback()
            logger.error(f"❌ Finalize failed for poll {poll.id}, rolled back: {e}")
            raise

        self.db.refresh(final_plan)
        invalidate_poll_state(poll.id)
        logger.info(
            f"✅ Poll {poll.id} finalized: winner {winner.id} at {result.consensus_level:.1f}% "
            f"({result.total_votes} votes), {pending} RSVP(s) set to pending"
        )

        notify_plan_finalized(self.db, hangout, final_plan, winner.title)
        notify_rsvp_requested(self.db, hangout, sender_id=finalized_by)
        return final_plan
