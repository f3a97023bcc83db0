"""Poll service - Business logic for voting, poll state and finalization"""

import logging
from datetime import datetime, timedelta
from typing import Optional

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from ...cache import get_poll_state_cached, invalidate_poll_state, set_poll_state_cached
from ...config import AUTO_FINALIZE_ON_CONSENSUS
from ...errors import BadRequest, Conflict, Forbidden, NotFound
from ...models import ConsensusHistory, ConsensusType, FinalPlan, Poll, PollStatus, PollVote, User
from ...services.notification_service import notify_vote_cast
from ..hangouts.service import join_public_hangout, require_hangout_access
from .consensus import ConsensusResult, calculate_velocity, estimate_time_to_consensus
from .finalizer import PlanFinalizer, evaluate_poll
from .repository import PollRepository
from .tally import count_voters, preferred_map, resolve_option, user_vote_map

logger = logging.getLogger(__name__)


class VoteActions:
    VOTE = "vote"
    TOGGLE = "toggle"
    PREFERRED = "preferred"
    REMOVE = "remove"


class PollService:
    """Service layer for poll business logic"""

    def __init__(self, db: Session):
        self.db = db
        self.repo = PollRepository()

    def get_poll(self, poll_id: str) -> Poll:
        poll = self.repo.get_poll(self.db, poll_id)
        if not poll:
            raise NotFound("Poll not found")
        return poll

    # ------------------------------------------------------------------
    # Voting
    # ------------------------------------------------------------------

    def cast_vote(self, poll_id: str, option_ref: str, action: str, user: User) -> dict:
        """
        Apply a vote action and re-evaluate consensus.

        Returns:
            Dict with voteCast, finalized, the final plan (if any) and the
            fresh poll state for the caller
        """
        poll = self.get_poll(poll_id)
        hangout = poll.hangout
        participant = require_hangout_access(self.db, hangout, user)

        if poll.status != PollStatus.ACTIVE:
            raise BadRequest(f"Poll is not active (status: {poll.status})")
        if poll.is_expired():
            raise BadRequest("Poll has expired")

        option = resolve_option(hangout.options, option_ref)
        if not option:
            raise BadRequest(f"Invalid option: {option_ref}")
        option_id = option.id

        if participant is None and hangout.creator_id != user.id:
            join_public_hangout(self.db, hangout, user)

        try:
            vote_cast = self._apply_vote(poll, user.id, option_id, action)
            self.repo.bump_tally_version(self.db, poll.id)
            self.db.commit()
        except IntegrityError:
            self.db.rollback()
            logger.warning(
                f"⚠️ Concurrent vote by user {user.id} on option {option_id} of poll {poll_id}; resolving as toggle"
            )
            vote_cast = self._resolve_duplicate_vote(poll_id, user.id, option_id, action)
        except Exception as e:
            self.db.rollback()
            logger.error(f"❌ Vote failed on poll {poll_id} for user {user.id}: {e}")
            raise

        invalidate_poll_state(poll_id)
        logger.info(f"🗳️ {action} by user {user.id} on option {option_id} of poll {poll_id} (voteCast={vote_cast})")

        poll = self.get_poll(poll_id)
        votes = self.repo.get_votes(self.db, poll_id)
        result = evaluate_poll(self.db, poll, votes)
        self._record_history(poll, result, votes)

        if vote_cast:
            notify_vote_cast(self.db, poll.hangout, poll_id, user.id, user.display_name, option_id)

        final_plan: Optional[FinalPlan] = None
        if result.consensus_reached and AUTO_FINALIZE_ON_CONSENSUS:
            try:
                final_plan = PlanFinalizer(self.db).finalize(
                    poll, finalized_by=user.id, expected_version=poll.tally_version
                )
            except Conflict as e:
                logger.warning(f"⚠️ Auto-finalize of poll {poll_id} skipped: {e.detail}")

        return {
            "voteCast": vote_cast,
            "action": action,
            "optionId": option_id,
            "finalized": final_plan is not None,
            "finalPlan": final_plan,
            "poll": self.get_poll_state(poll_id, user),
        }

    def _apply_vote(self, poll: Poll, user_id: str, option_id: str, action: str) -> bool:
        """Stage the vote change; returns whether a vote now exists for the option"""
        existing = self.repo.get_vote(self.db, poll.id, user_id, option_id)

        if action == VoteActions.REMOVE:
            if existing:
                self.db.delete(existing)
            return False

        if action == VoteActions.PREFERRED:
            self.repo.clear_preferred(self.db, poll.id, user_id, option_id)
            if existing:
                existing.is_preferred = True
                return True
            if not poll.allow_multiple:
                self.repo.delete_other_votes(self.db, poll.id, user_id, option_id)
            self.repo.add_vote(self.db, poll.id, user_id, option_id, is_preferred=True)
            return True

        # vote / toggle
        if existing:
            self.db.delete(existing)
            return False
        if not poll.allow_multiple:
            self.repo.delete_other_votes(self.db, poll.id, user_id, option_id)
        self.repo.add_vote(self.db, poll.id, user_id, option_id)
        return True

    def _resolve_duplicate_vote(self, poll_id: str, user_id: str, option_id: str, action: str) -> bool:
        """
        The insert lost a race with an identical vote. For vote/toggle that
        means the user already voted, so the request toggles it off.
        """
        try:
            existing = self.repo.get_vote(self.db, poll_id, user_id, option_id)
            if action == VoteActions.PREFERRED:
                self.repo.clear_preferred(self.db, poll_id, user_id, option_id)
                if existing:
                    existing.is_preferred = True
                vote_cast = existing is not None
            else:
                if existing:
                    self.db.delete(existing)
                vote_cast = False
            self.repo.bump_tally_version(self.db, poll_id)
            self.db.commit()
            return vote_cast
        except Exception as e:
            self.db.rollback()
            logger.error(f"❌ Could not resolve duplicate vote on poll {poll_id}: {e}")
            raise

    def _record_history(self, poll: Poll, result: ConsensusResult, votes: list[PollVote]) -> None:
        """Snapshot consensus after a vote; a failed snapshot never fails the vote"""
        velocity = calculate_velocity([v.created_at for v in votes])
        try:
            self.repo.add_history(
                self.db,
                poll_id=poll.id,
                consensus_level=result.consensus_level,
                total_votes=result.total_votes,
                participant_count=count_voters(votes),
                leading_option_id=result.leading_option_id,
                velocity=velocity,
                time_to_consensus=self._time_to_consensus(result, velocity),
            )
        except Exception as e:
            self.db.rollback()
            logger.error(f"❌ Failed to record consensus history for poll {poll.id}: {e}")

    @staticmethod
    def _time_to_consensus(result: ConsensusResult, velocity: float) -> Optional[int]:
        # ABSOLUTE levels are already scaled against the vote-count threshold
        target = 100.0 if result.consensus_type == ConsensusType.ABSOLUTE else result.threshold
        return estimate_time_to_consensus(result.consensus_level, velocity, target)

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    def get_poll_state(self, poll_id: str, user: User) -> dict:
        """Consensus state of a poll plus the caller's own votes"""
        poll = self.get_poll(poll_id)
        require_hangout_access(self.db, poll.hangout, user)

        state = get_poll_state_cached(poll_id)
        if state is None:
            state = self._compute_poll_state(poll)
            set_poll_state_cached(poll_id, state)

        return {
            **state,
            "userVotes": self._user_votes(poll_id, user.id),
            "userPreferred": self._user_preferred(poll_id, user.id),
        }

    def _compute_poll_state(self, poll: Poll) -> dict:
        votes = self.repo.get_votes(self.db, poll.id)
        result = evaluate_poll(self.db, poll, votes)
        velocity = calculate_velocity([v.created_at for v in votes])
        return {
            "pollId": poll.id,
            "hangoutId": poll.hangout_id,
            "status": poll.status,
            "version": poll.tally_version,
            "expiresAt": poll.expires_at.isoformat() if poll.expires_at else None,
            "options": [
                {
                    "id": b.option_id,
                    "title": b.title,
                    "voteCount": b.votes,
                    "percentage": round(b.percentage, 2),
                    "isLeading": b.is_leading,
                }
                for b in result.breakdown
            ],
            "totalVotes": result.total_votes,
            "participantCount": result.participant_count,
            "consensusReached": result.consensus_reached,
            "consensusLevel": round(result.consensus_level, 2),
            "leadingOptionId": result.leading_option_id,
            "threshold": result.threshold,
            "minParticipants": result.min_participants,
            "consensusType": result.consensus_type,
            "confidence": round(result.confidence, 4),
            "velocity": velocity,
            "timeToConsensus": self._time_to_consensus(result, velocity),
        }

    def _user_votes(self, poll_id: str, user_id: str) -> list[str]:
        votes = self.db.query(PollVote).filter(PollVote.poll_id == poll_id, PollVote.user_id == user_id).all()
        return user_vote_map(votes).get(user_id, [])

    def _user_preferred(self, poll_id: str, user_id: str) -> Optional[str]:
        votes = (
            self.db.query(PollVote)
            .filter(PollVote.poll_id == poll_id, PollVote.user_id == user_id, PollVote.is_preferred.is_(True))
            .all()
        )
        return preferred_map(votes).get(user_id)

    def get_consensus_history(self, poll_id: str, user: User, hours: int = 24) -> list[ConsensusHistory]:
        """Consensus snapshots of the last `hours`, oldest first"""
        poll = self.get_poll(poll_id)
        require_hangout_access(self.db, poll.hangout, user)
        since = datetime.utcnow() - timedelta(hours=hours)
        return self.repo.get_history(self.db, poll_id, since)

    # ------------------------------------------------------------------
    # Finalization
    # ------------------------------------------------------------------

    def finalize(self, poll_id: str, user: User, expected_version: Optional[int] = None) -> FinalPlan:
        """Manually finalize a poll (poll creator or hangout creator only)"""
        poll = self.get_poll(poll_id)
        if user.id not in (poll.creator_id, poll.hangout.creator_id):
            logger.warning(f"⚠️ User {user.id} tried to finalize poll {poll_id} without permission")
            raise Forbidden("Only the poll or hangout creator can finalize this poll")

        return PlanFinalizer(self.db).finalize(poll, finalized_by=user.id, expected_version=expected_version)
