"""Hangout service - Business logic for hangout creation, membership and RSVPs"""

import logging
import math
from typing import Optional

from sqlalchemy.orm import Session

from ...config import DEFAULT_CONSENSUS_THRESHOLD, DEFAULT_CONSENSUS_TYPE, DEFAULT_MIN_PARTICIPANT_RATIO
from ...errors import Forbidden, NotFound
from ...models import (
    ConsensusConfig,
    FinalPlan,
    Hangout,
    HangoutOption,
    Participant,
    ParticipantRole,
    Poll,
    PollStatus,
    PrivacyLevel,
    Rsvp,
    User,
)
from ...services.notification_service import notify_rsvp_requested
from .attendance import categorize_attendance, check_mandatory_rsvp
from .flow import FlowDecision, FlowRoute, route_flow
from .repository import HangoutRepository
from .schemas import ConsensusConfigCreate, HangoutCreate

logger = logging.getLogger(__name__)


def default_min_participants(participant_count: int) -> int:
    """At least half the invited group has to weigh in"""
    return max(1, math.ceil(participant_count * DEFAULT_MIN_PARTICIPANT_RATIO))


def require_hangout_access(db: Session, hangout: Hangout, user: User) -> Optional[Participant]:
    """
    Enforce the hangout's privacy level for the caller.

    PRIVATE and FRIENDS hangouts admit only the creator and participants.
    PUBLIC hangouts admit anyone.

    Returns:
        The caller's participant row, if any
    """
    participant = HangoutRepository.get_participant(db, hangout.id, user.id)
    if participant or hangout.creator_id == user.id:
        return participant

    if hangout.privacy_level != PrivacyLevel.PUBLIC:
        logger.warning(f"⚠️ User {user.id} denied access to {hangout.privacy_level} hangout {hangout.id}")
        raise Forbidden("You don't have access to this hangout")
    return None


def join_public_hangout(db: Session, hangout: Hangout, user: User) -> Participant:
    """Make an outsider a member of a PUBLIC hangout once their request passed validation"""
    logger.info(f"🆕 Auto-joining user {user.id} to public hangout {hangout.id}")
    return HangoutRepository.add_participant(db, hangout.id, user.id, role=ParticipantRole.MEMBER)


class HangoutService:
    """Service layer for hangout business logic"""

    def __init__(self, db: Session):
        self.db = db
        self.repo = HangoutRepository()

    def get_hangout(self, hangout_id: str, user: User) -> Hangout:
        """Get a hangout the caller may see"""
        hangout = self.repo.get_hangout(self.db, hangout_id)
        if not hangout:
            raise NotFound("Hangout not found")
        require_hangout_access(self.db, hangout, user)
        return hangout

    def create_hangout(self, data: HangoutCreate, user: User) -> tuple[Hangout, FlowDecision]:
        """
        Create a hangout and route it into polling or straight to RSVP.

        Hangout, options, participants and either the poll or the final plan
        are written in a single transaction.
        """
        decision = route_flow(data.options, data.type)
        logger.info(
            f"📥 Creating hangout for user {user.id}: {len(data.options)} option(s), route {decision.route.value}"
        )

        mandatory_ids = set(data.mandatoryUserIds)
        invited_ids = [uid for uid in dict.fromkeys(data.participantIds + data.mandatoryUserIds) if uid != user.id]

        try:
            for invited_id in invited_ids:
                self.repo.ensure_user(self.db, invited_id)

            hangout = Hangout(
                title=data.title.strip(),
                description=data.description,
                type=data.type,
                state=decision.state,
                privacy_level=data.privacyLevel,
                creator_id=user.id,
                voting_deadline=decision.voting_deadline,
                requires_voting=decision.requires_voting,
                requires_rsvp=decision.requires_rsvp,
            )
            self.db.add(hangout)

            options = [
                HangoutOption(
                    title=option.title.strip(),
                    description=option.description,
                    location=option.location,
                    date_time=option.dateTime,
                    price=option.price,
                    hangout_url=option.hangoutUrl,
                    position=position,
                )
                for position, option in enumerate(data.options)
            ]
            hangout.options.extend(options)

            hangout.participants.append(
                Participant(
                    user_id=user.id,
                    role=ParticipantRole.CREATOR,
                    is_mandatory=user.id in mandatory_ids,
                )
            )
            for invited_id in invited_ids:
                hangout.participants.append(
                    Participant(
                        user_id=invited_id,
                        role=ParticipantRole.MEMBER,
                        is_mandatory=invited_id in mandatory_ids,
                    )
                )
            self.db.flush()

            if decision.route is FlowRoute.START_POLLING:
                self._open_poll(hangout, data, len(hangout.participants))
            else:
                self._skip_to_rsvp(hangout, options[0], user)

            self.db.commit()
        except Exception as e:
            self.db.rollback()
            logger.error(f"❌ Failed to create hangout for user {user.id}: {e}")
            raise

        self.db.refresh(hangout)
        logger.info(f"✅ Hangout {hangout.id} created in state {hangout.state}")

        if decision.route is FlowRoute.SKIP_TO_RSVP:
            notify_rsvp_requested(self.db, hangout, sender_id=user.id)

        return hangout, decision

    def _open_poll(self, hangout: Hangout, data: HangoutCreate, participant_count: int) -> Poll:
        config = data.consensusConfig or ConsensusConfigCreate(
            consensusType=DEFAULT_CONSENSUS_TYPE,
            threshold=DEFAULT_CONSENSUS_THRESHOLD,
        )
        poll = Poll(
            hangout_id=hangout.id,
            creator_id=hangout.creator_id,
            title=hangout.title,
            status=PollStatus.ACTIVE,
            allow_multiple=data.allowMultiple,
            expires_at=hangout.voting_deadline,
            tally_version=0,
        )
        poll.consensus_config = ConsensusConfig(
            consensus_type=config.consensusType,
            threshold=config.threshold,
            min_participants=config.minParticipants or default_min_participants(participant_count),
        )
        self.db.add(poll)
        self.db.flush()
        logger.info(
            f"🗳️ Poll {poll.id} opened until {poll.expires_at} "
            f"({config.consensusType} {config.threshold:g}, min {poll.consensus_config.min_participants})"
        )
        return poll

    def _skip_to_rsvp(self, hangout: Hangout, option: HangoutOption, user: User) -> FinalPlan:
        hangout.finalized_option_id = option.id
        final_plan = FinalPlan(
            hangout_id=hangout.id,
            poll_id=None,
            option_id=option.id,
            consensus_level=100.0,
            total_votes=0,
            finalized_by=user.id,
        )
        self.db.add(final_plan)
        self.repo.reset_rsvps_to_pending(self.db, hangout)
        return final_plan

    def join_hangout(self, hangout_id: str, user: User) -> Participant:
        """Join a public hangout"""
        hangout = self.repo.get_hangout(self.db, hangout_id)
        if not hangout:
            raise NotFound("Hangout not found")

        participant = self.repo.get_participant(self.db, hangout_id, user.id)
        if participant:
            return participant

        if hangout.privacy_level != PrivacyLevel.PUBLIC:
            raise Forbidden("Only public hangouts can be joined without an invite")

        logger.info(f"🆕 User {user.id} joined hangout {hangout_id}")
        return self.repo.add_participant(self.db, hangout_id, user.id, role=ParticipantRole.MEMBER)

    def set_participant_mandatory(
        self, hangout_id: str, target_user_id: str, is_mandatory: bool, user: User
    ) -> Participant:
        """Creator flags whose RSVP gates the hangout"""
        hangout = self.repo.get_hangout(self.db, hangout_id)
        if not hangout:
            raise NotFound("Hangout not found")
        if hangout.creator_id != user.id:
            raise Forbidden("Only the hangout creator can change mandatory participants")

        participant = self.repo.get_participant(self.db, hangout_id, target_user_id)
        if not participant:
            raise NotFound("Participant not found")

        return self.repo.update_participant(self.db, participant, is_mandatory=is_mandatory)

    def respond_rsvp(self, hangout_id: str, status: str, user: User) -> Rsvp:
        """Record the caller's RSVP"""
        hangout = self.repo.get_hangout(self.db, hangout_id)
        if not hangout:
            raise NotFound("Hangout not found")

        participant = require_hangout_access(self.db, hangout, user)
        if participant is None:
            if hangout.creator_id == user.id:
                raise Forbidden("Only participants can RSVP")
            join_public_hangout(self.db, hangout, user)

        rsvp = self.repo.upsert_rsvp(self.db, hangout_id, user.id, status)
        logger.info(f"✅ RSVP {status} from user {user.id} for hangout {hangout_id}")
        return rsvp

    def list_rsvps(self, hangout_id: str, user: User) -> list[Rsvp]:
        self.get_hangout(hangout_id, user)
        return self.repo.get_rsvps(self.db, hangout_id)

    def check_mandatory_rsvp(self, hangout_id: str, user: User) -> dict:
        """Whether every mandatory participant has confirmed"""
        self.get_hangout(hangout_id, user)
        hangout = self.repo.get_hangout_with_participants(self.db, hangout_id)
        return check_mandatory_rsvp(hangout.participants)

    def get_attendance(self, hangout_id: str, user: User) -> dict:
        self.get_hangout(hangout_id, user)
        hangout = self.repo.get_hangout_with_participants(self.db, hangout_id)
        return categorize_attendance(hangout.participants)

    def get_poll(self, hangout_id: str, user: User) -> Poll:
        """The poll attached to a hangout"""
        self.get_hangout(hangout_id, user)
        poll = self.repo.get_latest_poll(self.db, hangout_id)
        if not poll:
            raise NotFound("This hangout skipped voting and has no poll")
        return poll
