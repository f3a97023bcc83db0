"""Hangout repository - Database operations for hangouts, participants and RSVPs"""

from datetime import datetime
from typing import Optional

from sqlalchemy.orm import Session, joinedload

from ...models import (
    Hangout,
    Participant,
    ParticipantRole,
    Poll,
    Rsvp,
    RsvpStatus,
    User,
)


class HangoutRepository:
    """Repository for hangout database operations"""

    @staticmethod
    def get_hangout(db: Session, hangout_id: str) -> Optional[Hangout]:
        """Get a hangout by ID"""
        return db.query(Hangout).filter(Hangout.id == hangout_id).first()

    @staticmethod
    def get_hangout_with_participants(db: Session, hangout_id: str) -> Optional[Hangout]:
        """Get a hangout with participants and their users loaded"""
        return (
            db.query(Hangout)
            .options(joinedload(Hangout.participants).joinedload(Participant.user))
            .filter(Hangout.id == hangout_id)
            .first()
        )

    @staticmethod
    def ensure_user(db: Session, user_id: str) -> User:
        """Provision an invited user inside the caller's transaction"""
        user = db.query(User).filter(User.id == user_id).first()
        if not user:
            user = User(id=user_id)
            db.add(user)
        return user

    @staticmethod
    def get_participant(db: Session, hangout_id: str, user_id: str) -> Optional[Participant]:
        """Get a user's participation in a hangout"""
        return (
            db.query(Participant)
            .filter(Participant.hangout_id == hangout_id, Participant.user_id == user_id)
            .first()
        )

    @staticmethod
    def add_participant(
        db: Session,
        hangout_id: str,
        user_id: str,
        role: str = ParticipantRole.MEMBER,
        is_mandatory: bool = False,
    ) -> Participant:
        """Add a participant and commit"""
        participant = Participant(
            hangout_id=hangout_id,
            user_id=user_id,
            role=role,
            is_mandatory=is_mandatory,
            rsvp_status=RsvpStatus.PENDING,
        )
        db.add(participant)
        db.commit()
        db.refresh(participant)
        return participant

    @staticmethod
    def update_participant(db: Session, participant: Participant, **updates) -> Participant:
        """Update a participant with provided fields"""
        for key, value in updates.items():
            if value is not None and hasattr(participant, key):
                setattr(participant, key, value)

        db.commit()
        db.refresh(participant)
        return participant

    @staticmethod
    def get_latest_poll(db: Session, hangout_id: str) -> Optional[Poll]:
        """Latest poll of a hangout, whatever its status"""
        return (
            db.query(Poll)
            .filter(Poll.hangout_id == hangout_id)
            .order_by(Poll.created_at.desc())
            .first()
        )

    @staticmethod
    def get_rsvp(db: Session, hangout_id: str, user_id: str) -> Optional[Rsvp]:
        return db.query(Rsvp).filter(Rsvp.hangout_id == hangout_id, Rsvp.user_id == user_id).first()

    @staticmethod
    def get_rsvps(db: Session, hangout_id: str) -> list[Rsvp]:
        """Get all RSVPs for a hangout"""
        return (
            db.query(Rsvp)
            .options(joinedload(Rsvp.user))
            .filter(Rsvp.hangout_id == hangout_id)
            .order_by(Rsvp.created_at.asc())
            .all()
        )

    @staticmethod
    def upsert_rsvp(db: Session, hangout_id: str, user_id: str, status: str) -> Rsvp:
        """Create or update a user's RSVP and mirror it on the participant row"""
        responded_at = None if status == RsvpStatus.PENDING else datetime.utcnow()

        rsvp = HangoutRepository.get_rsvp(db, hangout_id, user_id)
        if rsvp:
            rsvp.status = status
            rsvp.responded_at = responded_at
        else:
            rsvp = Rsvp(
                hangout_id=hangout_id,
                user_id=user_id,
                status=status,
                responded_at=responded_at,
            )
            db.add(rsvp)

        participant = HangoutRepository.get_participant(db, hangout_id, user_id)
        if participant:
            participant.rsvp_status = status

        db.commit()
        db.refresh(rsvp)
        return rsvp

    @staticmethod
    def reset_rsvps_to_pending(db: Session, hangout: Hangout) -> int:
        """
        Put every participant's RSVP back to PENDING for the finalized plan.
        Answers given while the hangout was still polling are discarded;
        participants without an Rsvp row get one.
        Does not commit; runs inside the caller's transaction.
        Returns the number of participants now pending.
        """
        db.flush()
        existing = {
            rsvp.user_id: rsvp
            for rsvp in db.query(Rsvp).filter(Rsvp.hangout_id == hangout.id).all()
        }

        for participant in hangout.participants:
            rsvp = existing.get(participant.user_id)
            if rsvp is None:
                db.add(Rsvp(hangout_id=hangout.id, user_id=participant.user_id, status=RsvpStatus.PENDING))
            else:
                rsvp.status = RsvpStatus.PENDING
                rsvp.responded_at = None
            participant.rsvp_status = RsvpStatus.PENDING

        return len(hangout.participants)
