"""Poll repository - Database operations for polls, votes and consensus history"""

from datetime import datetime
from typing import Optional

from sqlalchemy.orm import Session

from ...models import ConsensusHistory, Poll, PollStatus, PollVote


class PollRepository:
    """Repository for poll database operations"""

    @staticmethod
    def get_poll(db: Session, poll_id: str) -> Optional[Poll]:
        """Get a poll by ID"""
        return db.query(Poll).filter(Poll.id == poll_id).first()

    @staticmethod
    def get_votes(db: Session, poll_id: str) -> list[PollVote]:
        """All votes of a poll, oldest first"""
        return (
            db.query(PollVote)
            .filter(PollVote.poll_id == poll_id)
            .order_by(PollVote.created_at.asc())
            .all()
        )

    @staticmethod
    def get_vote(db: Session, poll_id: str, user_id: str, option_id: str) -> Optional[PollVote]:
        return (
            db.query(PollVote)
            .filter(
                PollVote.poll_id == poll_id,
                PollVote.user_id == user_id,
                PollVote.option_id == option_id,
            )
            .first()
        )

    @staticmethod
    def add_vote(db: Session, poll_id: str, user_id: str, option_id: str, is_preferred: bool = False) -> PollVote:
        """Stage a vote; flushed so a duplicate surfaces as IntegrityError here"""
        vote = PollVote(poll_id=poll_id, user_id=user_id, option_id=option_id, is_preferred=is_preferred)
        db.add(vote)
        db.flush()
        return vote

    @staticmethod
    def delete_other_votes(db: Session, poll_id: str, user_id: str, keep_option_id: str) -> int:
        """Remove a user's votes on every option but one"""
        return (
            db.query(PollVote)
            .filter(
                PollVote.poll_id == poll_id,
                PollVote.user_id == user_id,
                PollVote.option_id != keep_option_id,
            )
            .delete(synchronize_session=False)
        )

    @staticmethod
    def clear_preferred(db: Session, poll_id: str, user_id: str, keep_option_id: str) -> int:
        """Unmark the user's preferred vote on every other option"""
        return (
            db.query(PollVote)
            .filter(
                PollVote.poll_id == poll_id,
                PollVote.user_id == user_id,
                PollVote.option_id != keep_option_id,
                PollVote.is_preferred.is_(True),
            )
            .update({PollVote.is_preferred: False}, synchronize_session=False)
        )

    @staticmethod
    def bump_tally_version(db: Session, poll_id: str) -> None:
        """Atomic increment; concurrent voters never lose an update"""
        db.query(Poll).filter(Poll.id == poll_id).update(
            {Poll.tally_version: Poll.tally_version + 1}, synchronize_session=False
        )

    @staticmethod
    def complete_poll(db: Session, poll_id: str, read_version: int, completed_at: datetime) -> bool:
        """
        Compare-and-swap an ACTIVE poll to COMPLETED.
        Returns False when the poll changed status or received votes since read_version.
        """
        updated = (
            db.query(Poll)
            .filter(
                Poll.id == poll_id,
                Poll.status == PollStatus.ACTIVE,
                Poll.tally_version == read_version,
            )
            .update(
                {
                    Poll.status: PollStatus.COMPLETED,
                    Poll.tally_version: Poll.tally_version + 1,
                    Poll.completed_at: completed_at,
                },
                synchronize_session=False,
            )
        )
        return updated == 1

    @staticmethod
    def add_history(db: Session, **snapshot) -> ConsensusHistory:
        """Store a consensus snapshot and commit"""
        entry = ConsensusHistory(**snapshot)
        db.add(entry)
        db.commit()
        return entry

    @staticmethod
    def get_history(db: Session, poll_id: str, since: datetime) -> list[ConsensusHistory]:
        """Snapshots newer than `since`, oldest first"""
        return (
            db.query(ConsensusHistory)
            .filter(ConsensusHistory.poll_id == poll_id, ConsensusHistory.created_at >= since)
            .order_by(ConsensusHistory.created_at.asc())
            .all()
        )
