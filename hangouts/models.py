from datetime import datetime

from sqlalchemy import (
    JSON,
    Boolean,
    Column,
    DateTime,
    Float,
    ForeignKey,
    Integer,
    String,
    Text,
    UniqueConstraint,
)
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func

from .database import Base
from .ids import new_id


class HangoutType:
    QUICK_PLAN = "quick_plan"
    MULTI_OPTION = "multi_option"


class HangoutState:
    POLLING = "polling"
    CONFIRMED = "confirmed"
    COMPLETED = "completed"


class PrivacyLevel:
    PRIVATE = "PRIVATE"
    FRIENDS = "FRIENDS"
    PUBLIC = "PUBLIC"


class ParticipantRole:
    CREATOR = "CREATOR"
    MEMBER = "MEMBER"


class RsvpStatus:
    PENDING = "PENDING"
    YES = "YES"
    NO = "NO"
    MAYBE = "MAYBE"


class PollStatus:
    ACTIVE = "ACTIVE"
    COMPLETED = "COMPLETED"
    EXPIRED = "EXPIRED"


class ConsensusType:
    PERCENTAGE = "PERCENTAGE"
    MAJORITY = "MAJORITY"
    SUPERMAJORITY = "SUPERMAJORITY"
    ABSOLUTE = "ABSOLUTE"


class NotificationType:
    POLL_VOTE_CAST = "POLL_VOTE_CAST"
    PLAN_FINALIZED = "PLAN_FINALIZED"
    RSVP_REQUESTED = "RSVP_REQUESTED"


class User(Base):
    __tablename__ = "users"

    # Id issued by the external identity provider
    id = Column(String(255), primary_key=True)
    name = Column(String(255), nullable=True)
    username = Column(String(255), nullable=True)
    email = Column(String(255), nullable=True)
    created_at = Column(DateTime, server_default=func.now())

    @property
    def display_name(self) -> str:
        return self.name or self.username or "Unknown"


class Hangout(Base):
    __tablename__ = "hangouts"

    id = Column(String(36), primary_key=True, default=new_id)
    title = Column(String(200), nullable=False)
    description = Column(Text, nullable=True)
    type = Column(String(20), nullable=False, default=HangoutType.MULTI_OPTION)
    state = Column(String(20), nullable=False, default=HangoutState.POLLING, index=True)
    privacy_level = Column(String(20), nullable=False, default=PrivacyLevel.PRIVATE)
    creator_id = Column(String(255), ForeignKey("users.id"), nullable=False, index=True)
    voting_deadline = Column(DateTime, nullable=True)
    requires_voting = Column(Boolean, default=False, nullable=False)
    requires_rsvp = Column(Boolean, default=False, nullable=False)
    finalized_option_id = Column(String(36), nullable=True)
    created_at = Column(DateTime, server_default=func.now())
    updated_at = Column(DateTime, server_default=func.now(), onupdate=func.now())

    creator = relationship("User")
    options = relationship(
        "HangoutOption",
        back_populates="hangout",
        order_by="HangoutOption.position",
        cascade="all, delete-orphan",
    )
    participants = relationship(
        "Participant",
        back_populates="hangout",
        order_by="Participant.joined_at",
        cascade="all, delete-orphan",
    )
    polls = relationship("Poll", back_populates="hangout", cascade="all, delete-orphan")
    rsvps = relationship("Rsvp", back_populates="hangout", cascade="all, delete-orphan")
    final_plan = relationship("FinalPlan", back_populates="hangout", uselist=False)


class HangoutOption(Base):
    __tablename__ = "hangout_options"

    id = Column(String(36), primary_key=True, default=new_id)
    hangout_id = Column(String(36), ForeignKey("hangouts.id"), nullable=False, index=True)
    title = Column(String(200), nullable=False)
    description = Column(Text, nullable=True)
    location = Column(String(500), nullable=True)
    date_time = Column(DateTime, nullable=True)
    price = Column(Float, nullable=True)
    hangout_url = Column(String(500), nullable=True)
    # Creation order; also the consensus tie-break key
    position = Column(Integer, nullable=False, default=0)
    created_at = Column(DateTime, server_default=func.now())

    hangout = relationship("Hangout", back_populates="options")


class Participant(Base):
    __tablename__ = "participants"
    __table_args__ = (UniqueConstraint("hangout_id", "user_id", name="uq_participant_hangout_user"),)

    id = Column(String(36), primary_key=True, default=new_id)
    hangout_id = Column(String(36), ForeignKey("hangouts.id"), nullable=False, index=True)
    user_id = Column(String(255), ForeignKey("users.id"), nullable=False, index=True)
    role = Column(String(20), nullable=False, default=ParticipantRole.MEMBER)
    is_mandatory = Column(Boolean, default=False, nullable=False)
    rsvp_status = Column(String(20), nullable=False, default=RsvpStatus.PENDING)
    joined_at = Column(DateTime, default=datetime.utcnow)

    hangout = relationship("Hangout", back_populates="participants")
    user = relationship("User")


class Poll(Base):
    __tablename__ = "polls"

    id = Column(String(36), primary_key=True, default=new_id)
    hangout_id = Column(String(36), ForeignKey("hangouts.id"), nullable=False, index=True)
    creator_id = Column(String(255), ForeignKey("users.id"), nullable=False)
    title = Column(String(200), nullable=False)
    status = Column(String(20), nullable=False, default=PollStatus.ACTIVE, index=True)
    allow_multiple = Column(Boolean, default=True, nullable=False)
    expires_at = Column(DateTime, nullable=True)
    # Bumped on every vote mutation; finalize compares-and-swaps against it
    tally_version = Column(Integer, nullable=False, default=0)
    created_at = Column(DateTime, server_default=func.now())
    completed_at = Column(DateTime, nullable=True)

    hangout = relationship("Hangout", back_populates="polls")
    consensus_config = relationship(
        "ConsensusConfig", back_populates="poll", uselist=False, cascade="all, delete-orphan"
    )
    votes = relationship("PollVote", back_populates="poll", cascade="all, delete-orphan")
    history = relationship("ConsensusHistory", back_populates="poll", cascade="all, delete-orphan")
    final_plan = relationship("FinalPlan", back_populates="poll", uselist=False)

    def is_expired(self, now: datetime = None) -> bool:
        """Voting deadline passed, whether or not the expiry job has run yet"""
        return self.expires_at is not None and self.expires_at <= (now or datetime.utcnow())


class ConsensusConfig(Base):
    __tablename__ = "consensus_configs"

    id = Column(String(36), primary_key=True, default=new_id)
    poll_id = Column(String(36), ForeignKey("polls.id"), nullable=False, unique=True)
    consensus_type = Column(String(20), nullable=False, default=ConsensusType.PERCENTAGE)
    threshold = Column(Float, nullable=False, default=50)  # 0..100, or a vote count for ABSOLUTE
    min_participants = Column(Integer, nullable=False, default=1)
    created_at = Column(DateTime, server_default=func.now())

    poll = relationship("Poll", back_populates="consensus_config")


class PollVote(Base):
    __tablename__ = "poll_votes"
    __table_args__ = (
        UniqueConstraint("poll_id", "user_id", "option_id", name="uq_poll_vote_user_option"),
    )

    id = Column(String(36), primary_key=True, default=new_id)
    poll_id = Column(String(36), ForeignKey("polls.id"), nullable=False, index=True)
    user_id = Column(String(255), ForeignKey("users.id"), nullable=False, index=True)
    option_id = Column(String(36), ForeignKey("hangout_options.id"), nullable=False)
    is_preferred = Column(Boolean, default=False, nullable=False)
    created_at = Column(DateTime, default=datetime.utcnow)

    poll = relationship("Poll", back_populates="votes")


class FinalPlan(Base):
    __tablename__ = "final_plans"

    id = Column(String(36), primary_key=True, default=new_id)
    hangout_id = Column(String(36), ForeignKey("hangouts.id"), nullable=False, unique=True)
    poll_id = Column(String(36), ForeignKey("polls.id"), nullable=True, unique=True)
    option_id = Column(String(36), ForeignKey("hangout_options.id"), nullable=False)
    consensus_level = Column(Float, nullable=False)
    total_votes = Column(Integer, nullable=False, default=0)
    finalized_by = Column(String(255), ForeignKey("users.id"), nullable=False)
    finalized_at = Column(DateTime, default=datetime.utcnow)

    hangout = relationship("Hangout", back_populates="final_plan")
    poll = relationship("Poll", back_populates="final_plan")
    option = relationship("HangoutOption")


class Rsvp(Base):
    __tablename__ = "rsvps"
    __table_args__ = (UniqueConstraint("hangout_id", "user_id", name="uq_rsvp_hangout_user"),)

    id = Column(String(36), primary_key=True, default=new_id)
    hangout_id = Column(String(36), ForeignKey("hangouts.id"), nullable=False, index=True)
    user_id = Column(String(255), ForeignKey("users.id"), nullable=False)
    status = Column(String(20), nullable=False, default=RsvpStatus.PENDING)
    responded_at = Column(DateTime, nullable=True)
    created_at = Column(DateTime, server_default=func.now())
    updated_at = Column(DateTime, server_default=func.now(), onupdate=func.now())

    hangout = relationship("Hangout", back_populates="rsvps")
    user = relationship("User")


class ConsensusHistory(Base):
    __tablename__ = "consensus_history"

    id = Column(String(36), primary_key=True, default=new_id)
    poll_id = Column(String(36), ForeignKey("polls.id"), nullable=False, index=True)
    consensus_level = Column(Float, nullable=False, default=0)
    total_votes = Column(Integer, nullable=False, default=0)
    participant_count = Column(Integer, nullable=False, default=0)
    leading_option_id = Column(String(36), nullable=True)
    velocity = Column(Float, nullable=True)
    time_to_consensus = Column(Integer, nullable=True)  # Minutes
    created_at = Column(DateTime, default=datetime.utcnow, index=True)

    poll = relationship("Poll", back_populates="history")


class Notification(Base):
    __tablename__ = "notifications"

    id = Column(String(36), primary_key=True, default=new_id)
    recipient_id = Column(String(255), ForeignKey("users.id"), nullable=False, index=True)
    sender_id = Column(String(255), nullable=True)
    type = Column(String(50), nullable=False)
    title = Column(String(255), nullable=False)
    message = Column(Text, nullable=False)
    related_id = Column(String(36), nullable=True)
    data = Column(JSON, nullable=True)
    is_read = Column(Boolean, default=False, nullable=False)
    created_at = Column(DateTime, server_default=func.now())
