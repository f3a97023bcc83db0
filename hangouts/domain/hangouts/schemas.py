"""Hangout domain schemas - Pydantic models for validation"""

from datetime import datetime, timezone
from typing import Literal, Optional

from pydantic import BaseModel, Field, field_validator, model_validator

from ...config import DEFAULT_CONSENSUS_THRESHOLD, DEFAULT_CONSENSUS_TYPE

ConsensusTypeLiteral = Literal["PERCENTAGE", "MAJORITY", "SUPERMAJORITY", "ABSOLUTE"]
RsvpStatusLiteral = Literal["PENDING", "YES", "NO", "MAYBE"]


def to_naive_utc(value: Optional[datetime]) -> Optional[datetime]:
    """Store every timestamp as naive UTC"""
    if value is not None and value.tzinfo is not None:
        return value.astimezone(timezone.utc).replace(tzinfo=None)
    return value


class OptionCreate(BaseModel):
    """A candidate plan proposed when the hangout is created"""

    title: str = Field(..., min_length=1, max_length=200)
    description: Optional[str] = Field(None, max_length=2000)
    location: Optional[str] = Field(None, max_length=500)
    dateTime: Optional[datetime] = None
    price: Optional[float] = Field(None, ge=0)
    hangoutUrl: Optional[str] = Field(None, max_length=500)

    @field_validator("dateTime")
    @classmethod
    def normalize_date_time(cls, value):
        return to_naive_utc(value)


class ConsensusConfigCreate(BaseModel):
    """Poll consensus rules; fixed once the poll exists"""

    consensusType: ConsensusTypeLiteral = DEFAULT_CONSENSUS_TYPE
    threshold: float = Field(DEFAULT_CONSENSUS_THRESHOLD, ge=0, le=100)
    minParticipants: Optional[int] = Field(None, ge=1)

    @model_validator(mode="after")
    def check_absolute_threshold(self):
        if self.consensusType == "ABSOLUTE" and self.threshold < 1:
            raise ValueError("ABSOLUTE consensus needs a threshold of at least one vote")
        return self


class HangoutCreate(BaseModel):
    """Schema for creating a new hangout"""

    title: str = Field(..., min_length=1, max_length=200)
    description: Optional[str] = Field(None, max_length=2000)
    type: Literal["quick_plan", "multi_option"] = "multi_option"
    privacyLevel: Literal["PRIVATE", "FRIENDS", "PUBLIC"] = "PRIVATE"
    options: list[OptionCreate] = Field(..., min_length=1, max_length=10)
    participantIds: list[str] = Field(default_factory=list)
    mandatoryUserIds: list[str] = Field(default_factory=list)
    allowMultiple: bool = True
    consensusConfig: Optional[ConsensusConfigCreate] = None


class ParticipantUpdate(BaseModel):
    isMandatory: bool


class RsvpUpdate(BaseModel):
    status: RsvpStatusLiteral


class OptionResponse(BaseModel):
    id: str
    title: str
    description: Optional[str] = None
    location: Optional[str] = None
    dateTime: Optional[datetime] = None
    price: Optional[float] = None
    hangoutUrl: Optional[str] = None


class ParticipantResponse(BaseModel):
    id: str
    userId: str
    name: str
    role: str
    isMandatory: bool
    rsvpStatus: str


class FinalPlanResponse(BaseModel):
    id: str
    hangoutId: str
    pollId: Optional[str] = None
    optionId: str
    option: Optional[OptionResponse] = None
    consensusLevel: float
    totalVotes: int
    finalizedBy: str
    finalizedAt: Optional[datetime] = None


class HangoutResponse(BaseModel):
    id: str
    title: str
    description: Optional[str] = None
    type: str
    state: str
    privacyLevel: str
    creatorId: str
    votingDeadline: Optional[datetime] = None
    requiresVoting: bool
    requiresRsvp: bool
    finalizedOptionId: Optional[str] = None
    pollId: Optional[str] = None
    options: list[OptionResponse]
    participants: list[ParticipantResponse]
    finalPlan: Optional[FinalPlanResponse] = None
    createdAt: Optional[datetime] = None


class HangoutCreateResponse(BaseModel):
    route: str
    hangout: HangoutResponse


class RsvpResponse(BaseModel):
    id: str
    hangoutId: str
    userId: str
    name: str
    status: str
    respondedAt: Optional[datetime] = None


class MandatoryRsvpResponse(BaseModel):
    canProceed: bool
    waitingFor: list[str]


class AttendanceResponse(BaseModel):
    going: list[str]
    maybe: list[str]
    notGoing: list[str]
    waiting: list[str]
    responded: int
