"""Poll domain schemas - Pydantic models for validation"""

from datetime import datetime
from typing import Literal, Optional

from pydantic import BaseModel, Field

from ..hangouts.schemas import FinalPlanResponse

VoteAction = Literal["vote", "toggle", "preferred", "remove"]


class VoteRequest(BaseModel):
    """Cast, toggle, prefer or remove a vote; optionId may be an option id or title"""

    optionId: str = Field(..., min_length=1, max_length=200)
    action: VoteAction = "vote"


class FinalizeRequest(BaseModel):
    # Version read by the client; finalize is refused if votes moved since
    expectedVersion: Optional[int] = Field(None, ge=0)


class PollOptionState(BaseModel):
    id: str
    title: str
    voteCount: int
    percentage: float
    isLeading: bool


class PollStateResponse(BaseModel):
    pollId: str
    hangoutId: str
    status: str
    version: int
    expiresAt: Optional[datetime] = None
    options: list[PollOptionState]
    totalVotes: int
    participantCount: int
    consensusReached: bool
    consensusLevel: float
    leadingOptionId: Optional[str] = None
    threshold: float
    minParticipants: int
    consensusType: str
    confidence: float
    velocity: float
    timeToConsensus: Optional[int] = None
    userVotes: list[str] = Field(default_factory=list)
    userPreferred: Optional[str] = None


class VoteResponse(BaseModel):
    voteCast: bool
    action: str
    optionId: str
    finalized: bool
    finalPlan: Optional[FinalPlanResponse] = None
    poll: PollStateResponse


class ConsensusSnapshot(BaseModel):
    consensusLevel: float
    totalVotes: int
    participantCount: int
    leadingOptionId: Optional[str] = None
    velocity: Optional[float] = None
    timeToConsensus: Optional[int] = None
    createdAt: Optional[datetime] = None


class ConsensusHistoryResponse(BaseModel):
    pollId: str
    hours: int
    snapshots: list[ConsensusSnapshot]
