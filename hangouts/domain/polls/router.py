"""Poll router - FastAPI endpoints for voting, poll state and finalization"""

import logging
from typing import Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from ...auth import get_current_user
from ...database import get_db
from ...models import User
from ..hangouts.router import final_plan_response
from ..hangouts.schemas import FinalPlanResponse
from .schemas import (
    ConsensusHistoryResponse,
    ConsensusSnapshot,
    FinalizeRequest,
    PollStateResponse,
    VoteRequest,
    VoteResponse,
)
from .service import PollService

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/polls", tags=["Polls"])


def get_poll_service(db: Session = Depends(get_db)) -> PollService:
    """Dependency injection for PollService"""
    return PollService(db)


@router.post("/{poll_id}/vote", response_model=VoteResponse)
async def cast_vote(
    poll_id: str,
    data: VoteRequest,
    current_user: User = Depends(get_current_user),
    service: PollService = Depends(get_poll_service),
):
    """Vote, toggle, mark preferred or remove a vote; may finalize the poll"""
    result = service.cast_vote(poll_id, data.optionId, data.action, current_user)
    final_plan = result["finalPlan"]
    return VoteResponse(
        voteCast=result["voteCast"],
        action=result["action"],
        optionId=result["optionId"],
        finalized=result["finalized"],
        finalPlan=final_plan_response(final_plan) if final_plan else None,
        poll=PollStateResponse(**result["poll"]),
    )


@router.get("/{poll_id}", response_model=PollStateResponse)
async def get_poll_state(
    poll_id: str,
    current_user: User = Depends(get_current_user),
    service: PollService = Depends(get_poll_service),
):
    """Tally, consensus level and the caller's votes"""
    return service.get_poll_state(poll_id, current_user)


@router.post("/{poll_id}/finalize", response_model=FinalPlanResponse)
async def finalize_poll(
    poll_id: str,
    data: Optional[FinalizeRequest] = None,
    current_user: User = Depends(get_current_user),
    service: PollService = Depends(get_poll_service),
):
    """Lock in the winning option once consensus is reached"""
    expected_version = data.expectedVersion if data else None
    final_plan = service.finalize(poll_id, current_user, expected_version=expected_version)
    return final_plan_response(final_plan)


@router.get("/{poll_id}/history", response_model=ConsensusHistoryResponse)
async def get_consensus_history(
    poll_id: str,
    hours: int = Query(24, ge=1, le=24 * 30),
    current_user: User = Depends(get_current_user),
    service: PollService = Depends(get_poll_service),
):
    """Consensus trend over the last `hours`"""
    history = service.get_consensus_history(poll_id, current_user, hours)
    return ConsensusHistoryResponse(
        pollId=poll_id,
        hours=hours,
        snapshots=[
            ConsensusSnapshot(
                consensusLevel=h.consensus_level,
                totalVotes=h.total_votes,
                participantCount=h.participant_count,
                leadingOptionId=h.leading_option_id,
                velocity=h.velocity,
                timeToConsensus=h.time_to_consensus,
                createdAt=h.created_at,
            )
            for h in history
        ],
    )
