"""Hangout router - FastAPI endpoints for hangouts, participants and RSVPs"""

import logging

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from ...auth import get_current_user
from ...database import get_db
from ...models import FinalPlan, Hangout, HangoutOption, Participant, Rsvp, User
from ..polls.schemas import PollStateResponse
from ..polls.service import PollService
from .schemas import (
    AttendanceResponse,
    FinalPlanResponse,
    HangoutCreate,
    HangoutCreateResponse,
    HangoutResponse,
    MandatoryRsvpResponse,
    OptionResponse,
    ParticipantResponse,
    ParticipantUpdate,
    RsvpResponse,
    RsvpUpdate,
)
from .service import HangoutService

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/hangouts", tags=["Hangouts"])


def get_hangout_service(db: Session = Depends(get_db)) -> HangoutService:
    """Dependency injection for HangoutService"""
    return HangoutService(db)


def get_poll_service(db: Session = Depends(get_db)) -> PollService:
    return PollService(db)


def option_response(option: HangoutOption) -> OptionResponse:
    return OptionResponse(
        id=option.id,
        title=option.title,
        description=option.description,
        location=option.location,
        dateTime=option.date_time,
        price=option.price,
        hangoutUrl=option.hangout_url,
    )


def participant_response(participant: Participant) -> ParticipantResponse:
    return ParticipantResponse(
        id=participant.id,
        userId=participant.user_id,
        name=participant.user.display_name if participant.user else "Unknown",
        role=participant.role,
        isMandatory=participant.is_mandatory,
        rsvpStatus=participant.rsvp_status,
    )


def final_plan_response(final_plan: FinalPlan) -> FinalPlanResponse:
    return FinalPlanResponse(
        id=final_plan.id,
        hangoutId=final_plan.hangout_id,
        pollId=final_plan.poll_id,
        optionId=final_plan.option_id,
        option=option_response(final_plan.option) if final_plan.option else None,
        consensusLevel=final_plan.consensus_level,
        totalVotes=final_plan.total_votes,
        finalizedBy=final_plan.finalized_by,
        finalizedAt=final_plan.finalized_at,
    )


def hangout_response(hangout: Hangout) -> HangoutResponse:
    poll = hangout.polls[-1] if hangout.polls else None
    return HangoutResponse(
        id=hangout.id,
        title=hangout.title,
        description=hangout.description,
        type=hangout.type,
        state=hangout.state,
        privacyLevel=hangout.privacy_level,
        creatorId=hangout.creator_id,
        votingDeadline=hangout.voting_deadline,
        requiresVoting=hangout.requires_voting,
        requiresRsvp=hangout.requires_rsvp,
        finalizedOptionId=hangout.finalized_option_id,
        pollId=poll.id if poll else None,
        options=[option_response(o) for o in hangout.options],
        participants=[participant_response(p) for p in hangout.participants],
        finalPlan=final_plan_response(hangout.final_plan) if hangout.final_plan else None,
        createdAt=hangout.created_at,
    )


def rsvp_response(rsvp: Rsvp) -> RsvpResponse:
    return RsvpResponse(
        id=rsvp.id,
        hangoutId=rsvp.hangout_id,
        userId=rsvp.user_id,
        name=rsvp.user.display_name if rsvp.user else "Unknown",
        status=rsvp.status,
        respondedAt=rsvp.responded_at,
    )


@router.post("", response_model=HangoutCreateResponse, status_code=201)
async def create_hangout(
    data: HangoutCreate,
    current_user: User = Depends(get_current_user),
    service: HangoutService = Depends(get_hangout_service),
):
    """Create a hangout; a single option or quick plan skips straight to RSVP"""
    hangout, decision = service.create_hangout(data, current_user)
    return HangoutCreateResponse(route=decision.route.value, hangout=hangout_response(hangout))


@router.get("/{hangout_id}", response_model=HangoutResponse)
async def get_hangout(
    hangout_id: str,
    current_user: User = Depends(get_current_user),
    service: HangoutService = Depends(get_hangout_service),
):
    """Get a hangout with its options, participants and final plan"""
    return hangout_response(service.get_hangout(hangout_id, current_user))


@router.post("/{hangout_id}/join", response_model=ParticipantResponse)
async def join_hangout(
    hangout_id: str,
    current_user: User = Depends(get_current_user),
    service: HangoutService = Depends(get_hangout_service),
):
    """Join a public hangout"""
    return participant_response(service.join_hangout(hangout_id, current_user))


@router.patch("/{hangout_id}/participants/{user_id}", response_model=ParticipantResponse)
async def update_participant(
    hangout_id: str,
    user_id: str,
    data: ParticipantUpdate,
    current_user: User = Depends(get_current_user),
    service: HangoutService = Depends(get_hangout_service),
):
    """Mark a participant's RSVP as mandatory (creator only)"""
    participant = service.set_participant_mandatory(hangout_id, user_id, data.isMandatory, current_user)
    return participant_response(participant)


@router.get("/{hangout_id}/poll", response_model=PollStateResponse)
async def get_hangout_poll(
    hangout_id: str,
    current_user: User = Depends(get_current_user),
    service: HangoutService = Depends(get_hangout_service),
    poll_service: PollService = Depends(get_poll_service),
):
    """Current consensus state of the hangout's poll"""
    poll = service.get_poll(hangout_id, current_user)
    return poll_service.get_poll_state(poll.id, current_user)


@router.post("/{hangout_id}/rsvp", response_model=RsvpResponse)
async def respond_rsvp(
    hangout_id: str,
    data: RsvpUpdate,
    current_user: User = Depends(get_current_user),
    service: HangoutService = Depends(get_hangout_service),
):
    """RSVP to a hangout"""
    return rsvp_response(service.respond_rsvp(hangout_id, data.status, current_user))


@router.get("/{hangout_id}/rsvp", response_model=list[RsvpResponse])
async def list_rsvps(
    hangout_id: str,
    current_user: User = Depends(get_current_user),
    service: HangoutService = Depends(get_hangout_service),
):
    """List all RSVPs for a hangout"""
    return [rsvp_response(r) for r in service.list_rsvps(hangout_id, current_user)]


@router.get("/{hangout_id}/rsvp/mandatory", response_model=MandatoryRsvpResponse)
async def check_mandatory_rsvp(
    hangout_id: str,
    current_user: User = Depends(get_current_user),
    service: HangoutService = Depends(get_hangout_service),
):
    """Whether every mandatory participant has said yes"""
    return service.check_mandatory_rsvp(hangout_id, current_user)


@router.get("/{hangout_id}/attendance", response_model=AttendanceResponse)
async def get_attendance(
    hangout_id: str,
    current_user: User = Depends(get_current_user),
    service: HangoutService = Depends(get_hangout_service),
):
    """Participants bucketed by RSVP answer"""
    return service.get_attendance(hangout_id, current_user)
