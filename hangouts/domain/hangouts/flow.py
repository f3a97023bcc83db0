"""
Hangout flow routing.

A hangout either skips voting entirely (quick plan, or a single option) and
goes straight to RSVP, or starts a poll that must reach consensus first.
"""

from dataclasses import dataclass, field
from datetime import datetime, timedelta
from enum import Enum
from typing import Any, Optional, Sequence

from ...config import VOTING_WINDOW_HOURS
from ...errors import BadRequest
from ...models import HangoutState, HangoutType


class FlowRoute(str, Enum):
    SKIP_TO_RSVP = "SKIP_TO_RSVP"
    START_POLLING = "START_POLLING"


@dataclass
class FlowDecision:
    route: FlowRoute
    state: str
    requires_voting: bool
    requires_rsvp: bool
    voting_deadline: Optional[datetime] = None
    finalized_option: Optional[Any] = None
    votes: dict = field(default_factory=dict)


def determine_route(options: Sequence[Any], flow_type: Optional[str]) -> FlowRoute:
    """Quick plans and single-option hangouts never need a poll"""
    if flow_type == HangoutType.QUICK_PLAN or len(options) == 1:
        return FlowRoute.SKIP_TO_RSVP
    return FlowRoute.START_POLLING


def route_flow(
    options: Sequence[Any],
    flow_type: Optional[str],
    now: Optional[datetime] = None,
    voting_window_hours: int = VOTING_WINDOW_HOURS,
) -> FlowDecision:
    """Classify a new hangout into its initial state"""
    if not options:
        raise BadRequest("A hangout needs at least one option")

    route = determine_route(options, flow_type)
    if route is FlowRoute.SKIP_TO_RSVP:
        return FlowDecision(
            route=route,
            state=HangoutState.CONFIRMED,
            requires_voting=False,
            requires_rsvp=True,
            finalized_option=options[0],
        )

    now = now or datetime.utcnow()
    return FlowDecision(
        route=route,
        state=HangoutState.POLLING,
        requires_voting=True,
        requires_rsvp=False,
        voting_deadline=now + timedelta(hours=voting_window_hours),
    )
