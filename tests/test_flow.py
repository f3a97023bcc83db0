"""Tests for hangout flow routing"""

from datetime import datetime, timedelta

import pytest

from hangouts.domain.hangouts.flow import FlowRoute, determine_route, route_flow
from hangouts.errors import BadRequest
from hangouts.models import HangoutState

NOW = datetime(2026, 3, 6, 18, 0, 0)


def test_single_option_skips_voting_even_for_multi_option_type():
    decision = route_flow(["Bowling"], "multi_option", now=NOW)

    assert decision.route is FlowRoute.SKIP_TO_RSVP
    assert decision.state == HangoutState.CONFIRMED
    assert decision.requires_voting is False
    assert decision.requires_rsvp is True
    assert decision.finalized_option == "Bowling"
    assert decision.voting_deadline is None


def test_quick_plan_skips_voting_with_many_options():
    decision = route_flow(["Bowling", "Karaoke"], "quick_plan", now=NOW)

    assert decision.route is FlowRoute.SKIP_TO_RSVP
    assert decision.finalized_option == "Bowling"


def test_multiple_options_start_polling_with_48h_deadline():
    decision = route_flow(["Bowling", "Karaoke", "Dinner"], "multi_option", now=NOW)

    assert decision.route is FlowRoute.START_POLLING
    assert decision.state == HangoutState.POLLING
    assert decision.requires_voting is True
    assert decision.requires_rsvp is False
    assert decision.finalized_option is None
    assert decision.votes == {}
    assert decision.voting_deadline == NOW + timedelta(hours=48)


def test_voting_window_is_configurable():
    decision = route_flow(["A", "B"], None, now=NOW, voting_window_hours=2)
    assert decision.voting_deadline == NOW + timedelta(hours=2)


def test_zero_options_rejected():
    with pytest.raises(BadRequest):
        route_flow([], "multi_option", now=NOW)


def test_determine_route_without_type():
    assert determine_route(["A", "B"], None) is FlowRoute.START_POLLING
    assert determine_route(["A"], None) is FlowRoute.SKIP_TO_RSVP
