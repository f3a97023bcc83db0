"""Tests for vote tally helpers"""

from hangouts.domain.polls.tally import (
    build_tally,
    count_voters,
    preferred_map,
    resolve_option,
    user_vote_map,
)
from hangouts.models import HangoutOption, PollVote


def _options():
    return [
        HangoutOption(id="opt-c", title="Dinner", position=2),
        HangoutOption(id="opt-a", title="Bowling", position=0),
        HangoutOption(id="opt-b", title="Karaoke", position=1),
    ]


def _vote(user_id, option_id, preferred=False):
    return PollVote(poll_id="poll-1", user_id=user_id, option_id=option_id, is_preferred=preferred)


def test_build_tally_counts_in_creation_order():
    votes = [_vote("u1", "opt-b"), _vote("u2", "opt-b"), _vote("u1", "opt-c")]

    tally = build_tally(_options(), votes)

    assert [t.option_id for t in tally] == ["opt-a", "opt-b", "opt-c"]
    assert [t.votes for t in tally] == [0, 2, 1]
    assert tally[1].title == "Karaoke"


def test_resolve_option_prefers_id_then_title():
    options = _options()
    assert resolve_option(options, "opt-b").title == "Karaoke"
    assert resolve_option(options, "Dinner").id == "opt-c"
    assert resolve_option(options, "Cinema") is None


def test_user_vote_and_preferred_maps():
    votes = [
        _vote("u1", "opt-a"),
        _vote("u1", "opt-b", preferred=True),
        _vote("u2", "opt-c"),
    ]

    assert user_vote_map(votes) == {"u1": ["opt-a", "opt-b"], "u2": ["opt-c"]}
    assert preferred_map(votes) == {"u1": "opt-b"}
    assert count_voters(votes) == 2
