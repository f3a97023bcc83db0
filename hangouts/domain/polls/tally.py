"""Ballot aggregation helpers. Pure functions over loaded rows."""

from collections import Counter
from dataclasses import dataclass
from typing import Iterable, Optional, Sequence

from ...models import HangoutOption, PollVote


@dataclass(frozen=True)
class OptionTally:
    option_id: str
    title: str
    votes: int
    position: int = 0


def build_tally(options: Sequence[HangoutOption], votes: Iterable[PollVote]) -> list[OptionTally]:
    """Vote counts per option, in option creation order"""
    counts = Counter(vote.option_id for vote in votes)
    ordered = sorted(options, key=lambda option: option.position)
    return [
        OptionTally(
            option_id=option.id,
            title=option.title,
            votes=counts.get(option.id, 0),
            position=option.position,
        )
        for option in ordered
    ]


def resolve_option(options: Sequence[HangoutOption], option_ref: str) -> Optional[HangoutOption]:
    """Match an option by id first, then by exact title"""
    for option in options:
        if option.id == option_ref:
            return option
    for option in options:
        if option.title == option_ref:
            return option
    return None


def user_vote_map(votes: Iterable[PollVote]) -> dict[str, list[str]]:
    """user_id -> option ids voted for"""
    result: dict[str, list[str]] = {}
    for vote in votes:
        result.setdefault(vote.user_id, []).append(vote.option_id)
    return result


def preferred_map(votes: Iterable[PollVote]) -> dict[str, str]:
    """user_id -> preferred option id"""
    return {vote.user_id: vote.option_id for vote in votes if vote.is_preferred}


def count_voters(votes: Iterable[PollVote]) -> int:
    return len({vote.user_id for vote in votes})
