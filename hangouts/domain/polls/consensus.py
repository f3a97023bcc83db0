"""
Consensus evaluation for hangout polls.

evaluate() is pure: callers load the tally and configuration and pass them
in. It runs after every vote mutation and whenever poll state is requested.

Tie-break: when several options share the highest vote count, the option
created first (lowest position) leads. The result is reproducible for
identical input.
"""

from dataclasses import dataclass, field
from datetime import datetime, timedelta
from typing import Iterable, Optional, Sequence

from ...config import DEFAULT_CONSENSUS_THRESHOLD, DEFAULT_CONSENSUS_TYPE
from ...models import ConsensusType
from .tally import OptionTally

# Fixed thresholds used by the named consensus types
MAJORITY_THRESHOLD = 50.0
SUPERMAJORITY_THRESHOLD = 66.0

VELOCITY_WINDOW = timedelta(hours=1)


@dataclass(frozen=True)
class ConsensusSettings:
    threshold: float = DEFAULT_CONSENSUS_THRESHOLD
    min_participants: int = 1
    consensus_type: str = DEFAULT_CONSENSUS_TYPE

    @classmethod
    def from_model(cls, config) -> "ConsensusSettings":
        if config is None:
            return cls()
        return cls(
            threshold=float(config.threshold),
            min_participants=int(config.min_participants),
            consensus_type=config.consensus_type,
        )


@dataclass
class OptionBreakdown:
    option_id: str
    title: str
    votes: int
    percentage: float
    is_leading: bool = False


@dataclass
class ConsensusResult:
    consensus_reached: bool
    leading_option: Optional[OptionTally]
    consensus_level: float
    total_votes: int
    participant_count: int
    threshold: float
    min_participants: int
    consensus_type: str
    confidence: float = 0.0
    breakdown: list[OptionBreakdown] = field(default_factory=list)

    @property
    def leading_option_id(self) -> Optional[str]:
        return self.leading_option.option_id if self.leading_option else None

    def shortfall(self) -> Optional[str]:
        """Human-readable reason consensus is not reached, or None"""
        if self.consensus_reached:
            return None
        if self.total_votes < self.min_participants:
            return (
                f"Not enough votes yet. Need {self.min_participants} but only have "
                f"{self.total_votes}"
            )
        if self.consensus_type == ConsensusType.ABSOLUTE:
            leading_votes = self.leading_option.votes if self.leading_option else 0
            return (
                f"Consensus not reached. Need {self.threshold:g} votes for one option but "
                f"the leader has {leading_votes}"
            )
        return (
            f"Consensus not reached. Need {self.threshold:g}% but only have "
            f"{self.consensus_level:.1f}%"
        )


def effective_threshold(settings: ConsensusSettings) -> float:
    if settings.consensus_type == ConsensusType.MAJORITY:
        return MAJORITY_THRESHOLD
    if settings.consensus_type == ConsensusType.SUPERMAJORITY:
        return SUPERMAJORITY_THRESHOLD
    return settings.threshold


def pick_leader(tally: Sequence[OptionTally]) -> Optional[OptionTally]:
    """Highest vote count; the earliest option wins ties"""
    leader: Optional[OptionTally] = None
    for option in sorted(tally, key=lambda o: o.position):
        if leader is None or option.votes > leader.votes:
            leader = option
    return leader


def calculate_confidence(consensus_level: float, total_votes: int, participant_count: int) -> float:
    """0..1 blend of consensus strength and turnout"""
    consensus_factor = min(consensus_level / 100, 1)
    sample_factor = min(total_votes / max(participant_count, 1), 1)
    return consensus_factor * 0.7 + sample_factor * 0.3


def evaluate(
    tally: Sequence[OptionTally],
    config: Optional[ConsensusSettings],
    participant_count: int,
) -> ConsensusResult:
    settings = config or ConsensusSettings()
    threshold = effective_threshold(settings)
    total_votes = sum(option.votes for option in tally)
    leader = pick_leader(tally)

    breakdown = [
        OptionBreakdown(
            option_id=option.option_id,
            title=option.title,
            votes=option.votes,
            percentage=(option.votes * 100.0 / total_votes) if total_votes else 0.0,
            is_leading=total_votes > 0 and leader is not None and option.option_id == leader.option_id,
        )
        for option in tally
    ]

    if total_votes == 0 or leader is None:
        return ConsensusResult(
            consensus_reached=False,
            leading_option=None,
            consensus_level=0.0,
            total_votes=0,
            participant_count=participant_count,
            threshold=threshold,
            min_participants=settings.min_participants,
            consensus_type=settings.consensus_type,
            breakdown=breakdown,
        )

    if settings.consensus_type == ConsensusType.ABSOLUTE:
        consensus_level = (leader.votes * 100.0 / threshold) if threshold > 0 else 0.0
        meets_threshold = leader.votes >= threshold
    else:
        consensus_level = leader.votes * 100.0 / total_votes
        meets_threshold = consensus_level >= threshold

    return ConsensusResult(
        consensus_reached=total_votes >= settings.min_participants and meets_threshold,
        leading_option=leader,
        consensus_level=consensus_level,
        total_votes=total_votes,
        participant_count=participant_count,
        threshold=threshold,
        min_participants=settings.min_participants,
        consensus_type=settings.consensus_type,
        confidence=calculate_confidence(consensus_level, total_votes, participant_count),
        breakdown=breakdown,
    )


def calculate_velocity(vote_times: Iterable[datetime], now: Optional[datetime] = None) -> float:
    """Votes per minute over the last hour"""
    now = now or datetime.utcnow()
    cutoff = now - VELOCITY_WINDOW
    recent = sum(1 for created_at in vote_times if created_at and created_at > cutoff)
    return recent / 60


def estimate_time_to_consensus(
    consensus_level: float, velocity: float, threshold: float
) -> Optional[int]:
    """Rough minutes until the threshold is met at the current pace"""
    if velocity == 0 or consensus_level >= threshold:
        return None
    remaining = threshold - consensus_level
    return max(0, round(remaining / (velocity * 0.1)))
