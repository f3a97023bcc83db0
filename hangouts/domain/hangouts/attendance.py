"""RSVP-derived views over a hangout's participants (no mutation)"""

from typing import Iterable

from ...models import Participant, RsvpStatus


def _participant_name(participant: Participant) -> str:
    user = participant.user
    if user is None:
        return "Unknown"
    return user.display_name


def check_mandatory_rsvp(participants: Iterable[Participant]) -> dict:
    """
    A hangout is locked in only once every mandatory participant said YES.

    Returns:
        Dict with canProceed and the names of mandatory participants still
        waiting to confirm
    """
    mandatory = [p for p in participants if p.is_mandatory]
    if not mandatory:
        return {"canProceed": True, "waitingFor": []}

    waiting_for = [_participant_name(p) for p in mandatory if p.rsvp_status != RsvpStatus.YES]
    return {"canProceed": len(waiting_for) == 0, "waitingFor": waiting_for}


def categorize_attendance(participants: Iterable[Participant]) -> dict:
    """Bucket participant names by RSVP answer"""
    going: list[str] = []
    maybe: list[str] = []
    not_going: list[str] = []
    waiting: list[str] = []

    for participant in participants:
        name = _participant_name(participant)
        if participant.rsvp_status == RsvpStatus.YES:
            going.append(name)
        elif participant.rsvp_status == RsvpStatus.MAYBE:
            maybe.append(name)
        elif participant.rsvp_status == RsvpStatus.NO:
            not_going.append(name)
        else:
            waiting.append(name)

    return {
        "going": going,
        "maybe": maybe,
        "notGoing": not_going,
        "waiting": waiting,
        "responded": len(going) + len(maybe) + len(not_going),
    }
