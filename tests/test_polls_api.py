"""Tests for voting and poll state endpoints"""

from datetime import datetime, timedelta

import pytest

from hangouts.domain.polls.repository import PollRepository
from hangouts.models import (
    ConsensusHistory,
    Notification,
    NotificationType,
    Participant,
    Poll,
    PollStatus,
    PollVote,
)

# Never reached in these tests, so votes do not auto-finalize the poll
OPEN_ENDED = {"consensusType": "PERCENTAGE", "threshold": 50, "minParticipants": 10}


@pytest.fixture
def poll_setup(make_hangout):
    def _setup(**extra):
        extra.setdefault("consensusConfig", OPEN_ENDED)
        hangout = make_hangout(options=("Bowling", "Karaoke", "Dinner"), **extra)["hangout"]
        options = {o["title"]: o["id"] for o in hangout["options"]}
        return hangout, hangout["pollId"], options

    return _setup


def vote(client, headers, poll_id, user, option, action="vote"):
    return client.post(
        f"/polls/{poll_id}/vote",
        json={"optionId": option, "action": action},
        headers=headers(user),
    )


class TestToggle:
    def test_voting_twice_toggles_off(self, client, auth_headers, poll_setup):
        _, poll_id, options = poll_setup()

        first = vote(client, auth_headers, poll_id, "bob", options["Bowling"])
        assert first.status_code == 200
        assert first.json()["voteCast"] is True
        assert first.json()["poll"]["totalVotes"] == 1
        assert first.json()["poll"]["userVotes"] == [options["Bowling"]]

        second = vote(client, auth_headers, poll_id, "bob", options["Bowling"])
        assert second.json()["voteCast"] is False
        assert second.json()["poll"]["totalVotes"] == 0
        assert second.json()["poll"]["userVotes"] == []
        assert second.json()["poll"]["version"] == 2

    def test_option_matched_by_title(self, client, auth_headers, poll_setup):
        _, poll_id, options = poll_setup()

        response = vote(client, auth_headers, poll_id, "bob", "Karaoke")
        assert response.json()["optionId"] == options["Karaoke"]

    def test_remove_is_noop_without_vote(self, client, auth_headers, poll_setup):
        _, poll_id, options = poll_setup()

        vote(client, auth_headers, poll_id, "bob", options["Bowling"])
        removed = vote(client, auth_headers, poll_id, "bob", options["Bowling"], action="remove")
        assert removed.json()["voteCast"] is False
        assert removed.json()["poll"]["totalVotes"] == 0

        again = vote(client, auth_headers, poll_id, "bob", options["Bowling"], action="remove")
        assert again.status_code == 200
        assert again.json()["poll"]["totalVotes"] == 0

    def test_multiple_votes_allowed_by_default(self, client, auth_headers, poll_setup):
        _, poll_id, options = poll_setup()

        vote(client, auth_headers, poll_id, "bob", options["Bowling"])
        response = vote(client, auth_headers, poll_id, "bob", options["Dinner"])

        assert sorted(response.json()["poll"]["userVotes"]) == sorted([options["Bowling"], options["Dinner"]])
        assert response.json()["poll"]["totalVotes"] == 2

    def test_single_choice_poll_replaces_vote(self, client, auth_headers, poll_setup):
        _, poll_id, options = poll_setup(allowMultiple=False)

        vote(client, auth_headers, poll_id, "bob", options["Bowling"])
        response = vote(client, auth_headers, poll_id, "bob", options["Dinner"])

        assert response.json()["poll"]["userVotes"] == [options["Dinner"]]
        assert response.json()["poll"]["totalVotes"] == 1

    def test_concurrent_duplicate_resolves_as_toggle(self, client, db, auth_headers, poll_setup, monkeypatch):
        _, poll_id, options = poll_setup()
        vote(client, auth_headers, poll_id, "bob", options["Bowling"])

        real_get_vote = PollRepository.get_vote
        calls = {"n": 0}

        def stale_get_vote(session, poll_id_, user_id, option_id):
            # First read misses the row another request already inserted
            calls["n"] += 1
            if calls["n"] == 1:
                return None
            return real_get_vote(session, poll_id_, user_id, option_id)

        monkeypatch.setattr(PollRepository, "get_vote", staticmethod(stale_get_vote))

        response = vote(client, auth_headers, poll_id, "bob", options["Bowling"])

        assert response.status_code == 200
        assert response.json()["voteCast"] is False
        assert db.query(PollVote).filter(PollVote.poll_id == poll_id).count() == 0


class TestPreferred:
    def test_single_preferred_vote_per_user(self, client, db, auth_headers, poll_setup):
        _, poll_id, options = poll_setup()

        vote(client, auth_headers, poll_id, "bob", options["Bowling"])
        vote(client, auth_headers, poll_id, "bob", options["Karaoke"])
        vote(client, auth_headers, poll_id, "bob", options["Bowling"], action="preferred")
        response = vote(client, auth_headers, poll_id, "bob", options["Karaoke"], action="preferred")

        assert response.json()["voteCast"] is True
        assert response.json()["poll"]["userPreferred"] == options["Karaoke"]

        preferred = (
            db.query(PollVote)
            .filter(PollVote.poll_id == poll_id, PollVote.user_id == "bob", PollVote.is_preferred.is_(True))
            .all()
        )
        assert [v.option_id for v in preferred] == [options["Karaoke"]]
        assert response.json()["poll"]["totalVotes"] == 2

    def test_preferred_creates_missing_vote(self, client, auth_headers, poll_setup):
        _, poll_id, options = poll_setup()

        response = vote(client, auth_headers, poll_id, "bob", options["Dinner"], action="preferred")

        assert response.json()["poll"]["userVotes"] == [options["Dinner"]]
        assert response.json()["poll"]["userPreferred"] == options["Dinner"]


class TestRejections:
    def test_outsider_forbidden_on_private(self, client, db, auth_headers, poll_setup):
        _, poll_id, options = poll_setup()

        response = vote(client, auth_headers, poll_id, "mallory", options["Bowling"])
        assert response.status_code == 403
        assert db.query(PollVote).count() == 0

    def test_public_poll_auto_joins_voter(self, client, db, auth_headers, poll_setup):
        hangout, poll_id, options = poll_setup(privacyLevel="PUBLIC")

        response = vote(client, auth_headers, poll_id, "dave", options["Bowling"])

        assert response.status_code == 200
        participant = (
            db.query(Participant)
            .filter(Participant.hangout_id == hangout["id"], Participant.user_id == "dave")
            .first()
        )
        assert participant is not None
        assert participant.role == "MEMBER"

    @pytest.mark.parametrize("expired", [False, True])
    def test_rejected_public_vote_does_not_join(self, client, db, auth_headers, poll_setup, expired):
        hangout, poll_id, options = poll_setup(privacyLevel="PUBLIC")
        option_ref = options["Bowling"]
        if expired:
            poll = db.query(Poll).filter(Poll.id == poll_id).first()
            poll.expires_at = datetime.utcnow() - timedelta(minutes=1)
            db.commit()
        else:
            option_ref = "nope"

        response = vote(client, auth_headers, poll_id, "dave", option_ref)

        assert response.status_code == 400
        members = db.query(Participant).filter(Participant.hangout_id == hangout["id"]).all()
        assert sorted(p.user_id for p in members) == ["alice", "bob", "carol"]
        assert db.query(PollVote).count() == 0

    def test_invalid_option(self, client, auth_headers, poll_setup):
        _, poll_id, _ = poll_setup()
        response = vote(client, auth_headers, poll_id, "bob", "Skydiving")
        assert response.status_code == 400

    def test_unknown_poll(self, client, auth_headers):
        response = vote(client, auth_headers, "missing", "bob", "Bowling")
        assert response.status_code == 404

    def test_expired_poll(self, client, db, auth_headers, poll_setup):
        _, poll_id, options = poll_setup()
        poll = db.query(Poll).filter(Poll.id == poll_id).first()
        poll.expires_at = datetime.utcnow() - timedelta(minutes=1)
        db.commit()

        response = vote(client, auth_headers, poll_id, "bob", options["Bowling"])
        assert response.status_code == 400
        assert "expired" in response.json()["detail"]

    def test_inactive_poll(self, client, db, auth_headers, poll_setup):
        _, poll_id, options = poll_setup()
        poll = db.query(Poll).filter(Poll.id == poll_id).first()
        poll.status = PollStatus.EXPIRED
        db.commit()

        response = vote(client, auth_headers, poll_id, "bob", options["Bowling"])
        assert response.status_code == 400
        assert "not active" in response.json()["detail"]


class TestSideEffects:
    def test_vote_notifies_creator_and_records_history(self, client, db, auth_headers, poll_setup):
        _, poll_id, options = poll_setup()

        vote(client, auth_headers, poll_id, "bob", options["Bowling"])
        vote(client, auth_headers, poll_id, "carol", options["Karaoke"])

        notes = db.query(Notification).filter(Notification.type == NotificationType.POLL_VOTE_CAST).all()
        assert [n.recipient_id for n in notes] == ["alice", "alice"]
        assert notes[0].sender_id == "bob"

        assert db.query(ConsensusHistory).filter(ConsensusHistory.poll_id == poll_id).count() == 2

        history = client.get(f"/polls/{poll_id}/history", headers=auth_headers("alice")).json()
        assert [s["totalVotes"] for s in history["snapshots"]] == [1, 2]
        assert history["snapshots"][1]["consensusLevel"] == 50.0

    def test_own_vote_does_not_notify_creator(self, client, db, auth_headers, poll_setup):
        _, poll_id, options = poll_setup()
        vote(client, auth_headers, poll_id, "alice", options["Bowling"])
        assert db.query(Notification).filter(Notification.type == NotificationType.POLL_VOTE_CAST).count() == 0

    def test_poll_state_breakdown(self, client, auth_headers, poll_setup):
        _, poll_id, options = poll_setup()
        vote(client, auth_headers, poll_id, "bob", options["Karaoke"])
        vote(client, auth_headers, poll_id, "carol", options["Karaoke"])
        vote(client, auth_headers, poll_id, "alice", options["Dinner"])

        state = client.get(f"/polls/{poll_id}", headers=auth_headers("alice")).json()
        by_title = {o["title"]: o for o in state["options"]}

        assert state["totalVotes"] == 3
        assert state["leadingOptionId"] == options["Karaoke"]
        assert by_title["Karaoke"]["isLeading"] is True
        assert by_title["Karaoke"]["percentage"] == pytest.approx(66.67)
        assert by_title["Bowling"]["voteCount"] == 0
        assert state["consensusReached"] is False
        assert state["userVotes"] == [options["Dinner"]]
