"""Tests for hangout creation, membership and RSVP endpoints"""

from datetime import datetime, timedelta

from hangouts.models import Notification, NotificationType, Rsvp


class TestCreateHangout:
    def test_single_option_skips_to_rsvp(self, client, db, make_hangout, auth_headers):
        body = make_hangout(options=("Bowling",), type="multi_option")
        hangout = body["hangout"]

        assert body["route"] == "SKIP_TO_RSVP"
        assert hangout["state"] == "confirmed"
        assert hangout["requiresVoting"] is False
        assert hangout["requiresRsvp"] is True
        assert hangout["pollId"] is None
        assert hangout["finalizedOptionId"] == hangout["options"][0]["id"]

        plan = hangout["finalPlan"]
        assert plan["pollId"] is None
        assert plan["consensusLevel"] == 100.0
        assert plan["totalVotes"] == 0
        assert plan["option"]["title"] == "Bowling"

        rsvps = client.get(f"/hangouts/{hangout['id']}/rsvp", headers=auth_headers("alice")).json()
        assert sorted(r["userId"] for r in rsvps) == ["alice", "bob", "carol"]
        assert {r["status"] for r in rsvps} == {"PENDING"}

        notified = (
            db.query(Notification)
            .filter(Notification.type == NotificationType.RSVP_REQUESTED)
            .all()
        )
        assert sorted(n.recipient_id for n in notified) == ["bob", "carol"]

    def test_quick_plan_skips_to_rsvp(self, make_hangout):
        body = make_hangout(type="quick_plan")
        assert body["route"] == "SKIP_TO_RSVP"
        assert body["hangout"]["finalPlan"]["option"]["title"] == "Bowling"

    def test_multiple_options_open_a_poll(self, client, make_hangout, auth_headers):
        before = datetime.utcnow()
        body = make_hangout(options=("Bowling", "Karaoke", "Dinner"))
        hangout = body["hangout"]

        assert body["route"] == "START_POLLING"
        assert hangout["state"] == "polling"
        assert hangout["requiresVoting"] is True
        assert hangout["finalPlan"] is None
        assert [o["title"] for o in hangout["options"]] == ["Bowling", "Karaoke", "Dinner"]

        deadline = datetime.fromisoformat(hangout["votingDeadline"])
        assert before + timedelta(hours=47) < deadline <= datetime.utcnow() + timedelta(hours=48)

        poll = client.get(f"/hangouts/{hangout['id']}/poll", headers=auth_headers("bob")).json()
        assert poll["pollId"] == hangout["pollId"]
        assert poll["status"] == "ACTIVE"
        assert poll["consensusType"] == "PERCENTAGE"
        assert poll["threshold"] == 50.0
        # ceil(3 participants * 0.5)
        assert poll["minParticipants"] == 2
        assert poll["totalVotes"] == 0

    def test_explicit_consensus_config(self, client, make_hangout, auth_headers):
        body = make_hangout(
            consensusConfig={"consensusType": "SUPERMAJORITY", "threshold": 70, "minParticipants": 3}
        )
        poll = client.get(f"/polls/{body['hangout']['pollId']}", headers=auth_headers("alice")).json()

        assert poll["consensusType"] == "SUPERMAJORITY"
        assert poll["threshold"] == 66.0
        assert poll["minParticipants"] == 3

    def test_participants_and_mandatory_flags(self, make_hangout):
        body = make_hangout(participants=("bob",), mandatoryUserIds=["carol"])
        participants = {p["userId"]: p for p in body["hangout"]["participants"]}

        assert participants["alice"]["role"] == "CREATOR"
        assert participants["bob"]["role"] == "MEMBER"
        assert participants["bob"]["isMandatory"] is False
        assert participants["carol"]["isMandatory"] is True

    def test_missing_identity_is_unauthorized(self, client):
        response = client.post("/hangouts", json={"title": "x", "options": [{"title": "A"}]})
        assert response.status_code == 401

    def test_no_options_rejected(self, client, auth_headers):
        response = client.post(
            "/hangouts", json={"title": "Empty", "options": []}, headers=auth_headers("alice")
        )
        assert response.status_code == 422


class TestAccess:
    def test_private_hangout_hidden_from_outsiders(self, client, make_hangout, auth_headers):
        hangout_id = make_hangout()["hangout"]["id"]

        assert client.get(f"/hangouts/{hangout_id}", headers=auth_headers("bob")).status_code == 200
        assert client.get(f"/hangouts/{hangout_id}", headers=auth_headers("mallory")).status_code == 403

    def test_friends_hangout_treated_as_private(self, client, make_hangout, auth_headers):
        hangout_id = make_hangout(privacyLevel="FRIENDS")["hangout"]["id"]
        assert client.get(f"/hangouts/{hangout_id}", headers=auth_headers("mallory")).status_code == 403

    def test_join_public_hangout(self, client, make_hangout, auth_headers):
        hangout_id = make_hangout(privacyLevel="PUBLIC")["hangout"]["id"]

        response = client.post(f"/hangouts/{hangout_id}/join", headers=auth_headers("dave"))
        assert response.status_code == 200
        assert response.json()["role"] == "MEMBER"
        assert response.json()["name"] == "Dave"

        again = client.post(f"/hangouts/{hangout_id}/join", headers=auth_headers("dave"))
        assert again.json()["id"] == response.json()["id"]

    def test_join_private_hangout_forbidden(self, client, make_hangout, auth_headers):
        hangout_id = make_hangout()["hangout"]["id"]
        response = client.post(f"/hangouts/{hangout_id}/join", headers=auth_headers("dave"))
        assert response.status_code == 403

    def test_unknown_hangout(self, client, auth_headers):
        assert client.get("/hangouts/nope", headers=auth_headers("alice")).status_code == 404


class TestRsvp:
    def test_mandatory_gate(self, client, make_hangout, auth_headers):
        hangout_id = make_hangout(options=("Bowling",))["hangout"]["id"]
        # Bob's first request records his display name
        client.get(f"/hangouts/{hangout_id}", headers=auth_headers("bob"))

        response = client.patch(
            f"/hangouts/{hangout_id}/participants/bob",
            json={"isMandatory": True},
            headers=auth_headers("alice"),
        )
        assert response.status_code == 200
        assert response.json()["isMandatory"] is True

        gate = client.get(f"/hangouts/{hangout_id}/rsvp/mandatory", headers=auth_headers("alice")).json()
        assert gate == {"canProceed": False, "waitingFor": ["Bob"]}

        client.post(f"/hangouts/{hangout_id}/rsvp", json={"status": "NO"}, headers=auth_headers("carol"))
        client.post(f"/hangouts/{hangout_id}/rsvp", json={"status": "YES"}, headers=auth_headers("bob"))

        gate = client.get(f"/hangouts/{hangout_id}/rsvp/mandatory", headers=auth_headers("alice")).json()
        assert gate == {"canProceed": True, "waitingFor": []}

    def test_only_creator_sets_mandatory(self, client, make_hangout, auth_headers):
        hangout_id = make_hangout()["hangout"]["id"]
        response = client.patch(
            f"/hangouts/{hangout_id}/participants/carol",
            json={"isMandatory": True},
            headers=auth_headers("bob"),
        )
        assert response.status_code == 403

    def test_rsvp_upserts_and_mirrors_participant(self, client, db, make_hangout, auth_headers):
        hangout_id = make_hangout(options=("Bowling",))["hangout"]["id"]

        first = client.post(f"/hangouts/{hangout_id}/rsvp", json={"status": "MAYBE"}, headers=auth_headers("bob"))
        assert first.status_code == 200
        assert first.json()["respondedAt"] is not None

        second = client.post(f"/hangouts/{hangout_id}/rsvp", json={"status": "YES"}, headers=auth_headers("bob"))
        assert second.json()["id"] == first.json()["id"]
        assert second.json()["status"] == "YES"

        assert db.query(Rsvp).filter(Rsvp.hangout_id == hangout_id, Rsvp.user_id == "bob").count() == 1

        hangout = client.get(f"/hangouts/{hangout_id}", headers=auth_headers("alice")).json()
        bob = next(p for p in hangout["participants"] if p["userId"] == "bob")
        assert bob["rsvpStatus"] == "YES"

    def test_pending_rsvp_clears_responded_at(self, client, make_hangout, auth_headers):
        hangout_id = make_hangout(options=("Bowling",))["hangout"]["id"]
        client.post(f"/hangouts/{hangout_id}/rsvp", json={"status": "YES"}, headers=auth_headers("bob"))

        response = client.post(f"/hangouts/{hangout_id}/rsvp", json={"status": "PENDING"}, headers=auth_headers("bob"))
        assert response.json()["respondedAt"] is None

    def test_outsider_cannot_rsvp_private(self, client, make_hangout, auth_headers):
        hangout_id = make_hangout()["hangout"]["id"]
        response = client.post(f"/hangouts/{hangout_id}/rsvp", json={"status": "YES"}, headers=auth_headers("dave"))
        assert response.status_code == 403

    def test_public_rsvp_auto_joins(self, client, make_hangout, auth_headers):
        hangout_id = make_hangout(privacyLevel="PUBLIC", options=("Bowling",))["hangout"]["id"]
        response = client.post(f"/hangouts/{hangout_id}/rsvp", json={"status": "YES"}, headers=auth_headers("dave"))
        assert response.status_code == 200

        hangout = client.get(f"/hangouts/{hangout_id}", headers=auth_headers("alice")).json()
        assert "dave" in [p["userId"] for p in hangout["participants"]]

    def test_invalid_status_rejected(self, client, make_hangout, auth_headers):
        hangout_id = make_hangout()["hangout"]["id"]
        response = client.post(f"/hangouts/{hangout_id}/rsvp", json={"status": "SURE"}, headers=auth_headers("bob"))
        assert response.status_code == 422

    def test_attendance_buckets(self, client, make_hangout, auth_headers):
        hangout_id = make_hangout(options=("Bowling",))["hangout"]["id"]
        client.post(f"/hangouts/{hangout_id}/rsvp", json={"status": "YES"}, headers=auth_headers("bob"))
        client.post(f"/hangouts/{hangout_id}/rsvp", json={"status": "NO"}, headers=auth_headers("carol"))

        attendance = client.get(f"/hangouts/{hangout_id}/attendance", headers=auth_headers("alice")).json()
        assert attendance == {
            "going": ["Bob"],
            "maybe": [],
            "notGoing": ["Carol"],
            "waiting": ["Alice"],
            "responded": 2,
        }
