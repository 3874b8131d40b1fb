"""Tests for the workspace invitation routes."""

import json
from datetime import datetime, timedelta, timezone

import pytest
from sqlalchemy import func, select

from workspace_collab.models import AccessLevel, WorkspaceCollaborator
from workspace_collab.services.tokens import decode_token


def invite(client, headers, workspace, user, email="invitee@example.com", access_level="use"):
    return client.post(
        f"/api/v2/workspaces/{workspace.id}/invitations",
        json={"email": email, "access_level": access_level},
        headers=headers(user),
    )


def count_collaborators(run, session_maker, workspace_id) -> int:
    async def _count():
        async with session_maker() as session:
            result = await session.execute(
                select(func.count()).select_from(WorkspaceCollaborator).where(
                    WorkspaceCollaborator.workspace_id == workspace_id
                )
            )
            return result.scalar_one()

    return run(_count())


@pytest.fixture
def invitee(make_user):
    return make_user("invitee", email="invitee@example.com")


class TestCreateInvitation:
    """Creating invitations."""

    def test_create_returns_pending_invitation_with_token(self, client, headers, owner, workspace):
        response = invite(client, headers, workspace, owner)

        assert response.status_code == 201
        data = response.json()
        assert data["status"] == "pending"
        assert data["email"] == "invitee@example.com"
        assert data["access_level"] == "use"
        assert data["workspace_id"] == str(workspace.id)
        assert data["inviter_id"] == str(owner.id)
        assert "responded_at" not in data

        assert len(data["token"]) == 43
        assert "=" not in data["token"]
        assert len(decode_token(data["token"])) == 32

    def test_expiry_is_seven_days_out(self, client, headers, owner, workspace):
        data = invite(client, headers, workspace, owner).json()

        created = datetime.fromisoformat(data["created_at"])
        expires = datetime.fromisoformat(data["expires_at"])
        assert expires - created == timedelta(days=7)

    def test_tokens_are_unique(self, client, headers, owner, workspace):
        tokens = {
            invite(client, headers, workspace, owner, email=f"user{i}@example.com").json()["token"]
            for i in range(5)
        }
        assert len(tokens) == 5

    def test_requires_authentication(self, client, workspace):
        response = client.post(
            f"/api/v2/workspaces/{workspace.id}/invitations",
            json={"email": "invitee@example.com", "access_level": "use"},
        )
        assert response.status_code == 401
        assert response.json() == {"message": "Not authenticated"}

    def test_readonly_collaborator_cannot_invite(self, client, headers, make_user, add_collaborator, workspace):
        viewer = make_user("viewer")
        add_collaborator(workspace, viewer, AccessLevel.READONLY)

        response = invite(client, headers, workspace, viewer)
        assert response.status_code == 403

    def test_admin_collaborator_can_invite(self, client, headers, make_user, add_collaborator, workspace):
        admin = make_user("admin")
        add_collaborator(workspace, admin, AccessLevel.ADMIN)

        assert invite(client, headers, workspace, admin).status_code == 201

    def test_deployment_admin_can_invite(self, client, headers, make_user, workspace):
        site_admin = make_user("siteadmin", is_deployment_admin=True)
        assert invite(client, headers, workspace, site_admin).status_code == 201

    def test_unknown_workspace(self, client, headers, owner):
        response = client.post(
            "/api/v2/workspaces/00000000-0000-0000-0000-000000000000/invitations",
            json={"email": "invitee@example.com", "access_level": "use"},
            headers=headers(owner),
        )
        assert response.status_code == 404

    @pytest.mark.parametrize(
        "body",
        [
            {"email": "not-an-email", "access_level": "use"},
            {"email": "invitee@example.com", "access_level": "owner"},
            {"access_level": "use"},
        ],
    )
    def test_invalid_body(self, client, headers, owner, workspace, body):
        response = client.post(
            f"/api/v2/workspaces/{workspace.id}/invitations",
            json=body,
            headers=headers(owner),
        )
        assert response.status_code == 400
        assert response.json()["message"] == "Invalid request."

    def test_no_email_sent_when_unconfigured(self, client, headers, owner, workspace, resend):
        assert invite(client, headers, workspace, owner).status_code == 201
        assert resend.requests == []

    def test_sends_invitation_email(self, client, headers, config, owner, workspace, resend):
        config.resend_api_key = "re_test"
        config.email_from = "noreply@example.com"

        token = invite(client, headers, workspace, owner, access_level="admin").json()["token"]

        assert len(resend.requests) == 1
        request = resend.requests[0]
        assert str(request.url) == "https://api.resend.com/emails"
        assert request.headers["Authorization"] == "Bearer re_test"
        payload = json.loads(request.content)
        assert payload["from"] == "Coder <noreply@example.com>"
        assert payload["to"] == ["invitee@example.com"]
        assert payload["subject"] == "owner invited you to collaborate on dev-box"
        assert f"https://coder.example.com/invitation/{token}" in payload["html"]
        assert f"https://coder.example.com/invitation/{token}" in payload["text"]

    def test_email_failure_does_not_fail_create(self, client, headers, config, owner, workspace, resend):
        config.resend_api_key = "re_test"
        config.email_from = "noreply@example.com"
        resend.status_code = 500
        resend.json_body = {"name": "internal_error", "message": "boom"}

        response = invite(client, headers, workspace, owner)

        assert response.status_code == 201
        assert len(resend.requests) == 1


class TestListAndCancelInvitations:
    """Listing and cancelling invitations."""

    def test_list_newest_first_without_tokens(self, client, headers, owner, workspace):
        first = invite(client, headers, workspace, owner, email="a@example.com").json()
        second = invite(client, headers, workspace, owner, email="b@example.com").json()

        response = client.get(f"/api/v2/workspaces/{workspace.id}/invitations", headers=headers(owner))

        assert response.status_code == 200
        data = response.json()
        assert [i["id"] for i in data] == [second["id"], first["id"]]
        assert all("token" not in i for i in data)

    def test_list_is_scoped_to_workspace(self, client, headers, owner, workspace, make_workspace):
        other = make_workspace(owner, name="other")
        invite(client, headers, other, owner)

        response = client.get(f"/api/v2/workspaces/{workspace.id}/invitations", headers=headers(owner))
        assert response.json() == []

    def test_cancel_pending(self, client, headers, owner, workspace):
        created = invite(client, headers, workspace, owner).json()

        response = client.delete(
            f"/api/v2/workspaces/{workspace.id}/invitations/{created['id']}",
            headers=headers(owner),
        )
        assert response.status_code == 204

        listed = client.get(f"/api/v2/workspaces/{workspace.id}/invitations", headers=headers(owner)).json()
        assert listed[0]["status"] == "canceled"
        assert listed[0]["responded_at"] is not None

    def test_cancel_twice_is_noop(self, client, headers, owner, workspace):
        created = invite(client, headers, workspace, owner).json()
        url = f"/api/v2/workspaces/{workspace.id}/invitations/{created['id']}"

        assert client.delete(url, headers=headers(owner)).status_code == 204
        assert client.delete(url, headers=headers(owner)).status_code == 204

    def test_cancel_accepted_conflicts(self, client, headers, owner, workspace, invitee):
        created = invite(client, headers, workspace, owner).json()
        client.post(f"/api/v2/invitations/{created['token']}/accept", headers=headers(invitee))

        response = client.delete(
            f"/api/v2/workspaces/{workspace.id}/invitations/{created['id']}",
            headers=headers(owner),
        )
        assert response.status_code == 409
        assert response.json()["message"] == "Invitation is already accepted."

    def test_cancel_unknown(self, client, headers, owner, workspace):
        response = client.delete(
            f"/api/v2/workspaces/{workspace.id}/invitations/00000000-0000-0000-0000-000000000000",
            headers=headers(owner),
        )
        assert response.status_code == 404

    def test_cancel_through_other_workspace(self, client, headers, owner, workspace, make_workspace):
        other = make_workspace(owner, name="other")
        created = invite(client, headers, other, owner).json()

        response = client.delete(
            f"/api/v2/workspaces/{workspace.id}/invitations/{created['id']}",
            headers=headers(owner),
        )
        assert response.status_code == 404


class TestInvitationByToken:
    """Public token lookup."""

    def test_lookup_is_enriched_and_tokenless(self, client, headers, owner, workspace):
        token = invite(client, headers, workspace, owner).json()["token"]

        response = client.get(f"/api/v2/invitations/{token}")

        assert response.status_code == 200
        data = response.json()
        assert data["workspace_name"] == "dev-box"
        assert data["inviter_username"] == "owner"
        assert "token" not in data

    def test_unknown_token(self, client):
        response = client.get("/api/v2/invitations/does-not-exist")
        assert response.status_code == 404
        assert response.json() == {"message": "Invitation not found."}

    def test_lookups_are_rate_limited(self, client, lookup_limiter):
        lookup_limiter.requests_per_minute = 2

        assert client.get("/api/v2/invitations/abc").status_code == 404
        assert client.get("/api/v2/invitations/abc").status_code == 404
        response = client.get("/api/v2/invitations/abc")
        assert response.status_code == 429
        assert "Retry-After" in response.headers

    def test_forwarded_for_does_not_bypass_limit(self, client, lookup_limiter):
        lookup_limiter.requests_per_minute = 2

        codes = [
            client.get("/api/v2/invitations/abc", headers={"X-Forwarded-For": f"10.0.0.{i}"}).status_code
            for i in range(5)
        ]

        assert codes == [404, 404, 429, 429, 429]
        assert len(lookup_limiter) == 1

    def test_forwarded_for_honoured_behind_proxy(self, client, config, lookup_limiter):
        config.trust_forwarded_for = True
        lookup_limiter.requests_per_minute = 1

        first = client.get("/api/v2/invitations/abc", headers={"X-Forwarded-For": "10.0.0.1"})
        second = client.get("/api/v2/invitations/abc", headers={"X-Forwarded-For": "10.0.0.2, 172.16.0.1"})
        repeat = client.get("/api/v2/invitations/abc", headers={"X-Forwarded-For": "10.0.0.1"})

        assert (first.status_code, second.status_code, repeat.status_code) == (404, 404, 429)


class TestAcceptInvitation:
    """Accepting invitations."""

    def test_accept_creates_collaborator(self, client, headers, owner, workspace, invitee, run, session_maker):
        created = invite(client, headers, workspace, owner, access_level="use").json()

        response = client.post(f"/api/v2/invitations/{created['token']}/accept", headers=headers(invitee))

        assert response.status_code == 200
        data = response.json()
        assert data["user_id"] == str(invitee.id)
        assert data["workspace_id"] == str(workspace.id)
        assert data["access_level"] == "use"
        assert data["invited_by"] == str(owner.id)
        assert data["username"] == "invitee"
        assert data["workspace_name"] == "dev-box"

        listed = client.get(f"/api/v2/workspaces/{workspace.id}/invitations", headers=headers(owner)).json()
        assert listed[0]["status"] == "accepted"
        assert listed[0]["responded_at"] is not None
        assert count_collaborators(run, session_maker, workspace.id) == 1

    def test_accept_twice_names_status(self, client, headers, owner, workspace, invitee):
        token = invite(client, headers, workspace, owner).json()["token"]
        client.post(f"/api/v2/invitations/{token}/accept", headers=headers(invitee))

        response = client.post(f"/api/v2/invitations/{token}/accept", headers=headers(invitee))

        assert response.status_code == 409
        assert response.json()["message"] == "Invitation is accepted."

    def test_accept_requires_authentication(self, client, headers, owner, workspace):
        token = invite(client, headers, workspace, owner).json()["token"]
        assert client.post(f"/api/v2/invitations/{token}/accept").status_code == 401

    def test_accept_unknown_token(self, client, headers, invitee):
        response = client.post("/api/v2/invitations/nope/accept", headers=headers(invitee))
        assert response.status_code == 404

    def test_expired_invitation(
        self, client, headers, owner, workspace, invitee, set_invitation_fields, run, session_maker
    ):
        created = invite(client, headers, workspace, owner).json()
        set_invitation_fields(created["id"], expires_at=datetime.now(timezone.utc) - timedelta(minutes=1))

        response = client.post(f"/api/v2/invitations/{created['token']}/accept", headers=headers(invitee))

        assert response.status_code == 400
        assert response.json()["message"] == "Invitation has expired."
        assert count_collaborators(run, session_maker, workspace.id) == 0

    def test_email_mismatch(self, client, headers, owner, workspace, make_user, run, session_maker):
        stranger = make_user("stranger")
        created = invite(client, headers, workspace, owner).json()

        response = client.post(f"/api/v2/invitations/{created['token']}/accept", headers=headers(stranger))

        assert response.status_code == 403
        assert response.json()["message"] == "This invitation was sent to a different email address."
        assert count_collaborators(run, session_maker, workspace.id) == 0
        listed = client.get(f"/api/v2/workspaces/{workspace.id}/invitations", headers=headers(owner)).json()
        assert listed[0]["status"] == "pending"

    def test_email_match_is_case_sensitive(self, client, headers, owner, workspace, invitee):
        token = invite(client, headers, workspace, owner, email="Invitee@example.com").json()["token"]

        response = client.post(f"/api/v2/invitations/{token}/accept", headers=headers(invitee))
        assert response.status_code == 403

    def test_mixed_case_email_is_stored_as_given(self, client, headers, owner, workspace, make_user):
        alice = make_user("alice", email="Alice@Example.COM")

        created = invite(client, headers, workspace, owner, email="Alice@Example.COM")
        assert created.status_code == 201
        assert created.json()["email"] == "Alice@Example.COM"

        response = client.post(f"/api/v2/invitations/{created.json()['token']}/accept", headers=headers(alice))
        assert response.status_code == 200
        assert response.json()["user_id"] == str(alice.id)

    def test_already_collaborator(self, client, headers, owner, workspace, invitee, add_collaborator):
        add_collaborator(workspace, invitee, AccessLevel.READONLY)
        token = invite(client, headers, workspace, owner).json()["token"]

        response = client.post(f"/api/v2/invitations/{token}/accept", headers=headers(invitee))

        assert response.status_code == 409
        assert response.json()["message"] == "You are already a collaborator on this workspace."

    def test_second_invitation_for_same_user(self, client, headers, owner, workspace, invitee, run, session_maker):
        first = invite(client, headers, workspace, owner, access_level="readonly").json()["token"]
        second = invite(client, headers, workspace, owner, access_level="admin").json()["token"]

        assert client.post(f"/api/v2/invitations/{first}/accept", headers=headers(invitee)).status_code == 200
        response = client.post(f"/api/v2/invitations/{second}/accept", headers=headers(invitee))

        assert response.status_code == 409
        assert count_collaborators(run, session_maker, workspace.id) == 1


class TestDeclineInvitation:
    """Declining invitations."""

    def test_decline(self, client, headers, owner, workspace, invitee):
        token = invite(client, headers, workspace, owner).json()["token"]

        response = client.post(f"/api/v2/invitations/{token}/decline", headers=headers(invitee))
        assert response.status_code == 204

        lookup = client.get(f"/api/v2/invitations/{token}").json()
        assert lookup["status"] == "declined"

    def test_decline_is_irreversible(self, client, headers, owner, workspace, invitee):
        token = invite(client, headers, workspace, owner).json()["token"]
        client.post(f"/api/v2/invitations/{token}/decline", headers=headers(invitee))

        again = client.post(f"/api/v2/invitations/{token}/decline", headers=headers(invitee))
        assert again.status_code == 409
        assert again.json()["message"] == "Invitation is already declined."

        accept = client.post(f"/api/v2/invitations/{token}/accept", headers=headers(invitee))
        assert accept.status_code == 409
        assert accept.json()["message"] == "Invitation is declined."

    def test_decline_requires_authentication(self, client, headers, owner, workspace):
        token = invite(client, headers, workspace, owner).json()["token"]

        assert client.post(f"/api/v2/invitations/{token}/decline").status_code == 401
        assert client.get(f"/api/v2/invitations/{token}").json()["status"] == "pending"

    def test_decline_unknown(self, client, headers, invitee):
        assert client.post("/api/v2/invitations/nope/decline", headers=headers(invitee)).status_code == 404


class TestMyInvitations:
    """The caller's pending invitations."""

    def test_lists_pending_unexpired_for_caller(
        self, client, headers, owner, workspace, invitee, set_invitation_fields
    ):
        pending = invite(client, headers, workspace, owner).json()
        expired = invite(client, headers, workspace, owner).json()
        declined = invite(client, headers, workspace, owner).json()
        invite(client, headers, workspace, owner, email="someone-else@example.com")

        set_invitation_fields(expired["id"], expires_at=datetime.now(timezone.utc) - timedelta(days=1))
        client.post(f"/api/v2/invitations/{declined['token']}/decline", headers=headers(invitee))

        response = client.get("/api/v2/users/me/workspace-invitations", headers=headers(invitee))

        assert response.status_code == 200
        data = response.json()
        assert [i["id"] for i in data] == [pending["id"]]
        assert data[0]["workspace_name"] == "dev-box"
        assert data[0]["inviter_username"] == "owner"
        assert "token" not in data[0]
