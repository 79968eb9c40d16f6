"""
API tests for admin endpoints.
"""

import pytest
from fastapi import status


class TestAdminAccess:
    """Only ADMIN accounts reach the admin endpoints."""

    @pytest.mark.asyncio
    async def test_requires_authentication(self, test_client):
        test_client.cookies.clear()

        response = await test_client.get("/api/admin/users")

        assert response.status_code == status.HTTP_401_UNAUTHORIZED

    @pytest.mark.asyncio
    async def test_user_role_forbidden(self, test_client, auth_headers):
        response = await test_client.get("/api/admin/users", headers=auth_headers)

        assert response.status_code == status.HTTP_403_FORBIDDEN
        assert response.json() == {
            "success": False,
            "kind": "forbidden",
            "message": "Insufficient permissions for this action.",
        }


class TestListAccounts:
    """Tests for GET /api/admin/users."""

    @pytest.mark.asyncio
    async def test_list(self, test_client, admin_headers, test_user, make_account):
        for i in range(3):
            await make_account(email=f"user{i}@example.com")

        response = await test_client.get(
            "/api/admin/users",
            headers=admin_headers,
            params={"page": 1, "limit": 2},
        )

        assert response.status_code == status.HTTP_200_OK
        data = response.json()
        assert len(data["data"]) == 2
        assert data["pagination"] == {"total": 5, "page": 1, "limit": 2, "pages": 3}

    @pytest.mark.asyncio
    async def test_default_page(self, test_client, admin_headers):
        response = await test_client.get("/api/admin/users", headers=admin_headers)

        assert response.status_code == status.HTTP_200_OK
        assert response.json()["pagination"]["limit"] == 10

    @pytest.mark.asyncio
    async def test_limit_above_maximum(self, test_client, admin_headers):
        response = await test_client.get(
            "/api/admin/users",
            headers=admin_headers,
            params={"limit": 101},
        )

        assert response.status_code == 422


class TestGetAccount:
    @pytest.mark.asyncio
    async def test_get(self, test_client, admin_headers, test_user):
        response = await test_client.get(f"/api/admin/users/{test_user.id}", headers=admin_headers)

        assert response.status_code == status.HTTP_200_OK
        assert response.json()["user"]["email"] == test_user.email

    @pytest.mark.asyncio
    async def test_get_missing(self, test_client, admin_headers):
        response = await test_client.get("/api/admin/users/missing", headers=admin_headers)

        assert response.status_code == status.HTTP_404_NOT_FOUND
        assert response.json()["kind"] == "not_found"


class TestBlockAccount:
    """Tests for blocking and unblocking."""

    @pytest.mark.asyncio
    async def test_block_rejects_live_tokens(self, test_client, admin_headers, test_user, auth_headers):
        """Test a blocked account's access token fails at once and its cookies are cleared."""
        response = await test_client.post(
            f"/api/admin/users/{test_user.id}/block",
            headers=admin_headers,
        )

        assert response.status_code == status.HTTP_200_OK
        assert response.json()["user"]["isActive"] is False

        me = await test_client.get("/api/auth/me", headers=auth_headers)
        assert me.status_code == status.HTTP_403_FORBIDDEN
        assert me.json()["kind"] == "account_blocked"
        cleared = [h for h in me.headers.get_list("set-cookie") if "max-age=0" in h.lower()]
        assert {h.split("=", 1)[0] for h in cleared} == {"access_token", "refresh_token"}

    @pytest.mark.asyncio
    async def test_unblock_restores_access(self, test_client, admin_headers, test_user, auth_headers):
        await test_client.post(f"/api/admin/users/{test_user.id}/block", headers=admin_headers)

        response = await test_client.post(
            f"/api/admin/users/{test_user.id}/unblock",
            headers=admin_headers,
        )

        assert response.status_code == status.HTTP_200_OK
        assert response.json()["user"]["isActive"] is True
        me = await test_client.get("/api/auth/me", headers=auth_headers)
        assert me.status_code == status.HTTP_200_OK

    @pytest.mark.asyncio
    async def test_cannot_block_self(self, test_client, admin_headers, admin_user):
        response = await test_client.post(
            f"/api/admin/users/{admin_user.id}/block",
            headers=admin_headers,
        )

        assert response.status_code == status.HTTP_400_BAD_REQUEST
        assert response.json()["message"] == "You cannot block your own account."

    @pytest.mark.asyncio
    async def test_block_missing(self, test_client, admin_headers):
        response = await test_client.post("/api/admin/users/missing/block", headers=admin_headers)
        assert response.status_code == status.HTTP_404_NOT_FOUND


class TestDeleteAccount:
    @pytest.mark.asyncio
    async def test_delete(self, test_client, admin_headers, test_user):
        account_id = test_user.id

        response = await test_client.delete(f"/api/admin/users/{account_id}", headers=admin_headers)

        assert response.status_code == status.HTTP_200_OK
        gone = await test_client.get(f"/api/admin/users/{account_id}", headers=admin_headers)
        assert gone.status_code == status.HTTP_404_NOT_FOUND

    @pytest.mark.asyncio
    async def test_cannot_delete_self(self, test_client, admin_headers, admin_user):
        response = await test_client.delete(f"/api/admin/users/{admin_user.id}", headers=admin_headers)
        assert response.status_code == status.HTTP_400_BAD_REQUEST


class TestStats:
    @pytest.mark.asyncio
    async def test_stats(self, test_client, admin_headers, test_user, make_account):
        await make_account(email="blocked@example.com", is_active=False)
        await make_account(email="pending@example.com", is_verified=False)

        response = await test_client.get("/api/admin/stats", headers=admin_headers)

        assert response.status_code == status.HTTP_200_OK
        assert response.json()["stats"] == {
            "totalUsers": 4,
            "adminCount": 1,
            "userCount": 3,
            "verifiedCount": 3,
            "blockedCount": 1,
        }
