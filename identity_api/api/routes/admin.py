"""
Admin-only account management endpoints.
"""

from fastapi import APIRouter, Query

from identity_api.api.deps import AdminDep, IdentityServiceDep
from identity_api.config import settings
from identity_api.models.schemas import (
    AccountActionResponse,
    AccountEnvelope,
    AccountListResponse,
    AccountResponse,
    AccountStats,
    MessageResponse,
    Pagination,
    StatsResponse,
)


router = APIRouter()


@router.get("/users", response_model=AccountListResponse)
async def list_accounts(
    admin: AdminDep,
    identity: IdentityServiceDep,
    page: int = Query(1, ge=1),
    limit: int = Query(settings.default_page_size, ge=1, le=settings.max_page_size),
):
    """List accounts, newest first."""
    result = await identity.list_accounts(page=page, limit=limit)
    return AccountListResponse(
        data=[AccountResponse.from_model(account) for account in result.items],
        pagination=Pagination(
            total=result.total,
            page=result.page,
            limit=result.limit,
            pages=result.pages,
        ),
    )


@router.get("/users/{account_id}", response_model=AccountEnvelope)
async def get_account(account_id: str, admin: AdminDep, identity: IdentityServiceDep):
    account = await identity.get_account(account_id)
    return AccountEnvelope(user=AccountResponse.from_model(account))


@router.post("/users/{account_id}/block", response_model=AccountActionResponse)
async def block_account(account_id: str, admin: AdminDep, identity: IdentityServiceDep):
    """Block an account. Its tokens are rejected from the next request on."""
    account = await identity.block_account(admin, account_id)
    return AccountActionResponse(
        message="User account blocked successfully.",
        user=AccountResponse.from_model(account),
    )


@router.post("/users/{account_id}/unblock", response_model=AccountActionResponse)
async def unblock_account(account_id: str, admin: AdminDep, identity: IdentityServiceDep):
    account = await identity.unblock_account(admin, account_id)
    return AccountActionResponse(
        message="User account unblocked successfully.",
        user=AccountResponse.from_model(account),
    )


@router.delete("/users/{account_id}", response_model=MessageResponse)
async def delete_account(account_id: str, admin: AdminDep, identity: IdentityServiceDep):
    await identity.admin_delete_account(admin, account_id)
    return MessageResponse(message="User account deleted successfully.")


@router.get("/stats", response_model=StatsResponse)
async def account_stats(admin: AdminDep, identity: IdentityServiceDep):
    """Account counts by role and state."""
    stats = await identity.account_stats()
    return StatsResponse(
        stats=AccountStats(
            totalUsers=stats["total"],
            adminCount=stats["admins"],
            userCount=stats["users"],
            verifiedCount=stats["verified"],
            blockedCount=stats["blocked"],
        )
    )
