"""Current user profile and KYC submission."""

from andaya.routes.deps import CurrentUser, get_current_user
from andaya.schemas import KYCSubmit
from andaya.services.database import get_db
from andaya.tools import kyc_tools, profile_tools
from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

router = APIRouter()


@router.get("/me")
async def get_me(
    user: CurrentUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    return await profile_tools.get_me(db, user.id)


@router.post("/kyc")
async def submit_kyc(
    body: KYCSubmit,
    user: CurrentUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    """Submit identity documents for review."""
    return await kyc_tools.submit_kyc(db, user.id, body.model_dump())


@router.get("/kyc/me")
async def get_my_kyc(
    user: CurrentUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    return await kyc_tools.get_my_kyc(db, user.id)
