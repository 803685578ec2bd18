"""
Creator dashboard endpoint.
"""
from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from marketplace.api.deps import get_current_user
from marketplace.database.dependencies import get_db
from marketplace.database.models.user import User
from marketplace.models.schemas import DashboardResponse
from marketplace.services import dashboard_service

router = APIRouter()


@router.get("/dashboard", response_model=DashboardResponse)
async def get_dashboard(user: User = Depends(get_current_user), session: AsyncSession = Depends(get_db)):
    return DashboardResponse(data=await dashboard_service.get_dashboard(session, user))
