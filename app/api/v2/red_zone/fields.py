"""Field catalog for the Red Zone rule editor."""

from fastapi import APIRouter

from app.api.deps import CurrentUser, DbSession
from app.schemas.red_zone import AvailableField
from app.services.red_zone.available_fields import get_available_fields

router = APIRouter()


@router.get("/available-fields", response_model=dict[str, AvailableField])
async def list_available_fields(db: DbSession, current_user: CurrentUser):
    """Field paths rules may reference, keyed by path."""
    return await get_available_fields(db)
