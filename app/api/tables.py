"""Restaurant tables API endpoints"""

from typing import List

from fastapi import APIRouter, Depends

from app.api.auth import require_access
from app.api.deps import get_data_source
from app.schemas.reservation import TableResource
from app.services.data_source import DataSource

router = APIRouter()


@router.get(
    "",
    response_model=List[TableResource],
    dependencies=[Depends(require_access(require_admin=True, permission="tables.view"))],
)
async def list_tables(
    active_only: bool = False,
    data_source: DataSource = Depends(get_data_source),
):
    """List restaurant tables"""
    return await data_source.fetch_tables(active_only=active_only)
