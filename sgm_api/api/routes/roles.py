from __future__ import annotations

from typing import List

from fastapi import APIRouter, Depends

from sgm_api.core.deps import get_current_principal
from sgm_api.core.roles import ROLE_DESCRIPTIONS, authority_for, role_catalog
from sgm_api.schemas.auth import RoleRead

router = APIRouter(prefix="/roles", tags=["Roles"])


# PUBLIC_INTERFACE
@router.get(
    "",
    response_model=List[RoleRead],
    summary="List roles",
    description="The role catalog, sorted by name.",
    dependencies=[Depends(get_current_principal)],
)
async def list_roles() -> List[RoleRead]:
    return [
        RoleRead(name=name, authority=authority_for(name), description=ROLE_DESCRIPTIONS[name])
        for name in role_catalog()
    ]
