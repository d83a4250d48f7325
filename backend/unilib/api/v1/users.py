"""
Endpoints de usuários.

Contratos:
    - GET /users/me: Perfil com saldo de multas e empréstimos
    - GET /admin/users/{id}: Detalhes de um usuário (staff)
    - PUT /admin/users/{id}/status: Bloqueia/reativa conta (staff)
"""

from uuid import UUID

from fastapi import APIRouter

from unilib.core.deps import CurrentUser, DbSession, StaffUser
from unilib.schemas.user import UserRead, UserStatusUpdate
from unilib.services.user import UserService

router = APIRouter(prefix="/users", tags=["Users"])
admin_router = APIRouter(prefix="/admin/users", tags=["Users (Admin)"])


@router.get(
    "/me",
    response_model=UserRead,
    summary="Meu perfil",
)
async def get_my_profile(current_user: CurrentUser) -> UserRead:
    return UserRead.model_validate(current_user)


@admin_router.get(
    "/{user_id}",
    response_model=UserRead,
    summary="Detalhes do usuário",
)
async def get_user(user_id: UUID, db: DbSession, staff: StaffUser) -> UserRead:
    service = UserService(db)
    return UserRead.model_validate(await service.get_by_id(user_id))


@admin_router.put(
    "/{user_id}/status",
    response_model=UserRead,
    summary="Alterar status da conta",
    description="Bloqueia, encerra ou reativa a conta. **Requer staff.**",
)
async def update_user_status(
    user_id: UUID,
    data: UserStatusUpdate,
    db: DbSession,
    staff: StaffUser,
) -> UserRead:
    service = UserService(db)
    user = await service.update_status(user_id, data)
    return UserRead.model_validate(user)
