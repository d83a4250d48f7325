"""
Endpoints de autenticação.

Contratos:
    - POST /auth/register: Cadastro de usuário
    - POST /auth/login: Login por código de identificação
    - GET /auth/me: Dados do usuário autenticado
    - POST /auth/verify-qr: Identificação pelo QR code da carteirinha (staff)
"""

from fastapi import APIRouter, status

from unilib.core.deps import CurrentUser, DbSession, StaffUser
from unilib.schemas.user import QRVerifyRequest, UserCreate, UserLogin, UserRead, UserWithToken
from unilib.services.auth import AuthService

router = APIRouter(prefix="/auth", tags=["Auth"])


@router.post(
    "/register",
    response_model=UserRead,
    status_code=status.HTTP_201_CREATED,
    summary="Registrar novo usuário",
    description="Cria uma nova conta. Código de identificação e email devem ser únicos.",
)
async def register(data: UserCreate, db: DbSession) -> UserRead:
    """
    Registro de usuário.

    - **identification_code**: Matrícula ou código da carteirinha (único)
    - **email**: Email único
    - **password**: Mínimo 8 caracteres, 1 maiúscula, 1 minúscula, 1 número
    - **faculty/department**: Obrigatórios para estudantes
    - **id_expiration**: Validade da carteirinha
    """
    service = AuthService(db)
    user = await service.register(data)
    return UserRead.model_validate(user)


@router.post(
    "/login",
    response_model=UserWithToken,
    summary="Autenticar usuário",
    description="Retorna token JWT para autenticação nos endpoints protegidos.",
)
async def login(data: UserLogin, db: DbSession) -> UserWithToken:
    """
    Login de usuário.

    Uso do token: `Authorization: Bearer <access_token>`
    """
    service = AuthService(db)
    return await service.login(data.identification_code, data.password)


@router.get(
    "/me",
    response_model=UserRead,
    summary="Dados do usuário autenticado",
)
async def get_me(current_user: CurrentUser) -> UserRead:
    """Retorna dados do usuário autenticado."""
    return UserRead.model_validate(current_user)


@router.post(
    "/verify-qr",
    response_model=UserRead,
    summary="Verificar QR code da carteirinha",
    description="Identifica o usuário pelo QR code lido no balcão. **Requer staff.**",
)
async def verify_qr(data: QRVerifyRequest, db: DbSession, staff: StaffUser) -> UserRead:
    """
    Resolve o QR code da carteirinha para o usuário.

    Raises:
        400: QR code inválido, conta inativa ou carteirinha vencida
        404: Usuário não encontrado
    """
    service = AuthService(db)
    user = await service.verify_qr(data.qr_data)
    return UserRead.model_validate(user)
