"""
Service de autenticação: cadastro, login e verificação do QR code da carteirinha.
"""

import logging

from sqlalchemy.ext.asyncio import AsyncSession

from unilib.core.clock import as_naive_utc, utcnow
from unilib.core.config import get_settings
from unilib.core.exceptions import (
    CredentialExpired,
    DuplicateEmail,
    DuplicateIdentificationCode,
    InvalidCredentials,
    InvalidQRCode,
    UserNotActive,
    UserNotFound,
)
from unilib.core.security import (
    create_access_token,
    generate_qr_payload,
    hash_password,
    parse_qr_payload,
    verify_password,
)
from unilib.db.session import unit_of_work
from unilib.models.enums import UserStatus
from unilib.models.user import User
from unilib.repositories.user import UserRepository
from unilib.schemas.user import TokenResponse, UserCreate, UserRead, UserWithToken

logger = logging.getLogger(__name__)
settings = get_settings()


class AuthService:
    """Service para operações de autenticação."""

    def __init__(self, db: AsyncSession):
        self.db = db
        self.user_repo = UserRepository(db)

    async def register(self, data: UserCreate) -> User:
        """
        Registra novo usuário.

        Args:
            data: Dados do novo usuário

        Returns:
            Usuário criado, com saldo zerado e QR code da carteirinha

        Raises:
            DuplicateIdentificationCode: Código já cadastrado
            DuplicateEmail: Email já cadastrado
        """
        async with unit_of_work(self.db):
            if await self.user_repo.identification_code_exists(data.identification_code):
                raise DuplicateIdentificationCode()
            if await self.user_repo.email_exists(data.email):
                raise DuplicateEmail()

            user = await self.user_repo.add(
                identification_code=data.identification_code.upper(),
                email=data.email.lower(),
                full_name=data.full_name,
                faculty=data.faculty,
                department=data.department,
                phone=data.phone,
                password_hash=hash_password(data.password),
                qr_code=generate_qr_payload(data.identification_code),
                id_expiration=data.id_expiration,
                status=UserStatus.ACTIVE,
                roles=[role.value for role in data.roles],
                borrowed_books=[],
            )

        await self.db.refresh(user)
        logger.info(f"Usuário registrado: {user.identification_code} ({', '.join(user.roles)})")
        return user

    async def login(self, identification_code: str, password: str) -> UserWithToken:
        """
        Autentica usuário e retorna token JWT.

        Raises:
            InvalidCredentials: Código ou senha incorretos
        """
        user = await self.user_repo.get_by_identification_code(identification_code)

        if user is None or not verify_password(password, user.password_hash):
            logger.info(f"Falha de login para {identification_code.upper()}")
            raise InvalidCredentials()

        access_token = create_access_token(
            subject=str(user.id),
            extra_data={"roles": list(user.roles)},
        )

        return UserWithToken(
            user=UserRead.model_validate(user),
            token=TokenResponse(
                access_token=access_token,
                token_type="bearer",
                expires_in=settings.JWT_EXPIRES_MINUTES * 60,
            ),
        )

    async def verify_qr(self, qr_data: str) -> User:
        """
        Identifica o dono de uma carteirinha pelo conteúdo do QR code.

        Só o QR code atual da carteirinha é aceito; um payload bem formado
        de uma carteirinha reemitida é recusado.

        Args:
            qr_data: Conteúdo lido do QR code

        Returns:
            Usuário dono da carteirinha

        Raises:
            InvalidQRCode: Formato inválido ou QR code substituído
            UserNotFound: Código de identificação não cadastrado
            UserNotActive: Conta bloqueada ou encerrada
            CredentialExpired: Carteirinha vencida
        """
        code = parse_qr_payload(qr_data)
        if code is None:
            raise InvalidQRCode()

        user = await self.user_repo.get_by_identification_code(code)
        if user is None:
            raise UserNotFound()
        if user.qr_code != qr_data:
            raise InvalidQRCode()
        if user.status != UserStatus.ACTIVE:
            raise UserNotActive()
        if as_naive_utc(user.id_expiration) <= utcnow():
            raise CredentialExpired("Carteirinha expirada")

        logger.info(f"QR code verificado: {user.identification_code}")
        return user
