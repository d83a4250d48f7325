"""
Dependencies FastAPI para autenticação e autorização.

O motor de empréstimos recebe apenas IDs; quem resolve o usuário do token
e verifica papéis são estas dependencies.
"""

from typing import Annotated
from uuid import UUID

from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlalchemy.ext.asyncio import AsyncSession

from unilib.core.security import decode_token
from unilib.db.session import get_db
from unilib.models.user import User
from unilib.repositories.user import UserRepository

# Scheme Bearer para extrair token do header Authorization
security = HTTPBearer()


async def get_current_user(
    credentials: Annotated[HTTPAuthorizationCredentials, Depends(security)],
    db: Annotated[AsyncSession, Depends(get_db)],
) -> User:
    """
    Dependency que retorna o usuário autenticado.

    Raises:
        HTTPException 401: Token inválido, expirado ou usuário não encontrado
    """
    credentials_exception = HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail="Token inválido ou expirado",
        headers={"WWW-Authenticate": "Bearer"},
    )

    payload = decode_token(credentials.credentials)
    if payload is None:
        raise credentials_exception

    user_id: str | None = payload.get("sub")
    if user_id is None:
        raise credentials_exception

    try:
        user_uuid = UUID(user_id)
    except ValueError:
        raise credentials_exception

    user = await UserRepository(db).get_by_id(user_uuid)
    if user is None:
        raise credentials_exception

    return user


async def require_staff(
    current_user: Annotated[User, Depends(get_current_user)],
) -> User:
    """
    Dependency que exige papel de bibliotecário ou administrador.

    Raises:
        HTTPException 403: Usuário não é staff
    """
    if not current_user.is_staff:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Acesso restrito a bibliotecários e administradores",
        )
    return current_user


# Type aliases para uso nos endpoints
CurrentUser = Annotated[User, Depends(get_current_user)]
StaffUser = Annotated[User, Depends(require_staff)]
DbSession = Annotated[AsyncSession, Depends(get_db)]
