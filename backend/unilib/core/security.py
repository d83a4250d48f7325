"""
Utilitários de segurança: hash de senha, JWT e payload de QR code.

Estes são colaboradores externos do motor de empréstimos: o motor recebe
apenas IDs de usuários já autenticados e nunca valida credenciais.
"""

import logging
import secrets
from datetime import datetime, timedelta, timezone
from typing import Any

import bcrypt
from jose import JWTError, jwt

from unilib.core.config import get_settings

logger = logging.getLogger(__name__)
settings = get_settings()

QR_PREFIX = "UNILIB"


def hash_password(password: str) -> str:
    """
    Gera hash bcrypt da senha.

    Args:
        password: Senha em texto plano

    Returns:
        Hash bcrypt da senha
    """
    hashed = bcrypt.hashpw(password.encode("utf-8"), bcrypt.gensalt())
    return hashed.decode("utf-8")


def verify_password(plain_password: str, hashed_password: str) -> bool:
    """Verifica se a senha corresponde ao hash armazenado."""
    try:
        return bcrypt.checkpw(
            plain_password.encode("utf-8"),
            hashed_password.encode("utf-8"),
        )
    except ValueError as e:
        logger.debug(f"Erro na verificação de senha: {type(e).__name__}")
        return False


def create_access_token(
    subject: str,
    extra_data: dict[str, Any] | None = None,
    expires_delta: timedelta | None = None,
) -> str:
    """
    Cria token JWT.

    Args:
        subject: ID do usuário
        extra_data: Dados adicionais para o payload (ex: roles)
        expires_delta: Tempo de expiração customizado

    Returns:
        Token JWT assinado
    """
    now = datetime.now(timezone.utc)
    expire = now + (expires_delta or timedelta(minutes=settings.JWT_EXPIRES_MINUTES))

    payload = {"sub": subject, "exp": expire, "iat": now}
    if extra_data:
        payload.update(extra_data)

    return jwt.encode(payload, settings.JWT_SECRET, algorithm=settings.JWT_ALGORITHM)


def decode_token(token: str) -> dict[str, Any] | None:
    """Decodifica e valida token JWT. Retorna None se inválido ou expirado."""
    try:
        return jwt.decode(
            token,
            settings.JWT_SECRET,
            algorithms=[settings.JWT_ALGORITHM],
        )
    except JWTError:
        return None


def generate_qr_payload(identification_code: str) -> str:
    """
    Gera o conteúdo do QR code da carteirinha.

    O formato é `UNILIB:<código>:<nonce>`; o nonce garante unicidade
    mesmo quando uma carteirinha é reemitida.
    """
    return f"{QR_PREFIX}:{identification_code.upper()}:{secrets.token_hex(8)}"


def parse_qr_payload(payload: str) -> str | None:
    """Extrai o código de identificação de um payload de QR code válido."""
    parts = payload.split(":")
    if len(parts) != 3 or parts[0] != QR_PREFIX or not parts[1]:
        return None
    return parts[1]
