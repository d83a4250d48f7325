"""
Script de seed para criar dados iniciais no banco.

Uso:
    python -m unilib.db.seed

Cria as tabelas, o usuário admin e alguns livros de exemplo, se ainda
não existirem.
"""

import asyncio
import logging
from datetime import timedelta

from sqlalchemy import select

from unilib.core.clock import utcnow
from unilib.core.config import get_settings
from unilib.core.logging import setup_logging
from unilib.core.security import generate_qr_payload, hash_password
from unilib.db.session import async_session_factory, create_tables
from unilib.models.book import Book
from unilib.models.enums import UserRole, UserStatus
from unilib.models.user import User

logger = logging.getLogger(__name__)
settings = get_settings()

SAMPLE_BOOKS = [
    {
        "title": "Dom Casmurro",
        "author": "Machado de Assis",
        "isbn": "9788535910667",
        "category": "Literatura",
        "publication_year": 1899,
        "shelf": "LIT-01",
        "total_copies": 3,
    },
    {
        "title": "Introduction to Algorithms",
        "author": "Thomas H. Cormen",
        "isbn": "9780262046305",
        "category": "Computação",
        "publication_year": 2022,
        "shelf": "CMP-12",
        "total_copies": 2,
    },
    {
        "title": "Cálculo Volume 1",
        "author": "James Stewart",
        "isbn": "9788522112586",
        "category": "Matemática",
        "publication_year": 2013,
        "shelf": "MAT-03",
        "total_copies": 5,
    },
]


async def create_admin() -> None:
    """
    Cria usuário admin se não existir.

    Lê código, email e senha do .env (ADMIN_IDENTIFICATION_CODE,
    ADMIN_EMAIL, ADMIN_PASSWORD).
    """
    async with async_session_factory() as db:
        result = await db.execute(
            select(User).where(User.email == settings.ADMIN_EMAIL.lower())
        )
        if result.scalar_one_or_none():
            logger.info(f"Admin já existe: {settings.ADMIN_EMAIL}")
            return

        admin = User(
            identification_code=settings.ADMIN_IDENTIFICATION_CODE.upper(),
            email=settings.ADMIN_EMAIL.lower(),
            full_name="Administrador",
            password_hash=hash_password(settings.ADMIN_PASSWORD),
            qr_code=generate_qr_payload(settings.ADMIN_IDENTIFICATION_CODE),
            id_expiration=utcnow() + timedelta(days=365 * 5),
            status=UserStatus.ACTIVE,
            roles=[UserRole.ADMIN.value, UserRole.LIBRARIAN.value],
            borrowed_books=[],
        )
        db.add(admin)
        await db.commit()

        logger.info(f"Admin criado: {settings.ADMIN_EMAIL} (ID: {admin.id})")


async def create_sample_books() -> None:
    """Cadastra livros de exemplo que ainda não existam (por ISBN)."""
    async with async_session_factory() as db:
        created = 0
        for data in SAMPLE_BOOKS:
            result = await db.execute(select(Book).where(Book.isbn == data["isbn"]))
            if result.scalar_one_or_none():
                continue
            db.add(Book(**data, available_copies=data["total_copies"], is_active=True))
            created += 1
        await db.commit()
        logger.info(f"{created} livro(s) de exemplo cadastrados")


async def main() -> None:
    """Executa todos os seeds."""
    setup_logging()
    logger.info("Executando seeds...")
    await create_tables()
    await create_admin()
    await create_sample_books()
    logger.info("Seeds concluídos!")


if __name__ == "__main__":
    asyncio.run(main())
