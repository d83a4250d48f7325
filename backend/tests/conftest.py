"""
Fixtures compartilhadas para testes.

Os testes rodam contra um SQLite em arquivo temporário (aiosqlite), com
NullPool: cada sessão abre a própria conexão, o que permite simular
duas requisições concorrentes com duas sessões independentes.
"""

from datetime import datetime, timedelta
from decimal import Decimal
from typing import AsyncGenerator

import pytest
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker
from sqlalchemy.pool import NullPool

from unilib.core.clock import utcnow
from unilib.core.security import create_access_token, hash_password
from unilib.db.session import build_engine, create_tables, get_db
from unilib.main import app
from unilib.models.book import Book
from unilib.models.enums import UserRole, UserStatus
from unilib.models.user import User

PASSWORD = "Senha123!"
PASSWORD_HASH = hash_password(PASSWORD)


# ==========================================
# Event loop configuration
# ==========================================

@pytest.fixture(scope="session")
def anyio_backend():
    return "asyncio"


# ==========================================
# Clock
# ==========================================

class FixedClock:
    """Relógio controlado pelos testes."""

    def __init__(self, now: datetime):
        self.now = now

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs) -> datetime:
        self.now = self.now + timedelta(**kwargs)
        return self.now


@pytest.fixture
def clock() -> FixedClock:
    return FixedClock(datetime(2026, 3, 10, 12, 0, 0))


# ==========================================
# Database fixtures
# ==========================================

@pytest.fixture
async def test_engine(tmp_path):
    """Banco novo por teste, com as tabelas criadas a partir dos models."""
    engine = build_engine(
        f"sqlite+aiosqlite:///{tmp_path / 'unilib_test.db'}",
        poolclass=NullPool,
    )
    await create_tables(bind=engine)
    yield engine
    await engine.dispose()


@pytest.fixture
def session_factory(test_engine) -> async_sessionmaker:
    return async_sessionmaker(
        test_engine,
        class_=AsyncSession,
        expire_on_commit=False,
        autoflush=False,
    )


@pytest.fixture
async def db(session_factory) -> AsyncGenerator[AsyncSession, None]:
    """Sessão usada pelos services no teste."""
    async with session_factory() as session:
        yield session


@pytest.fixture
def fetch(session_factory):
    """
    Lê um registro em uma sessão nova, para verificar o que de fato
    foi confirmado no banco.
    """
    async def _fetch(model, id):
        async with session_factory() as session:
            return await session.get(model, id)

    return _fetch


# ==========================================
# Factories
# ==========================================

@pytest.fixture
def user_factory(session_factory):
    """Cria usuários confirmados no banco."""
    counter = {"n": 0}

    async def _create(**overrides) -> User:
        counter["n"] += 1
        n = counter["n"]
        data = {
            "identification_code": f"STU{n:05d}",
            "email": f"student{n}@university.edu",
            "full_name": f"Student {n}",
            "faculty": "Engenharia",
            "department": "Computação",
            "password_hash": PASSWORD_HASH,
            "id_expiration": utcnow() + timedelta(days=365),
            "status": UserStatus.ACTIVE,
            "roles": [UserRole.STUDENT.value],
            "fines": Decimal("0.00"),
            "borrowed_books": [],
        }
        data.update(overrides)
        async with session_factory() as session:
            user = User(**data)
            session.add(user)
            await session.commit()
            await session.refresh(user)
            return user

    return _create


@pytest.fixture
def book_factory(session_factory):
    """Cria livros confirmados no banco."""
    counter = {"n": 0}

    async def _create(**overrides) -> Book:
        counter["n"] += 1
        n = counter["n"]
        total = overrides.pop("total_copies", 1)
        data = {
            "title": f"Book {n}",
            "author": "Author",
            "isbn": f"978000000{n:04d}",
            "category": "Computação",
            "total_copies": total,
            "available_copies": total,
            "is_active": True,
        }
        data.update(overrides)
        async with session_factory() as session:
            book = Book(**data)
            session.add(book)
            await session.commit()
            await session.refresh(book)
            return book

    return _create


# ==========================================
# HTTP Client fixtures
# ==========================================

@pytest.fixture
async def client(session_factory) -> AsyncGenerator[AsyncClient, None]:
    """
    Cliente HTTP assíncrono para testes.

    Substitui a dependency get_db para usar o banco de teste.
    """
    async def override_get_db():
        async with session_factory() as session:
            yield session

    app.dependency_overrides[get_db] = override_get_db

    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac

    app.dependency_overrides.clear()


# ==========================================
# Auth fixtures
# ==========================================

def auth_headers_for(user: User) -> dict:
    """Headers com token JWT do usuário."""
    token = create_access_token(subject=str(user.id), extra_data={"roles": user.roles})
    return {"Authorization": f"Bearer {token}"}


@pytest.fixture
def headers_for():
    return auth_headers_for


@pytest.fixture
async def student(user_factory) -> User:
    return await user_factory()


@pytest.fixture
async def librarian(user_factory) -> User:
    return await user_factory(
        identification_code="LIB00001",
        email="librarian@university.edu",
        full_name="Librarian",
        faculty=None,
        department=None,
        roles=[UserRole.LIBRARIAN.value],
    )


@pytest.fixture
def student_headers(student) -> dict:
    return auth_headers_for(student)


@pytest.fixture
def staff_headers(librarian) -> dict:
    return auth_headers_for(librarian)
