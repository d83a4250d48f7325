"""
Router principal da API v1.

Inclui todos os routers de endpoints.
"""

from fastapi import APIRouter

from unilib.api.v1.auth import router as auth_router
from unilib.api.v1.books import admin_router as admin_books_router
from unilib.api.v1.books import router as books_router
from unilib.api.v1.fines import router as fines_router
from unilib.api.v1.system import router as system_router
from unilib.api.v1.transactions import router as transactions_router
from unilib.api.v1.users import admin_router as admin_users_router
from unilib.api.v1.users import router as users_router

api_router = APIRouter(prefix="/api/v1")

api_router.include_router(auth_router)
api_router.include_router(users_router)
api_router.include_router(admin_users_router)
api_router.include_router(books_router)
api_router.include_router(admin_books_router)
api_router.include_router(transactions_router)
api_router.include_router(fines_router)
api_router.include_router(system_router)
