"""V1 API router aggregation."""

from fastapi import APIRouter

from app.api.v1.admin import router as admin_router
from app.api.v1.api_tokens import router as api_tokens_router
from app.api.v1.auth import router as auth_router
from app.api.v1.billing import router as billing_router
from app.api.v1.customers import router as customers_router
from app.api.v1.organizations import router as organizations_router
from app.api.v1.projects import router as projects_router
from app.api.v1.system import router as system_router
from app.api.v1.users import router as users_router

v1_router = APIRouter(prefix="/v1")
v1_router.include_router(organizations_router)
v1_router.include_router(auth_router)
v1_router.include_router(api_tokens_router)
v1_router.include_router(users_router)
v1_router.include_router(billing_router)
v1_router.include_router(projects_router)
v1_router.include_router(customers_router)
v1_router.include_router(admin_router)
v1_router.include_router(system_router)
