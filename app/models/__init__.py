"""Import all models so SQLModel.metadata picks them up."""

from app.models.api_token import ApiToken, ApiTokenCreate, ApiTokenCreated, ApiTokenRead
from app.models.appsumo_code import AppsumoCode, AppsumoCodeCreate
from app.models.customer import Customer, CustomerCreate, CustomerRead
from app.models.organization import Organization, OrganizationCreate, OrganizationRead
from app.models.project import (
    Automation,
    AutomationCreate,
    AutomationRead,
    Project,
    ProjectCreate,
    ProjectRead,
)
from app.models.usage_period import UsagePeriod, UsagePeriodRead
from app.models.user import User, UserCreate, UserRead, UserRole, UserUpdate

__all__ = [
    "ApiToken",
    "ApiTokenCreate",
    "ApiTokenCreated",
    "ApiTokenRead",
    "AppsumoCode",
    "AppsumoCodeCreate",
    "Automation",
    "AutomationCreate",
    "AutomationRead",
    "Customer",
    "CustomerCreate",
    "CustomerRead",
    "Organization",
    "OrganizationCreate",
    "OrganizationRead",
    "Project",
    "ProjectCreate",
    "ProjectRead",
    "UsagePeriod",
    "UsagePeriodRead",
    "User",
    "UserCreate",
    "UserRead",
    "UserRole",
    "UserUpdate",
]
