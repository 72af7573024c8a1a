"""Customer records, capped by the plan's customers limit."""

from fastapi import APIRouter, HTTPException, status
from sqlmodel import select

from app.api.deps import Auth, CurrentOrg, Enforcer, Session, ensure_within_quota
from app.models.customer import Customer, CustomerCreate, CustomerRead

router = APIRouter(prefix="/customers", tags=["customers"])


@router.post("", response_model=CustomerRead, status_code=status.HTTP_201_CREATED)
async def create_customer(
    body: CustomerCreate,
    org: CurrentOrg,
    enforcer: Enforcer,
    session: Session,
) -> CustomerRead:
    existing = await session.execute(
        select(Customer).where(
            Customer.organization_id == org.id,
            Customer.email == body.email,
        )
    )
    if existing.scalar_one_or_none():
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail="A customer with this email already exists",
        )

    await ensure_within_quota(session, org, enforcer, "customers")

    customer = Customer(organization_id=org.id, email=body.email, name=body.name)
    session.add(customer)
    await session.commit()
    await session.refresh(customer)
    return CustomerRead.model_validate(customer)


@router.get("", response_model=list[CustomerRead])
async def list_customers(
    auth: Auth,
    session: Session,
    limit: int = 100,
    offset: int = 0,
) -> list[CustomerRead]:
    stmt = (
        select(Customer)
        .where(Customer.organization_id == auth.organization_id)
        .order_by(Customer.created_at.desc())  # type: ignore[union-attr]
        .offset(offset)
        .limit(min(limit, 500))
    )
    result = await session.execute(stmt)
    return [CustomerRead.model_validate(c) for c in result.scalars().all()]
