# backend/slotbook/routers/customers.py

from fastapi import APIRouter, Depends, HTTPException

from ..context import AppContext, get_context
from ..errors import ValidationError
from ..schemas.customers import CustomerRead, CustomerSave, CustomerVerifyResponse

router = APIRouter(prefix="/customers", tags=["customers"])


@router.post("/", response_model=CustomerRead)
def save_customer(
    data: CustomerSave,
    ctx: AppContext = Depends(get_context),
):
    try:
        customer = ctx.customers().save_customer(data.line_user_id, data.name, data.phone)
    except ValidationError as e:
        raise HTTPException(status_code=400, detail=e.to_dict())
    return customer.to_dict()


@router.get("/by-phone/{phone}", response_model=CustomerRead)
def get_customer_by_phone(phone: str, ctx: AppContext = Depends(get_context)):
    customer = ctx.customers().get_by_phone(phone)
    if not customer:
        raise HTTPException(status_code=404, detail="Not found")
    return customer.to_dict()


@router.get("/by-line/{line_user_id}", response_model=CustomerRead)
def get_customer_by_line_id(line_user_id: str, ctx: AppContext = Depends(get_context)):
    customer = ctx.customers().get_by_line_id(line_user_id)
    if not customer:
        raise HTTPException(status_code=404, detail="Not found")
    return customer.to_dict()


@router.get("/verify/{line_user_id}", response_model=CustomerVerifyResponse)
def verify_customer(line_user_id: str, ctx: AppContext = Depends(get_context)):
    """Whether a LINE user is a registered customer."""
    customer = ctx.customers().verify_line_id(line_user_id)
    return CustomerVerifyResponse(
        verified=customer is not None,
        customer=customer.to_dict() if customer else None,
    )
