"""Customer administration: profiles, blocking, credit, terminations, PAQ reviews."""

from fastapi import APIRouter, Depends, status

from sharecrm.core import customers
from sharecrm.core.storage import get_storage
from sharecrm.db.staff_repository import UserRecord
from sharecrm.web.deps import require_permission
from sharecrm.web.schemas import (
    BlockRequest,
    CreditRequest,
    CustomerCreate,
    CustomerListResponse,
    CustomerResponse,
    CustomerUpdate,
    PaqReviewItem,
    PaqReviewListResponse,
    ReviewRequest,
    TerminationCreate,
    TerminationListResponse,
    TerminationResponse,
)

router = APIRouter(prefix="/api/customers", tags=["customers"])
terminations_router = APIRouter(prefix="/api/terminations", tags=["customers"])
paq_router = APIRouter(prefix="/api/paq-reviews", tags=["customers"])


@router.get("", response_model=CustomerListResponse)
async def list_customers(
    search: str | None = None,
    status: str | None = None,
    user: UserRecord = Depends(require_permission("customer_read")),
) -> CustomerListResponse:
    items = customers.list_customers(search, status)
    return CustomerListResponse(
        customers=[CustomerResponse.model_validate(c) for c in items],
        count=len(items),
    )


@router.post("", response_model=CustomerResponse, status_code=status.HTTP_201_CREATED)
async def create_customer(
    body: CustomerCreate,
    user: UserRecord = Depends(require_permission("customer_create")),
) -> CustomerResponse:
    return CustomerResponse.model_validate(customers.create_customer(body.model_dump(exclude_none=True)))


@router.get("/{customer_id}", response_model=CustomerResponse)
async def get_customer(
    customer_id: str,
    user: UserRecord = Depends(require_permission("customer_read")),
) -> CustomerResponse:
    return CustomerResponse.model_validate(customers.get_customer(customer_id))


@router.put("/{customer_id}", response_model=CustomerResponse)
async def update_customer(
    customer_id: str,
    body: CustomerUpdate,
    user: UserRecord = Depends(require_permission("customer_update")),
) -> CustomerResponse:
    updated = customers.update_customer(customer_id, body.model_dump(exclude_unset=True))
    return CustomerResponse.model_validate(updated)


@router.delete("/{customer_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_customer(
    customer_id: str,
    user: UserRecord = Depends(require_permission("customer_update")),
) -> None:
    customers.delete_customer(customer_id)


@router.post("/{customer_id}/block", response_model=CustomerResponse)
async def block_customer(
    customer_id: str,
    body: BlockRequest,
    user: UserRecord = Depends(require_permission("customer_update")),
) -> CustomerResponse:
    return CustomerResponse.model_validate(customers.block_customer(customer_id, body.note))


@router.post("/{customer_id}/unblock", response_model=CustomerResponse)
async def unblock_customer(
    customer_id: str,
    user: UserRecord = Depends(require_permission("customer_update")),
) -> CustomerResponse:
    return CustomerResponse.model_validate(customers.unblock_customer(customer_id))


@router.post("/{customer_id}/credit", response_model=CustomerResponse)
async def adjust_credit(
    customer_id: str,
    body: CreditRequest,
    user: UserRecord = Depends(require_permission("customer_update")),
) -> CustomerResponse:
    return CustomerResponse.model_validate(customers.adjust_credit(customer_id, body.delta))


@router.get("/{customer_id}/terminations", response_model=TerminationListResponse)
async def customer_terminations(
    customer_id: str,
    user: UserRecord = Depends(require_permission("customer_read")),
) -> TerminationListResponse:
    items = customers.list_terminations(customer_id=customer_id)
    return TerminationListResponse(
        terminations=[TerminationResponse.model_validate(t) for t in items],
        count=len(items),
    )


@router.post(
    "/{customer_id}/terminations",
    response_model=TerminationResponse,
    status_code=status.HTTP_201_CREATED,
)
async def create_termination(
    customer_id: str,
    body: TerminationCreate,
    user: UserRecord = Depends(require_permission("customer_update")),
) -> TerminationResponse:
    termination = customers.request_termination(
        customer_id, body.termination_date, body.reason, body.admin_notes
    )
    return TerminationResponse.model_validate(termination)


@terminations_router.get("", response_model=TerminationListResponse)
async def list_terminations(
    status: str | None = None,
    user: UserRecord = Depends(require_permission("customer_read")),
) -> TerminationListResponse:
    items = customers.list_terminations(status=status)
    return TerminationListResponse(
        terminations=[TerminationResponse.model_validate(t) for t in items],
        count=len(items),
    )


@terminations_router.post("/{termination_id}/review", response_model=TerminationResponse)
async def review_termination(
    termination_id: str,
    body: ReviewRequest,
    user: UserRecord = Depends(require_permission("customer_update")),
) -> TerminationResponse:
    reviewed = customers.review_termination(termination_id, body.status, body.admin_notes)
    return TerminationResponse.model_validate(reviewed)


@paq_router.get("", response_model=PaqReviewListResponse)
async def pending_paq_reviews(
    user: UserRecord = Depends(require_permission("customer_read")),
) -> PaqReviewListResponse:
    """PAQ forms awaiting review, oldest first, with document links."""
    storage = get_storage()
    items = [
        PaqReviewItem(
            customer=CustomerResponse.model_validate(c),
            document_url=storage.signed_url("paq-documents", c.paq_document_path)
            if c.paq_document_path
            else None,
        )
        for c in customers.pending_paq_reviews()
    ]
    return PaqReviewListResponse(reviews=items, count=len(items))


@paq_router.post("/{customer_id}", response_model=CustomerResponse)
async def review_paq(
    customer_id: str,
    body: ReviewRequest,
    user: UserRecord = Depends(require_permission("customer_update")),
) -> CustomerResponse:
    return CustomerResponse.model_validate(customers.review_paq(customer_id, body.status))
