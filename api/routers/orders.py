"""
Orders API Endpoints.

Admin actions on placed orders. Both mutators are idempotent: replaying
the same request returns the current order and triggers no side effects.
"""

from uuid import UUID

from fastapi import APIRouter, Depends

from api.dependencies import Container, get_container
from api.models import OrderResponse, StatusUpdateRequest, TrackingRequest

router = APIRouter()


@router.get(
    "/orders/{order_id}",
    response_model=OrderResponse,
    summary="Get Order",
)
def get_order(order_id: UUID, container: Container = Depends(get_container)):
    return OrderResponse.of(container.lifecycle.get_order(order_id))


@router.patch(
    "/orders/{order_id}/status",
    response_model=OrderResponse,
    summary="Update Order Status",
    description="Move an order to an explicit target status.",
)
async def update_order_status(
    order_id: UUID,
    request: StatusUpdateRequest,
    container: Container = Depends(get_container),
):
    """
    **Allowed transitions:**
    - pending -> processing | canceled
    - processing -> completed | canceled

    completed requires the order to be paid. completed and canceled are
    terminal; any further request returns 409.
    """
    order = await container.lifecycle.update_status(order_id, request.status, reason=request.reason)
    return OrderResponse.of(order)


@router.post(
    "/orders/{order_id}/tracking",
    response_model=OrderResponse,
    summary="Add Tracking",
    description="Attach a tracking number and mark the order fulfilled.",
)
async def add_tracking(
    order_id: UUID,
    request: TrackingRequest,
    container: Container = Depends(get_container),
):
    order = await container.lifecycle.add_tracking(
        order_id,
        request.tracking_number,
        carrier=request.carrier,
        link=request.link,
    )
    return OrderResponse.of(order)
