"""
Payment provider webhook.

Callbacks may be delivered more than once; a replay of the current
payment status is acknowledged without side effects.
"""

from fastapi import APIRouter, Depends

from api.dependencies import Container, get_container
from api.models import OrderResponse, PaymentWebhookRequest

router = APIRouter()


@router.post(
    "/webhooks/payments",
    response_model=OrderResponse,
    summary="Payment Callback",
)
async def payment_callback(request: PaymentWebhookRequest, container: Container = Depends(get_container)):
    order = await container.lifecycle.record_payment(
        request.order_id,
        request.status,
        source="webhook",
        transaction_id=request.transaction_id,
        method=request.method,
    )
    return OrderResponse.of(order)
