"""Order API routes: checkout, order history, fulfilment and reporting."""

from typing import Annotated

from fastapi import APIRouter, Query, status

from src.api.deps import AdminUser, CurrentUser, OrderServiceDep, is_admin
from src.schemas.order import (
    AdminOrderListResponse,
    DashboardResponse,
    OrderCancelRequest,
    OrderCreateRequest,
    OrderListResponse,
    OrderResponse,
    OrderStatsResponse,
    OrderStatusUpdateRequest,
    StatsPeriod,
)

router = APIRouter(prefix="/orders", tags=["orders"])


@router.post(
    "",
    response_model=OrderResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Place an order",
    description="Creates an order for the authenticated customer, reserving stock for every item.",
)
async def create_order(
    data: OrderCreateRequest,
    user: CurrentUser,
    service: OrderServiceDep,
) -> OrderResponse:
    """Create a new order.

    Args:
        data: Items, delivery address, payment method and notes.
        user: The authenticated customer.
        service: Order service.

    Returns:
        OrderResponse: The created order with product details.
    """
    order = await service.create_order(
        user_id=user.user_id,
        items=[item.model_dump() for item in data.items],
        delivery_address=data.delivery_address.model_dump() if data.delivery_address else None,
        payment_method=data.payment_method,
        order_notes=data.order_notes,
    )
    return OrderResponse.model_validate(order)


@router.get(
    "",
    response_model=AdminOrderListResponse,
    summary="List all orders",
    description="Paginated list of all orders, newest first. Admin only.",
)
async def list_orders(
    _: AdminUser,
    service: OrderServiceDep,
    status_filter: Annotated[str | None, Query(alias="status")] = None,
    page: Annotated[int, Query(ge=1)] = 1,
    limit: Annotated[int | None, Query(ge=1)] = None,
) -> AdminOrderListResponse:
    """List orders for the admin panel."""
    result = await service.list_orders(status=status_filter or None, page=page, limit=limit)
    return AdminOrderListResponse.model_validate(result)


@router.get(
    "/me",
    response_model=OrderListResponse,
    summary="List my orders",
    description="Returns the authenticated customer's orders, newest first.",
)
async def list_my_orders(
    user: CurrentUser,
    service: OrderServiceDep,
    status_filter: Annotated[str | None, Query(alias="status")] = None,
) -> OrderListResponse:
    """List the current customer's orders."""
    orders = await service.list_user_orders(user.user_id, status=status_filter)
    return OrderListResponse(items=[OrderResponse.model_validate(order) for order in orders])


@router.get(
    "/stats",
    response_model=OrderStatsResponse,
    summary="Order statistics",
    description="Order counts per status and delivered revenue for a period. Admin only.",
)
async def get_order_stats(
    _: AdminUser,
    service: OrderServiceDep,
    period: StatsPeriod = "today",
) -> OrderStatsResponse:
    """Aggregate order statistics."""
    return OrderStatsResponse.model_validate(await service.get_order_stats(period))


@router.get(
    "/dashboard",
    response_model=DashboardResponse,
    summary="Dashboard orders",
    description="Latest orders grouped by status with headline numbers. Admin only.",
)
async def get_dashboard(_: AdminUser, service: OrderServiceDep) -> DashboardResponse:
    """Orders for the admin dashboard."""
    return DashboardResponse.model_validate(await service.get_dashboard())


@router.get(
    "/{order_id}",
    response_model=OrderResponse,
    summary="Get order by ID",
    description="Returns a single order. Customers can only view their own orders.",
)
async def get_order(order_id: str, user: CurrentUser, service: OrderServiceDep) -> OrderResponse:
    """Get a single order.

    Raises:
        NotFoundError: 404 if the order does not exist.
        AuthorizationError: 403 if the order belongs to someone else.
    """
    order = await service.get_order(order_id, user_id=user.user_id, is_admin=is_admin(user))
    return OrderResponse.model_validate(order)


@router.put(
    "/{order_id}/status",
    response_model=OrderResponse,
    summary="Update order status",
    description="Moves an order to the next fulfilment stage. Admin only.",
)
async def update_order_status(
    order_id: str,
    data: OrderStatusUpdateRequest,
    _: AdminUser,
    service: OrderServiceDep,
) -> OrderResponse:
    """Update an order's status.

    Raises:
        ValidationError: 400 for an unknown status.
        InvalidStateError: 400 for a disallowed transition.
        NotFoundError: 404 if the order does not exist.
    """
    order = await service.update_status(
        order_id,
        data.status,
        notes=data.notes,
        delivery_boy=data.delivery_boy,
        delivery_phone=data.delivery_phone,
    )
    return OrderResponse.model_validate(order)


@router.put(
    "/{order_id}/cancel",
    response_model=OrderResponse,
    summary="Cancel order",
    description="Cancels an order that has not been delivered and restores its stock.",
)
async def cancel_order(
    order_id: str,
    data: OrderCancelRequest,
    user: CurrentUser,
    service: OrderServiceDep,
) -> OrderResponse:
    """Cancel an order.

    Raises:
        InvalidStateError: 400 if the order is delivered or already cancelled.
        AuthorizationError: 403 if the order belongs to someone else.
        NotFoundError: 404 if the order does not exist.
    """
    order = await service.cancel_order(
        order_id,
        reason=data.reason,
        user_id=user.user_id,
        is_admin=is_admin(user),
    )
    return OrderResponse.model_validate(order)
