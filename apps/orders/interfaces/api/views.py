from __future__ import annotations

from rest_framework import status
from rest_framework.views import APIView

from apps.accounts.services.identity_service import IdentityService
from apps.common.domain.errors import MarketplaceError
from apps.common.interfaces.api.responses import domain_error, invalid_input, success
from apps.orders.application.use_cases.change_order_status import (
    ChangeOrderStatusCommand,
    ChangeOrderStatusUseCase,
)
from apps.orders.application.use_cases.create_order import (
    CreateOrderCommand,
    CreateOrderUseCase,
    OrderLineInput,
)
from apps.orders.interfaces.api.serializers import (
    OrderCreateInputSerializer,
    OrderDetailSerializer,
    OrderSerializer,
    OrderStatusInputSerializer,
)
from apps.orders.services.order_query_service import OrderQueryService


class OrderListCreateAPI(APIView):
    def get(self, request):
        if request.query_params.get("scope") == "supplier":
            orders = OrderQueryService.list_for_supplier(request.user.id)
        else:
            orders = OrderQueryService.list_for_user(request.user.id)
        return success(data={"orders": OrderSerializer(orders[:50], many=True).data})

    def post(self, request):
        serializer = OrderCreateInputSerializer(data=request.data)
        if not serializer.is_valid():
            return invalid_input(serializer.errors)

        data = serializer.validated_data
        try:
            order = CreateOrderUseCase.execute(
                CreateOrderCommand(
                    user=request.user,
                    address_id=data["address_id"],
                    items=[OrderLineInput(product_id=i["product_id"], quantity=i["quantity"]) for i in data["items"]],
                    delivery_notes=data["delivery_notes"],
                )
            )
        except MarketplaceError as exc:
            return domain_error(exc)
        return success(data={"order": OrderSerializer(order).data}, http_status=status.HTTP_201_CREATED)


class OrderDetailAPI(APIView):
    def get(self, request, order_id: int):
        try:
            identity = IdentityService.resolve(request)
            order = OrderQueryService.get_visible(order_id=order_id, user=request.user, role=identity.role)
        except MarketplaceError as exc:
            return domain_error(exc)
        return success(data={"order": OrderDetailSerializer(order).data})


class OrderStatusAPI(APIView):
    def post(self, request, order_id: int):
        serializer = OrderStatusInputSerializer(data=request.data)
        if not serializer.is_valid():
            return invalid_input(serializer.errors)
        try:
            order = ChangeOrderStatusUseCase.execute(
                ChangeOrderStatusCommand(
                    order_id=order_id,
                    actor=request.user,
                    status=serializer.validated_data["status"],
                    note=serializer.validated_data["note"],
                )
            )
        except MarketplaceError as exc:
            return domain_error(exc)
        return success(data={"order": OrderSerializer(order).data})
