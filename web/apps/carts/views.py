"""HTTP views for the shopping cart.

Cart edits pre-check stock against the live product so shoppers get an early
rejection; the checkout transaction repeats the check authoritatively.
"""

import logging

from django.db import transaction
from pydantic import ValidationError
from rest_framework import status
from rest_framework.response import Response
from rest_framework.throttling import ScopedRateThrottle
from rest_framework.views import APIView

from apps.catalog.models import Product
from .models import Cart, CartItem
from .schemas import AddCartItemDTO, CartReadDTO, UpdateCartItemDTO
from .snapshot import clear_cart, get_or_create_cart, read_cart_snapshot

logger = logging.getLogger(__name__)


def _validation_error(e: ValidationError) -> Response:
    return Response(
        {"detail": "VALIDATION_ERROR", "errors": e.errors(include_url=False, include_context=False)},
        status=status.HTTP_400_BAD_REQUEST,
    )


def _insufficient_stock(product: Product, requested: int) -> Response:
    return Response(
        {
            "detail": "INSUFFICIENT_STOCK",
            "message": f"Insufficient stock for {product.name}",
            "products": [
                {"product_id": str(product.pk), "name": product.name, "requested": requested, "available": product.stock}
            ],
        },
        status=status.HTTP_400_BAD_REQUEST,
    )


class CartView(APIView):
    throttle_classes = [ScopedRateThrottle]
    throttle_scope = "cart"

    def get(self, request):
        snapshot = read_cart_snapshot(request.user.pk)
        return Response(CartReadDTO.from_snapshot(snapshot).model_dump(), status=200)

    def post(self, request):
        try:
            dto = AddCartItemDTO.model_validate(request.data)
        except ValidationError as e:
            return _validation_error(e)

        product = Product.objects.filter(pk=dto.product_id, is_active=True).first()
        if product is None:
            return Response({"detail": "PRODUCT_NOT_FOUND"}, status=status.HTTP_404_NOT_FOUND)

        cart = get_or_create_cart(request.user.pk)
        with transaction.atomic():
            # Serialize concurrent edits of the same cart
            Cart.objects.select_for_update().get(pk=cart.pk)
            item = CartItem.objects.filter(cart=cart, product=product).first()
            quantity = dto.quantity + (item.quantity if item else 0)
            if product.stock < quantity:
                return _insufficient_stock(product, quantity)
            if item:
                item.quantity = quantity
                item.save(update_fields=["quantity"])
            else:
                CartItem.objects.create(cart=cart, product=product, quantity=quantity)

        logger.info("cart item added", extra={"user_id": request.user.pk, "product_id": str(product.pk), "quantity": quantity})
        return Response(CartReadDTO.from_snapshot(read_cart_snapshot(request.user.pk)).model_dump(), status=200)

    def put(self, request):
        try:
            dto = UpdateCartItemDTO.model_validate(request.data)
        except ValidationError as e:
            return _validation_error(e)

        cart = get_or_create_cart(request.user.pk)
        item = CartItem.objects.select_related("product").filter(cart=cart, product_id=dto.product_id).first()
        if item is None:
            return Response({"detail": "ITEM_NOT_IN_CART"}, status=status.HTTP_404_NOT_FOUND)

        if dto.quantity == 0:
            item.delete()
        elif item.product.stock < dto.quantity:
            return _insufficient_stock(item.product, dto.quantity)
        else:
            item.quantity = dto.quantity
            item.save(update_fields=["quantity"])

        return Response(CartReadDTO.from_snapshot(read_cart_snapshot(request.user.pk)).model_dump(), status=200)

    def delete(self, request):
        cart = get_or_create_cart(request.user.pk)
        removed = clear_cart(cart.pk)
        return Response({"ok": True, "removed": removed}, status=200)
