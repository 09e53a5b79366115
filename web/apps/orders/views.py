"""HTTP views for the orders app.

Views are kept intentionally small: they build the caller ``Identity`` from
the session user, validate bodies (via Pydantic), delegate to the
``OrderService`` obtained from ``providers.get_order_service()`` and map
domain errors to HTTP responses.

Idempotency: when an ``Idempotency-Key`` header is sent with a checkout, the
first request creates a record and, upon completion, stores the response.
Retries by the same user return the stored response with the
``Idempotent-Replay: true`` header. Reusing the key from another user or with
a different payload returns HTTP 409. Transient store failures release the key
so a retry runs the checkout again.
"""

import logging

from django.db import DatabaseError
from pydantic import ValidationError
from rest_framework import status
from rest_framework.response import Response
from rest_framework.throttling import ScopedRateThrottle
from rest_framework.views import APIView

from . import providers
from .domain import Identity, OrderError, Role
from .idempotency import IdempotencyConflict, finalize, get_or_create_idempotent, release
from .repository import OrderRepository
from .schemas import OrderReadDTO, UpdateOrderStatusDTO

logger = logging.getLogger(__name__)

STORE_UNAVAILABLE = {"detail": "STORE_UNAVAILABLE", "message": "The store is temporarily unavailable, please retry"}


def identity_from_request(request) -> Identity:
    """Build the explicit caller identity from the authenticated session user."""
    user = request.user
    return Identity(user_id=user.pk, role=Role.ADMIN if user.is_staff else Role.USER)


def order_error_response(exc: OrderError, identity: Identity) -> Response:
    logger.info(
        "order request rejected",
        extra={"code": exc.code, "user_id": identity.user_id, "reason": exc.message},
    )
    return Response(exc.as_dict(), status=exc.http_status)


def store_unavailable_response() -> Response:
    logger.exception("order store failure")
    return Response(STORE_UNAVAILABLE, status=status.HTTP_503_SERVICE_UNAVAILABLE)


class OrdersCollectionView(APIView):
    """List the caller's orders or check out the caller's cart."""

    throttle_classes = [ScopedRateThrottle]

    def get_throttles(self):
        # DRF evaluates throttles in initial(), before get/post
        self.throttle_scope = "orders_list" if self.request.method == "GET" else "orders_create"
        return [throttle() for throttle in self.throttle_classes]

    def get(self, request):
        identity = identity_from_request(request)
        try:
            page = max(1, int(request.GET.get("page", 1)))
            page_size = min(100, max(1, int(request.GET.get("page_size", 20))))
        except ValueError:
            return Response({"detail": "INVALID_PAGINATION"}, status=status.HTTP_400_BAD_REQUEST)

        count, number, orders = OrderRepository().page(identity, page, page_size)
        return Response(
            {
                "count": count,
                "page": number,
                "page_size": page_size,
                "results": [OrderReadDTO.from_order(o).model_dump(mode="json") for o in orders],
            },
            status=200,
        )

    def post(self, request):
        """Create an order from the caller's cart.

        Returns:
            Response: One of the following responses.
            - 201 with the order (items, frozen prices and total).
            - 200/4xx replay of the stored response for a retried
              ``Idempotency-Key``.
            - 409 ``IDEMPOTENCY_CONFLICT`` when the key is reused with another
              payload or by another user.
            - 400 ``EMPTY_CART``, ``INSUFFICIENT_STOCK`` (with ``products``)
              or ``PRODUCT_UNAVAILABLE``.
            - 503 ``STORE_UNAVAILABLE`` when the database fails; nothing was
              written, the request can be retried.
        """
        identity = identity_from_request(request)
        idem_key = request.headers.get("Idempotency-Key")

        rec = None
        if idem_key:
            try:
                existing, rec = get_or_create_idempotent(idem_key, identity.user_id, request.data)
            except IdempotencyConflict:
                return Response({"detail": "IDEMPOTENCY_CONFLICT"}, status=status.HTTP_409_CONFLICT)
            if existing:
                if not rec.response_status:
                    return Response({"detail": "IDEMPOTENCY_IN_PROGRESS"}, status=status.HTTP_409_CONFLICT)
                resp = Response(rec.response_body, status=rec.response_status)
                resp["Idempotent-Replay"] = "true"
                return resp

        try:
            order = providers.get_order_service().place_order(identity)
        except OrderError as e:
            if rec and e.http_status >= 500:
                release(rec)
            elif rec:
                finalize(rec, e.http_status, e.as_dict())
            return order_error_response(e, identity)
        except DatabaseError:
            if rec:
                release(rec)
            return store_unavailable_response()
        except Exception:
            # Unexpected failure: free the key so the client can retry
            if rec:
                release(rec)
            raise

        try:
            body = OrderReadDTO.from_order(order).model_dump(mode="json")
        except Exception:
            if rec:
                release(rec)
            raise
        if rec:
            finalize(rec, status.HTTP_201_CREATED, body, order_id=order.id)
        return Response(body, status=status.HTTP_201_CREATED)


class OrderDetailView(APIView):
    """Read, update the status of (admin) or cancel a single order."""

    throttle_classes = [ScopedRateThrottle]
    throttle_scope = "orders_detail"

    def get(self, request, oid):
        identity = identity_from_request(request)
        try:
            order = providers.get_order_service().get_order(identity, oid)
        except OrderError as e:
            return order_error_response(e, identity)
        return Response(OrderReadDTO.from_order(order).model_dump(mode="json"), status=200)

    def put(self, request, oid):
        identity = identity_from_request(request)
        if not identity.is_admin:
            return Response(
                {"detail": "FORBIDDEN", "message": "Only administrators can change order status"},
                status=status.HTTP_403_FORBIDDEN,
            )
        try:
            dto = UpdateOrderStatusDTO.model_validate(request.data)
        except ValidationError as e:
            return Response(
                {"detail": "VALIDATION_ERROR", "errors": e.errors(include_url=False, include_context=False)},
                status=status.HTTP_400_BAD_REQUEST,
            )

        try:
            order = providers.get_order_service().update_status(identity, oid, dto.status)
        except OrderError as e:
            return order_error_response(e, identity)
        except DatabaseError:
            return store_unavailable_response()
        return Response(OrderReadDTO.from_order(order).model_dump(mode="json"), status=200)

    def delete(self, request, oid):
        identity = identity_from_request(request)
        try:
            order = providers.get_order_service().cancel_order(identity, oid)
        except OrderError as e:
            return order_error_response(e, identity)
        except DatabaseError:
            return store_unavailable_response()
        return Response(
            {
                "id": str(order.id),
                "status": order.status.value,
                "message": "Order cancelled and stock restored",
            },
            status=200,
        )
