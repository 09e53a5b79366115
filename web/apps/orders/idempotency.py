"""Idempotency utilities for safely handling duplicate checkout requests.

This module stores and retrieves idempotency keys to de-duplicate client
retries of ``POST /api/orders/``. It supports creating an idempotent record,
detecting conflicts when the same key is reused with a different payload or
by a different user, finalizing a stored response so subsequent retries can
short-circuit, and releasing a key after a transient failure so the retry
runs the checkout again.
"""

import hashlib, json
from django.db import transaction, IntegrityError
from .models import IdempotencyKey


class IdempotencyConflict(ValueError):
    pass


def _hash(user_id: int, payload) -> str:
    """Compute a stable SHA-256 hash for the caller and a JSON payload.

    The payload is serialized with sorted keys and compact separators to
    ensure a deterministic representation before hashing.
    """
    body = json.dumps({"user": user_id, "payload": payload}, sort_keys=True, separators=(",", ":"), default=str)
    return hashlib.sha256(body.encode("utf-8")).hexdigest()


@transaction.atomic
def get_or_create_idempotent(key: str, user_id: int, payload):
    """Get-or-create an idempotency record for the given key.

    Behavior:
        - First request with a new key: create a record and return
          ``(False, rec)``; the caller finalizes it.
        - Retry with the same key, user and payload: lock and return
          ``(True, rec)`` so the stored response can be replayed.
        - Same key with a different user or payload: raise
          ``IdempotencyConflict``.

    The create path runs in a nested savepoint so an IntegrityError only
    rolls back that block; the existing-record path takes a row lock
    (SELECT ... FOR UPDATE) to avoid races under concurrency.

    Returns:
        tuple[bool, IdempotencyKey]: ``(existing, rec)``.

    Raises:
        IdempotencyConflict: If the key exists with a different request hash.
    """
    h = _hash(user_id, payload)

    try:
        with transaction.atomic():
            rec = IdempotencyKey.objects.create(
                key=key, user_id=user_id, request_hash=h, response_status=0, response_body={}
            )
            return False, rec
    except IntegrityError:
        rec = IdempotencyKey.objects.select_for_update().get(key=key)
        if rec.request_hash != h:
            raise IdempotencyConflict("IDEMPOTENCY_CONFLICT")
        return True, rec


def finalize(rec: IdempotencyKey, status_code: int, body: dict, order_id=None):
    """Persist the final response for an idempotent request.

    Args:
        rec: The idempotency record to update.
        status_code: HTTP status code to store for the response.
        body: JSON-serializable response body to persist.
        order_id: Optional order created by the request.
    """
    rec.response_status = status_code
    rec.response_body = body
    if order_id is not None:
        rec.order_id = order_id
    rec.save(update_fields=["response_status", "response_body", "order_id"])


def release(rec: IdempotencyKey):
    """Forget a key whose request failed transiently so it can be retried."""
    IdempotencyKey.objects.filter(pk=rec.pk).delete()
