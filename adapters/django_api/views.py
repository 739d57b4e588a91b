"""
Tally Django Adapter Views
============================
Pass-through JSON views over ReservationService.

Write views retry retryable failures with backoff. The operation id
is fixed before the first attempt (taken from the body or generated),
so a retry of an attempt that did commit is answered as a replay.
"""

from __future__ import annotations

import json
import uuid
from typing import Any

from django.http import HttpRequest, JsonResponse
from django.views.decorators.csrf import csrf_exempt

from adapters.django_api.responses import failure, success, transaction_failure
from adapters.django_api.wiring import build_dependencies
from core.errors import TallyError
from core.transactions.retry import RetryPolicy, execute_with_retry


def _parse_json_body(request: HttpRequest) -> dict[str, Any]:
    if not request.body:
        return {}
    try:
        parsed = json.loads(request.body.decode("utf-8"))
    except (UnicodeDecodeError, json.JSONDecodeError) as exc:
        raise ValueError("Request body must be valid JSON.") from exc
    if not isinstance(parsed, dict):
        raise ValueError("Request body must be a JSON object.")
    return parsed


def _operation_id(body: dict[str, Any]) -> str:
    value = body.get("operation_id")
    if value is None:
        return str(uuid.uuid4())
    if not isinstance(value, str) or not value:
        raise ValueError("operation_id must be a non-empty string.")
    return value


def _invalid_request(exc: Exception) -> JsonResponse:
    return failure("INVALID_REQUEST", str(exc), status=400)


def _method_not_allowed() -> JsonResponse:
    return failure(
        "METHOD_NOT_ALLOWED",
        "Method not allowed for this endpoint.",
        status=405,
    )


def _retry_policy(service) -> RetryPolicy:
    return RetryPolicy.from_settings(service.coordinator.settings)


def _not_found(what: str, identifier: str) -> JsonResponse:
    return failure("NOT_FOUND", f"{what} '{identifier}' does not exist.", status=404)


# ══════════════════════════════════════════════════════════════
# ACCOUNTS & ITEMS
# ══════════════════════════════════════════════════════════════

@csrf_exempt
def accounts_create_view(request: HttpRequest) -> JsonResponse:
    if request.method != "POST":
        return _method_not_allowed()
    try:
        body = _parse_json_body(request)
        account_id = body["account_id"]
    except (ValueError, KeyError) as exc:
        return _invalid_request(exc)

    result = build_dependencies().open_account(
        account_id, body.get("initial_balance", 0),
    )
    if not result.ok:
        return transaction_failure(result.error)
    return success(result.value.to_dict(), status=201)


@csrf_exempt
def account_detail_view(request: HttpRequest, account_id: str) -> JsonResponse:
    if request.method != "GET":
        return _method_not_allowed()
    try:
        account = build_dependencies().get_account(account_id)
    except ValueError as exc:
        return _invalid_request(exc)
    except TallyError as exc:
        return transaction_failure(exc.to_error())
    if account is None:
        return _not_found("Account", account_id)
    return success(account.to_dict())


@csrf_exempt
def items_create_view(request: HttpRequest) -> JsonResponse:
    if request.method != "POST":
        return _method_not_allowed()
    try:
        body = _parse_json_body(request)
        item_id = body["item_id"]
        stock_count = body["stock_count"]
        unit_price = body["unit_price"]
    except (ValueError, KeyError) as exc:
        return _invalid_request(exc)

    result = build_dependencies().register_item(item_id, stock_count, unit_price)
    if not result.ok:
        return transaction_failure(result.error)
    return success(result.value.to_dict(), status=201)


@csrf_exempt
def item_detail_view(request: HttpRequest, item_id: str) -> JsonResponse:
    if request.method != "GET":
        return _method_not_allowed()
    try:
        item = build_dependencies().get_item(item_id)
    except ValueError as exc:
        return _invalid_request(exc)
    except TallyError as exc:
        return transaction_failure(exc.to_error())
    if item is None:
        return _not_found("Item", item_id)
    return success(item.to_dict())


# ══════════════════════════════════════════════════════════════
# TRANSFERS
# ══════════════════════════════════════════════════════════════

@csrf_exempt
def transfers_create_view(request: HttpRequest) -> JsonResponse:
    if request.method != "POST":
        return _method_not_allowed()
    try:
        body = _parse_json_body(request)
        from_account_id = body["from_account_id"]
        to_account_id = body["to_account_id"]
        amount = body["amount"]
        operation_id = _operation_id(body)
    except (ValueError, KeyError) as exc:
        return _invalid_request(exc)

    service = build_dependencies()
    result = execute_with_retry(
        lambda: service.transfer(
            from_account_id, to_account_id, amount, operation_id=operation_id,
        ),
        _retry_policy(service),
    )
    if not result.ok:
        return transaction_failure(result.error, {"operation_id": operation_id})
    return success(
        {"entry": result.entry.to_dict(), "replayed": result.replayed},
        status=200 if result.replayed else 201,
    )


# ══════════════════════════════════════════════════════════════
# ORDERS
# ══════════════════════════════════════════════════════════════

@csrf_exempt
def orders_create_view(request: HttpRequest) -> JsonResponse:
    if request.method != "POST":
        return _method_not_allowed()
    try:
        body = _parse_json_body(request)
        account_id = body["account_id"]
        line_items = body["line_items"]
        operation_id = _operation_id(body)
    except (ValueError, KeyError) as exc:
        return _invalid_request(exc)

    service = build_dependencies()
    result = execute_with_retry(
        lambda: service.create_order(
            account_id, line_items, operation_id=operation_id,
        ),
        _retry_policy(service),
    )
    if not result.ok:
        details = {"operation_id": operation_id}
        if result.order is not None:
            details["order"] = result.order.to_dict()
        return transaction_failure(result.error, details)
    return success(
        {"order": result.order.to_dict(), "replayed": result.replayed},
        status=200 if result.replayed else 201,
    )


@csrf_exempt
def order_detail_view(request: HttpRequest, order_id: str) -> JsonResponse:
    if request.method != "GET":
        return _method_not_allowed()
    order = build_dependencies().get_order(order_id)
    if order is None:
        return _not_found("Order", order_id)
    return success(order.to_dict())


# ══════════════════════════════════════════════════════════════
# STATS
# ══════════════════════════════════════════════════════════════

@csrf_exempt
def stats_detail_view(request: HttpRequest, bucket: str) -> JsonResponse:
    if request.method != "GET":
        return _method_not_allowed()
    try:
        snapshot = build_dependencies().get_stats(bucket)
    except ValueError as exc:
        return _invalid_request(exc)
    return success(snapshot.to_dict())
