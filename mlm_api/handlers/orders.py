"""
Order handlers.

Admin endpoints for confirming, rejecting and bulk-confirming orders.
"""

from aiohttp import web

from mlm_api.handlers.payload import get_int, ok, read_json
from mlm_api.keys import REQUEST_SESSION
from mlm_api.middlewares.auth import require_admin
from mlm_ledger.repositories.account_repository import AccountRepository
from mlm_ledger.services.commission import (
    BulkQuickStartConfirmation,
    CommissionDistributionEngine,
)
from mlm_ledger.utils.exceptions import InvalidRequestError, NotFoundError


ORDER_ACTIONS = ("confirm", "reject")


async def confirm_order(request: web.Request) -> web.Response:
    """POST /api/orders/confirm {orderId, action}."""
    admin = require_admin(request)
    data = await read_json(request)
    order_id = get_int(data, "orderId")
    action = data.get("action", "confirm")
    if action not in ORDER_ACTIONS:
        raise InvalidRequestError(f"Invalid action: {action}", field="action")

    engine = CommissionDistributionEngine(request[REQUEST_SESSION])
    if action == "reject":
        order = await engine.reject_order(order_id, admin.username)
        return ok("Orden rechazada", orderId=order.id, status=order.status)

    result = await engine.confirm_and_distribute(order_id, admin.username)
    message = "Orden confirmada"
    if result.quick_start_applied:
        message = "Orden confirmada con Quick Start"
    return ok(message, **result.to_dict())


async def confirm_all_quick_start(request: web.Request) -> web.Response:
    """POST /api/orders/confirm-all-quick-start {buyerId | buyerUid}."""
    admin = require_admin(request)
    data = await read_json(request)
    session = request[REQUEST_SESSION]

    buyer_id = get_int(data, "buyerId", required=False)
    if buyer_id is None:
        buyer_uid = data.get("buyerUid")
        if not buyer_uid:
            raise InvalidRequestError("buyerId is required", field="buyerId")
        if str(buyer_uid).isdigit():
            buyer_id = int(buyer_uid)
        else:
            buyer = await AccountRepository(session).get_by_username(str(buyer_uid))
            if buyer is None:
                raise NotFoundError("Buyer not found", buyer_uid=str(buyer_uid))
            buyer_id = buyer.id

    result = await BulkQuickStartConfirmation(session).confirm_all_quick_start(
        buyer_id, admin.username
    )
    return ok(
        f"{len(result.order_ids)} ordenes confirmadas con Quick Start",
        **result.to_dict(),
    )


async def resume_distribution(request: web.Request) -> web.Response:
    """POST /api/orders/resume-distribution {orderId}."""
    admin = require_admin(request)
    data = await read_json(request)
    order_id = get_int(data, "orderId")

    engine = CommissionDistributionEngine(request[REQUEST_SESSION])
    result = await engine.resume_distribution(order_id, admin.username)
    return ok("Distribucion reanudada", **result.to_dict())
