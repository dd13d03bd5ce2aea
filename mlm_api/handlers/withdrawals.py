"""Withdrawal handler."""

from aiohttp import web

from mlm_api.handlers.payload import get_decimal, ok, read_json
from mlm_api.keys import REQUEST_SESSION
from mlm_api.middlewares.auth import current_account
from mlm_ledger.services.withdrawal_service import WithdrawalService


async def withdraw(request: web.Request) -> web.Response:
    """POST /api/withdrawals {amount?, pointsToUse?, clearGroupPoints?}."""
    account = current_account(request)
    data = await read_json(request)

    result = await WithdrawalService(request[REQUEST_SESSION]).withdraw(
        account.id,
        amount=get_decimal(data, "amount"),
        points_to_use=get_decimal(data, "pointsToUse"),
        clear_group_points=bool(data.get("clearGroupPoints", False)),
        actor=account.username,
    )
    return ok("Cobro realizado", **result)
