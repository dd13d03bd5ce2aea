"""Monthly coin cap handler."""

from aiohttp import web

from mlm_api.handlers.payload import get_int, ok, read_json
from mlm_api.keys import REQUEST_SESSION
from mlm_api.middlewares.auth import current_account
from mlm_ledger.services.coin_cap_service import CoinCapService
from mlm_ledger.utils.exceptions import InvalidRequestError


async def monthly_limit(request: web.Request) -> web.Response:
    """POST /api/coins/monthly-limit {action, coins, gameType, level}."""
    account = current_account(request)
    data = await read_json(request)
    action = data.get("action", "status")
    service = CoinCapService(request[REQUEST_SESSION])

    if action == "status":
        status = await service.get_status(account.id)
        return ok("Estado mensual de monedas", **status)

    if action == "earn":
        coins = get_int(data, "coins")
        result = await service.earn(
            account.id,
            coins,
            game_type=data.get("gameType"),
            level=get_int(data, "level", required=False),
        )
        message = "Monedas registradas"
        if result["approved"] < coins:
            message = "Limite mensual alcanzado"
        return ok(message, **result)

    raise InvalidRequestError(f"Invalid action: {action}", field="action")
