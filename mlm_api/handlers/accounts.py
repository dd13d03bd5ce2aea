"""Account handlers: recalculation and activation status."""

from aiohttp import web

from mlm_api.handlers.payload import get_int, ok, read_json
from mlm_api.keys import REQUEST_SESSION
from mlm_api.middlewares.auth import current_account, require_admin
from mlm_ledger.config.settings import settings
from mlm_ledger.services.activation_service import ActivationAuditor
from mlm_ledger.services.recalculation_service import RecalculationService
from mlm_ledger.utils.datetime_utils import utc_now
from mlm_ledger.utils.exceptions import AuthorizationError, InvalidRequestError


async def recalculate_account(request: web.Request) -> web.Response:
    """POST /api/accounts/recalculate {accountId, apply}."""
    admin = require_admin(request)
    data = await read_json(request)
    account_id = get_int(data, "accountId")
    apply = data.get("apply", True)
    if not isinstance(apply, bool):
        raise InvalidRequestError("apply must be a boolean", field="apply")

    result = await RecalculationService(request[REQUEST_SESSION]).recalculate(
        account_id, actor=admin.username, apply=apply
    )
    return ok("Cuenta recalculada" if apply else "Recalculo simulado", **result)


async def activation_status(request: web.Request) -> web.Response:
    """GET /api/accounts/{id}/activation?year=&month=."""
    caller = current_account(request)
    account_id = get_int(request.match_info, "id")
    if caller.id != account_id and not caller.is_admin:
        raise AuthorizationError("Only admins can read other accounts")

    now = utc_now().astimezone(settings.tzinfo)
    year = get_int(request.query, "year", required=False) or now.year
    month = get_int(request.query, "month", required=False) or now.month
    if not 1 <= month <= 12:
        raise InvalidRequestError(f"Invalid month: {month}", field="month")

    status = await ActivationAuditor(request[REQUEST_SESSION]).get_activation_status(
        account_id, year, month
    )
    message = "Cuenta activa" if status.active else "Cuenta inactiva"
    return ok(message, **status.to_dict())
