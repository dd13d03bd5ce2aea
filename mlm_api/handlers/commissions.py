"""Commission purge handler."""

from aiohttp import web

from mlm_api.handlers.payload import get_int, ok, read_json
from mlm_api.keys import REQUEST_SESSION
from mlm_api.middlewares.auth import require_admin
from mlm_ledger.services.purge_service import CommissionPurgeService
from mlm_ledger.utils.exceptions import InvalidRequestError


async def purge_commissions(request: web.Request) -> web.Response:
    """POST /api/commissions/purge {month, year, mode}."""
    admin = require_admin(request)
    data = await read_json(request)
    year = get_int(data, "year", required=False)
    month = get_int(data, "month", required=False)
    if (year is None) != (month is None):
        raise InvalidRequestError("year and month must be given together")
    mode = data.get("mode", "preview")

    report = await CommissionPurgeService(request[REQUEST_SESSION]).purge(
        year=year, month=month, mode=mode, actor=admin.username
    )
    message = "Vista previa de purga" if mode == "preview" else "Purga ejecutada"
    return ok(message, **report.to_dict())
