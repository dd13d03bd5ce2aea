"""
Request payload helpers shared by handlers.
"""

from decimal import Decimal, InvalidOperation
from typing import Any

from aiohttp import web

from mlm_ledger.utils.exceptions import InvalidRequestError


async def read_json(request: web.Request) -> dict[str, Any]:
    """
    Parse the JSON body of a request.

    Raises:
        InvalidRequestError: Body is not a JSON object
    """
    if not request.can_read_body:
        return {}
    try:
        data = await request.json()
    except ValueError as e:
        raise InvalidRequestError("Request body must be valid JSON") from e
    if not isinstance(data, dict):
        raise InvalidRequestError("Request body must be a JSON object")
    return data


def get_int(data: dict[str, Any], key: str, required: bool = True) -> int | None:
    """
    Read an integer field.

    Accepts ints and digit strings; bools are rejected.

    Raises:
        InvalidRequestError: Missing (when required) or not an integer
    """
    value = data.get(key)
    if value is None or value == "":
        if required:
            raise InvalidRequestError(f"{key} is required", field=key)
        return None
    if isinstance(value, bool):
        raise InvalidRequestError(f"{key} must be an integer", field=key)
    if isinstance(value, int):
        return value
    if isinstance(value, str) and value.strip().lstrip("-").isdigit():
        return int(value.strip())
    raise InvalidRequestError(f"{key} must be an integer", field=key)


def get_decimal(data: dict[str, Any], key: str) -> Decimal | None:
    """
    Read an optional decimal field.

    Raises:
        InvalidRequestError: Value is not numeric
    """
    value = data.get(key)
    if value is None or value == "":
        return None
    if isinstance(value, bool):
        raise InvalidRequestError(f"{key} must be a number", field=key)
    try:
        return Decimal(str(value))
    except InvalidOperation as e:
        raise InvalidRequestError(f"{key} must be a number", field=key) from e


def ok(message: str, **payload: Any) -> web.Response:
    """Successful JSON response."""
    return web.json_response({"success": True, "message": message, **payload})
