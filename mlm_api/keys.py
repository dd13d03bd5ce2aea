"""
Application and request keys shared by middlewares and handlers.
"""

from aiohttp import web
from sqlalchemy.ext.asyncio import async_sessionmaker


SESSION_MAKER_KEY = web.AppKey("session_maker", async_sessionmaker)
SECRET_KEY = web.AppKey("secret_key", str)

# Per-request values (request[...])
REQUEST_SESSION = "session"
REQUEST_ACCOUNT = "account"
