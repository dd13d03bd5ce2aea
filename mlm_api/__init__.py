"""
HTTP API for the commission ledger (aiohttp).
"""
