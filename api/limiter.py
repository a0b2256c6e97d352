"""
============================================================================
FILE: limiter.py
LOCATION: api/limiter.py
============================================================================

PURPOSE:
    Shared SlowAPI limiter for the SemNotes API.

ROLE IN PROJECT:
    Registered on the app in main.py. The student upload and admin
    multi-upload endpoints carry the tighter UPLOAD_LIMIT. Signed-in
    callers are limited per bearer token so students behind one campus
    NAT address do not share a budget.

KEY COMPONENTS:
    - client_key(): bearer token digest, else the remote address
    - limiter: Limiter with RATE_LIMIT_DEFAULT, disabled in test mode
    - UPLOAD_LIMIT: limit string for PDF upload endpoints

DEPENDENCIES:
    - External: slowapi
    - Internal: config (RATE_LIMIT_DEFAULT, RATE_LIMIT_UPLOAD, test mode)

USAGE:
    from api.limiter import limiter, UPLOAD_LIMIT

    @router.post("")
    @limiter.limit(UPLOAD_LIMIT)
    async def upload_note(request: Request, ...):
        ...
============================================================================
"""

import hashlib

from slowapi import Limiter
from slowapi.util import get_remote_address
from starlette.requests import Request

from api import config

UPLOAD_LIMIT = config.RATE_LIMIT_UPLOAD


def client_key(request: Request) -> str:
    header = request.headers.get("authorization", "")
    scheme, _, token = header.partition(" ")
    if scheme.lower() == "bearer" and token:
        return "token:" + hashlib.sha256(token.encode()).hexdigest()[:16]
    return get_remote_address(request)


limiter = Limiter(
    key_func=client_key,
    default_limits=[config.RATE_LIMIT_DEFAULT],
    enabled=not config.SEMNOTES_TEST_MODE,
)
