# iguanaflow/authz_errors.py
from __future__ import annotations

from fastapi import Request
from fastapi.responses import JSONResponse, RedirectResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

# 402 detail codes that send a browser to the pricing page
UPGRADE_CODES = frozenset({"PREMIUM_REQUIRED", "SPORT_PATH_REQUIRED", "CHALLENGE_PURCHASE_REQUIRED"})


def _wants_html(request: Request) -> bool:
    accept = (request.headers.get("accept") or "").lower()
    return "text/html" in accept


def _detail_code(exc: StarletteHTTPException) -> str | None:
    detail = getattr(exc, "detail", None)
    if isinstance(detail, dict):
        code = detail.get("code")
        if isinstance(code, str):
            return code
    return None


async def http_exception_handler(request: Request, exc: StarletteHTTPException):
    headers = getattr(exc, "headers", None)

    # Unauthenticated -> login page in browser
    if exc.status_code == 401:
        if _wants_html(request):
            return RedirectResponse(url="/login", status_code=303)
        return JSONResponse(status_code=401, content={"detail": exc.detail}, headers=headers)

    # Payment required -> pricing page in browser
    if exc.status_code == 402:
        if _wants_html(request) and _detail_code(exc) in UPGRADE_CODES:
            return RedirectResponse(url="/pricing", status_code=303)
        return JSONResponse(status_code=402, content={"detail": exc.detail})

    return JSONResponse(status_code=exc.status_code, content={"detail": exc.detail}, headers=headers)
