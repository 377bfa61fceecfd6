"""Session lifecycle endpoints: start, end, inspect, and change input language."""

from __future__ import annotations

import logging
from typing import Annotated, Any

from fastapi import APIRouter, Body, Depends, Query, status
from fastapi.responses import JSONResponse

from .lifecycle import SessionController
from .service_deps import get_controller

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/session", tags=["Sessions"])

CodeQuery = Annotated[
    str | None,
    Query(description="Session code (case-insensitive)", examples=["ABCD"]),
]
JsonBody = Annotated[dict[str, Any] | None, Body()]


def _truthy(value: Any) -> bool:
    if isinstance(value, str):
        return value.strip().lower() in ("1", "true", "yes", "on")
    return bool(value)


@router.post(
    "",
    summary="Start a session",
    description=(
        "Create a broadcast session. The code is generated unless one is supplied; "
        "a supplied code that is already live returns 409 unless replace=true."
    ),
    status_code=status.HTTP_201_CREATED,
)
async def start_session(
    controller: Annotated[SessionController, Depends(get_controller)],
    code: CodeQuery = None,
    input_lang: Annotated[str | None, Query(alias="inputLang")] = None,
    replace: Annotated[bool, Query()] = False,
    payload: JsonBody = None,
) -> JSONResponse:
    """
    Start a session.

    Parameters may be given as query parameters or in a JSON body
    (``{"code", "inputLang", "replace"}``); the body wins.

    Returns:
        201 with ``{code, inputLang, createdAt, expiresAt, ...}``

    Raises:
        400: Malformed code
        409: Code already live and replace not requested
        503: Store unavailable
    """
    body = payload or {}
    meta = await controller.start(
        code=body.get("code") or code,
        input_lang=body.get("inputLang") or input_lang,
        replace=_truthy(body.get("replace", replace)),
    )
    return JSONResponse(status_code=status.HTTP_201_CREATED, content=meta.to_dict())


@router.delete("", summary="End a session")
async def end_session(
    controller: Annotated[SessionController, Depends(get_controller)],
    code: CodeQuery = None,
) -> dict[str, bool]:
    """End a session. Attached listeners receive ``end`` on their next poll."""
    await controller.stop(code or "")
    return {"ok": True}


@router.get("", summary="Get session metadata")
async def get_session(
    controller: Annotated[SessionController, Depends(get_controller)],
    code: CodeQuery = None,
) -> dict[str, Any]:
    meta = await controller.get(code or "")
    return meta.to_dict()


@router.get("/lang", summary="Get the session input language")
async def get_input_lang(
    controller: Annotated[SessionController, Depends(get_controller)],
    code: CodeQuery = None,
) -> dict[str, str]:
    lang = await controller.get_language(code or "")
    return {"code": (code or "").strip().upper(), "inputLang": lang}


@router.put("/lang", summary="Set the session input language")
async def set_input_lang(
    controller: Annotated[SessionController, Depends(get_controller)],
    code: CodeQuery = None,
    input_lang: Annotated[str | None, Query(alias="inputLang")] = None,
    payload: JsonBody = None,
) -> dict[str, Any]:
    """Change the operator's input language mid-session ("AUTO" when blank)."""
    body = payload or {}
    lang = await controller.change_language(code or "", body.get("inputLang") or input_lang)
    return {"ok": True, "code": (code or "").strip().upper(), "inputLang": lang}
