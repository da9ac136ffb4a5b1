"""
예외 핸들러 - 모든 오류를 {"success": false, "error": {code, message, details}} 형태로 응답

- BaseAPIException: 도메인 오류 코드(POINTS_001, REWARD_002 ...)를 그대로 전달
- HTTPException: 인증 의존성 등에서 발생한 일반 HTTP 오류를 HTTP_<status> 코드로 정규화
- RequestValidationError: VALIDATION_001
- SQLAlchemyError: 서비스에서 변환되지 못한 저장소 오류는 PERSISTENCE_001 (드라이버 메시지 비노출)
- 그 외: INTERNAL_001 + 스택 트레이스 로그
"""

import logging
import traceback
from typing import Any, Dict, Optional

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from sqlalchemy.exc import SQLAlchemyError
from starlette.exceptions import HTTPException as StarletteHTTPException

from .exceptions import BaseAPIException, InternalServerError, PersistenceError

logger = logging.getLogger("findme.errors")


def _describe(request: Request) -> str:
    client = request.client.host if request.client else "-"
    return f"{request.method} {request.url.path} from {client}"


def error_body(
    code: str, message: str, details: Optional[Dict[str, Any]] = None
) -> Dict[str, Any]:
    return {
        "success": False,
        "error": {"code": code, "message": message, "details": details or {}},
    }


async def handle_base_api_exception(request: Request, exc: BaseAPIException):
    line = f"[{exc.error_code}] {_describe(request)} -> {exc.status_code}: {exc.message}"
    if exc.details:
        line = f"{line} {exc.details}"

    if exc.status_code >= 500:
        logger.error(line)
    else:
        logger.warning(line)
    return JSONResponse(
        status_code=exc.status_code,
        content=exc.detail,
        headers=getattr(exc, "headers", None),
    )


async def handle_http_exception(request: Request, exc: StarletteHTTPException):
    code = f"HTTP_{exc.status_code}"
    if exc.status_code >= 500:
        tb_str = "".join(traceback.format_tb(exc.__traceback__))
        logger.error(f"[{code}] {_describe(request)}: {exc.detail}\n{tb_str}")
    else:
        logger.warning(f"[{code}] {_describe(request)}: {exc.detail}")

    return JSONResponse(
        status_code=exc.status_code,
        content=error_body(code, str(exc.detail)),
        headers=getattr(exc, "headers", None),
    )


def jsonable_errors(errors):
    # pydantic v2 ctx에 예외 객체가 들어갈 수 있어 문자열로 변환
    result = []
    for error in errors:
        error = dict(error)
        if "ctx" in error:
            error["ctx"] = {k: str(v) for k, v in error["ctx"].items()}
        result.append(error)
    return result


async def handle_validation_error(request: Request, exc: RequestValidationError):
    errors = jsonable_errors(exc.errors())
    fields = [".".join(str(part) for part in e.get("loc", ())) for e in errors]
    logger.warning(f"[VALIDATION_001] {_describe(request)}: invalid fields {fields}")
    return JSONResponse(
        status_code=422,
        content=error_body("VALIDATION_001", "Validation failed", {"errors": errors}),
    )


async def handle_sqlalchemy_error(request: Request, exc: SQLAlchemyError):
    logger.error(
        f"[PERSISTENCE_001] {_describe(request)}: {type(exc).__name__}: {exc}",
        exc_info=exc,
    )
    persistence = PersistenceError()
    return JSONResponse(status_code=persistence.status_code, content=persistence.detail)


async def handle_unexpected_error(request: Request, exc: Exception):
    tb_str = "".join(traceback.format_exception(type(exc), exc, exc.__traceback__))
    logger.error(
        f"[INTERNAL_001] {_describe(request)}\n"
        f"Exception Type: {type(exc).__name__}\n"
        f"Exception Message: {exc}\n\n"
        f"Full Stack Trace:\n{tb_str}"
    )
    internal = InternalServerError()
    return JSONResponse(status_code=internal.status_code, content=internal.detail)


def register_exception_handlers(app: FastAPI) -> None:
    app.add_exception_handler(BaseAPIException, handle_base_api_exception)
    app.add_exception_handler(StarletteHTTPException, handle_http_exception)
    app.add_exception_handler(RequestValidationError, handle_validation_error)
    app.add_exception_handler(SQLAlchemyError, handle_sqlalchemy_error)
    app.add_exception_handler(Exception, handle_unexpected_error)
