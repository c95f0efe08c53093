import logging
import traceback
from typing import Any, Dict, Optional

from fastapi import Request
from fastapi.responses import JSONResponse

from .exceptions import InternalServerError

logger = logging.getLogger("consultapi")


def _describe(request: Request) -> str:
    request_id = getattr(request.state, "request_id", "-")
    client = request.client.host if request.client else "-"
    return f"[{str(request_id)[:12]}] {request.method} {request.url.path} from {client}"


def error_body(code: str, message: str, details: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
    """모든 오류 응답의 공통 형태"""
    return {
        "success": False,
        "error": {"code": code, "message": message, "details": details or {}},
    }


def _internal_error_response() -> JSONResponse:
    internal = InternalServerError()
    return JSONResponse(status_code=internal.status_code, content=internal.detail)  # type: ignore[arg-type]


async def handle_base_api_exception(request, exc):
    if exc.status_code >= 500:
        logger.error(f"{_describe(request)} -> {exc.status_code} {exc.error_code}: {exc.message}")
    else:
        # 상태 충돌, 한도 초과, 잔액 부족은 정상적인 도메인 결과
        logger.info(f"{_describe(request)} -> {exc.status_code} {exc.error_code}: {exc.message}")
    return JSONResponse(status_code=exc.status_code, content=exc.detail)  # type: ignore[arg-type]


async def handle_http_exception(request, exc):
    message = f"{_describe(request)} -> {exc.status_code}: {exc.detail}"
    if exc.status_code >= 500:
        tb_str = "".join(traceback.format_tb(exc.__traceback__))
        logger.error(f"{message}\n{tb_str}")
    else:
        logger.warning(message)

    if isinstance(exc.detail, dict) and "error" in exc.detail:
        content = exc.detail
    else:
        content = error_body("HTTP_ERROR", str(exc.detail))
    return JSONResponse(
        status_code=exc.status_code, content=content, headers=getattr(exc, "headers", None)
    )


def jsonable_errors(errors):
    """pydantic 오류의 ctx에 담긴 예외 객체를 문자열로 변환"""
    cleaned = []
    for err in errors:
        err = dict(err)
        if "ctx" in err:
            err["ctx"] = {k: str(v) for k, v in err["ctx"].items()}
        cleaned.append(err)
    return cleaned


async def handle_validation_error(request, exc):
    errors = jsonable_errors(exc.errors())
    logger.info(f"{_describe(request)} -> 422: {errors}")
    return JSONResponse(
        status_code=422,
        content=error_body("VALIDATION_001", "Validation failed", {"errors": errors}),
    )


async def handle_database_error(request, exc):
    # 원장 쓰기 실패는 내부 정보 없이 500으로 응답
    logger.exception(f"{_describe(request)} database error: {type(exc).__name__}")
    return _internal_error_response()


async def handle_unexpected_error(request, exc):
    tb_str = "".join(traceback.format_exception(type(exc), exc, exc.__traceback__))
    logger.error(
        f"{_describe(request)} unhandled {type(exc).__name__}: {exc}\n{tb_str}"
    )
    return _internal_error_response()
