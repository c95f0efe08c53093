import logging
import time
import uuid

from fastapi import Request, Response
from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint

logger = logging.getLogger("consultapi")

REQUEST_ID_HEADER = "X-Request-ID"
QUIET_PATHS = frozenset({"/health"})


class LoggingMiddleware(BaseHTTPMiddleware):
    """
    요청/응답 로그와 요청 ID 전파

    클라이언트가 보낸 X-Request-ID를 그대로 쓰고, 없으면 새로 만들어 응답 헤더에 싣는다.
    쿼리 문자열은 로그에 남기지 않는다.
    """

    async def dispatch(
        self, request: Request, call_next: RequestResponseEndpoint
    ) -> Response:
        request_id = request.headers.get(REQUEST_ID_HEADER) or uuid.uuid4().hex
        request.state.request_id = request_id
        path = request.url.path
        prefix = f"[{request_id[:12]}] {request.method} {path}"
        level = logging.DEBUG if path in QUIET_PATHS else logging.INFO

        started = time.perf_counter()
        logger.log(level, f"{prefix} started")
        try:
            response = await call_next(request)
        except Exception:
            logger.exception(f"{prefix} failed before a response was produced")
            raise

        elapsed_ms = (time.perf_counter() - started) * 1000
        response.headers[REQUEST_ID_HEADER] = request_id
        if response.status_code >= 500:
            logger.error(f"{prefix} -> {response.status_code} ({elapsed_ms:.1f}ms)")
        else:
            # 4xx는 상태 충돌, 한도 초과 같은 도메인 결과
            logger.log(level, f"{prefix} -> {response.status_code} ({elapsed_ms:.1f}ms)")
        return response
