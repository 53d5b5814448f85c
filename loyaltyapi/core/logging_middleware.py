import logging
import time
import uuid

from fastapi import Request, Response
from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint

logger = logging.getLogger("loyaltyapi.access")

REQUEST_ID_HEADER = "X-Request-ID"


class LoggingMiddleware(BaseHTTPMiddleware):
    """요청/응답 로깅 + 요청 ID 전파

    클라이언트가 X-Request-ID 를 보내면 그대로 쓰고, 없으면 새로 발급해
    응답 헤더에 돌려준다. 도메인 예외는 exception handler 가 응답으로 바꾸므로
    여기서는 상태 코드 기준으로만 로그 레벨을 정한다.
    """

    async def dispatch(
        self, request: Request, call_next: RequestResponseEndpoint
    ) -> Response:
        request_id = request.headers.get(REQUEST_ID_HEADER) or uuid.uuid4().hex
        request.state.request_id = request_id
        started = time.perf_counter()
        target = f"{request.method} {request.url.path}"

        try:
            response = await call_next(request)
        except Exception:
            logger.exception(f"[{request_id}] {target} failed")
            raise

        elapsed_ms = (time.perf_counter() - started) * 1000
        response.headers[REQUEST_ID_HEADER] = request_id

        if response.status_code >= 500:
            level = logging.ERROR
        elif response.status_code >= 400:
            level = logging.WARNING
        else:
            level = logging.INFO
        logger.log(
            level,
            f"[{request_id}] {target} -> {response.status_code} ({elapsed_ms:.1f}ms)",
        )
        return response
