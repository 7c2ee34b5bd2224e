import logging
import time
from fastapi import Request, Response
from fastapi import HTTPException
from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint

from hubwallet.core.identity import PLAYER_ID_HEADER

logger = logging.getLogger("hubwallet")


class LoggingMiddleware(BaseHTTPMiddleware):
    """요청/응답 로깅 - 플레이어 ID 와 처리 시간을 함께 남긴다"""

    async def dispatch(
        self, request: Request, call_next: RequestResponseEndpoint
    ) -> Response:
        start = time.perf_counter()
        method = request.method
        path = request.url.path
        client = request.client.host if request.client else "-"
        player = request.headers.get(PLAYER_ID_HEADER, "-")

        logger.info(f"[Request] {method} {path} from {client} player={player}")
        try:
            response = await call_next(request)
        except HTTPException as http_exc:
            level = logging.ERROR if http_exc.status_code >= 500 else logging.WARNING
            logger.log(
                level,
                f"[HTTPException] {method} {path} player={player} -> {http_exc.status_code}: {http_exc.detail}",
            )
            raise
        except Exception:
            logger.exception(f"[Unhandled Error] {method} {path} player={player}")
            raise

        duration_ms = (time.perf_counter() - start) * 1000
        response.headers["X-Process-Time-Ms"] = f"{duration_ms:.1f}"
        message = (
            f"[Response] {method} {path} player={player} "
            f"-> {response.status_code} in {duration_ms:.1f}ms"
        )
        if response.status_code >= 500:
            logger.error(message)
        elif response.status_code >= 400:
            logger.warning(message)
        else:
            logger.info(message)
        return response
