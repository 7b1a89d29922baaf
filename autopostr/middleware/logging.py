# autopostr/middleware/logging.py
import time
import uuid

import structlog
from starlette.datastructures import Headers, MutableHeaders
from starlette.types import ASGIApp, Message, Receive, Scope, Send
from structlog.contextvars import bound_contextvars

logger = structlog.get_logger("http")


class RequestIdMiddleware:
    """Every log line emitted while serving a request carries its request id; the id is echoed back as a header."""

    def __init__(self, app: ASGIApp, header_name: str = "X-Request-ID"):
        self.app = app
        self.header_name = header_name

    async def __call__(self, scope: Scope, receive: Receive, send: Send) -> None:
        if scope["type"] != "http":
            return await self.app(scope, receive, send)

        request_id = Headers(scope=scope).get(self.header_name) or uuid.uuid4().hex
        response_status = {"code": 500}

        async def tagged_send(message: Message) -> None:
            if message["type"] == "http.response.start":
                response_status["code"] = message["status"]
                MutableHeaders(scope=message)[self.header_name] = request_id
            await send(message)

        started = time.perf_counter()
        with bound_contextvars(request_id=request_id, method=scope["method"], path=scope["path"]):
            try:
                await self.app(scope, receive, tagged_send)
            except Exception:
                logger.exception("http_request_crashed")
                raise
            finally:
                elapsed_ms = round((time.perf_counter() - started) * 1000, 1)
                log = logger.warning if response_status["code"] >= 500 else logger.info
                log("http_request_finished", status_code=response_status["code"], duration_ms=elapsed_ms)
