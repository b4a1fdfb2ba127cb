import time
import logging
from fastapi import Request

logger = logging.getLogger("access")


async def request_logging_middleware(request: Request, call_next):
    start_time = time.perf_counter()

    response = await call_next(request)

    process_time = (time.perf_counter() - start_time) * 1000

    # Set by get_current_actor on authenticated routes
    actor = getattr(request.state, "user", None)

    logger.info(
        "",
        extra={
            "client_addr": request.client.host if request.client else "unknown",
            "actor": actor.username if actor else "-",
            "method": request.method,
            "path": request.url.path,
            "query": request.url.query or "-",
            "status_code": response.status_code,
            "process_time_ms": round(process_time, 2),
        },
    )

    return response
