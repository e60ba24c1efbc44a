"""Run timing middleware — logs monitored requests to JSONL."""

import json
import logging
import time
from pathlib import Path

from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.requests import Request
from starlette.responses import Response

from run_monitor.config import settings

logger = logging.getLogger(__name__)

LOG_DIR = Path(settings.log_dir)
LOG_FILE_NAME = "run_timing.jsonl"

TIMED_PATHS = {"/chat", "/runs/monitor"}


class RunTimingMiddleware(BaseHTTPMiddleware):
    """Logs wall-clock time of requests that drive a run to a JSONL file."""

    async def dispatch(
        self, request: Request, call_next: RequestResponseEndpoint
    ) -> Response:
        if request.url.path not in TIMED_PATHS:
            response: Response = await call_next(request)
            return response

        start = time.monotonic()
        response = await call_next(request)
        elapsed = time.monotonic() - start

        entry = {
            "timestamp": time.time(),
            "path": request.url.path,
            "method": request.method,
            "elapsed_seconds": round(elapsed, 3),
            "status_code": response.status_code,
        }

        try:
            LOG_DIR.mkdir(parents=True, exist_ok=True)
            with open(LOG_DIR / LOG_FILE_NAME, "a") as f:
                f.write(json.dumps(entry) + "\n")
        except OSError:
            logger.warning("Could not write run timing entry")

        return response
