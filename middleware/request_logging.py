# Request logging middleware
# Tags every request with an id and logs method, path, status and duration

import time
import json
import uuid
from typing import Optional
from fastapi import Request, Response
from starlette.middleware.base import BaseHTTPMiddleware
import logging

from app.core.logging_config import get_request_logger, log_api_request


def generate_request_id() -> str:
    """Short random id echoed back in the X-Request-ID header"""
    return f'req_{uuid.uuid4().hex[:12]}'


class RequestLoggingMiddleware(BaseHTTPMiddleware):
    """
    Logs every request once it has a response. Unhandled errors are turned
    into a JSON 500 carrying the request id so clients can quote it.
    """

    def __init__(self, app, logger: Optional[logging.LoggerAdapter] = None):
        super().__init__(app)
        self.logger = logger or get_request_logger()

    async def dispatch(self, request: Request, call_next):
        # Reuse the caller's id when a proxy already assigned one
        request_id = request.headers.get('X-Request-ID') or generate_request_id()
        request.state.request_id = request_id
        start = time.time()

        try:
            response = await call_next(request)
        except Exception:
            self.logger.exception(
                f'Unhandled error on {request.method} {request.url.path}',
                extra={'request_id': request_id},
            )
            response = Response(
                content=json.dumps({'error': 'Internal server error', 'request_id': request_id}),
                status_code=500,
                media_type='application/json'
            )

        # Echo the id and record the request
        response.headers['X-Request-ID'] = request_id
        log_api_request(
            self.logger,
            request.method,
            request.url.path,
            status_code=response.status_code,
            response_time_ms=int((time.time() - start) * 1000),
            # Set by the auth dependency once a token is resolved
            user_id=getattr(request.state, 'user_id', None),
            request_id=request_id,
        )
        return response
