import logging

from fastapi import Request
from starlette.middleware.base import BaseHTTPMiddleware

from app.monitoring.metrics import request_count, request_duration, active_requests
import time

logger = logging.getLogger(__name__)

UNTRACKED_PATHS = {"/internal/metrics", "/health"}
SLOW_REQUEST_SECONDS = 1.0


def _endpoint_label(request: Request) -> str:
	# Use the route template so /meters/{meter_id} stays a single series
	route = request.scope.get("route")
	return getattr(route, "path", request.url.path)


class MonitoringMiddleware(BaseHTTPMiddleware):
	"""Track request metrics for Prometheus"""

	async def dispatch(self, request: Request, call_next):
		# Liveness probes and the scrape itself are not tracked
		if request.url.path in UNTRACKED_PATHS:
			return await call_next(request)

		# Track active requests
		active_requests.inc()

		# Start timer
		start_time = time.time()

		try:
			# Process request
			response = await call_next(request)

			# Record metrics
			duration = time.time() - start_time
			endpoint = _endpoint_label(request)

			request_count.labels(
				method=request.method,
				endpoint=endpoint,
				status=response.status_code
			).inc()

			request_duration.labels(
				method=request.method,
				endpoint=endpoint
			).observe(duration)

			# Log slow requests
			if duration > SLOW_REQUEST_SECONDS:
				logger.warning(
					f"Slow request: {request.method} {request.url.path} "
					f"took {duration:.2f}s"
				)

			return response

		finally:
			active_requests.dec()
