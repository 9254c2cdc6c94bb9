from starlette.middleware.base import BaseHTTPMiddleware
from fastapi import Request
import logging
import json
import time
from datetime import datetime, timezone

logger = logging.getLogger(__name__)

# Path parameters copied into the access log so reading and facility traffic can be traced
TRACED_PARAMS = ("meter_id", "facility_id")


class LoggingMiddleware(BaseHTTPMiddleware):
	"""Structured JSON access log for every request"""

	async def dispatch(self, request: Request, call_next):
		start_time = time.time()
		response = await call_next(request)
		duration = time.time() - start_time

		route = request.scope.get("route")
		entry = {
			"timestamp": datetime.now(timezone.utc).isoformat(),
			"request_id": getattr(request.state, "request_id", None),
			"method": request.method,
			"path": request.url.path,
			"route": getattr(route, "path", None),
			"query_params": dict(request.query_params),
			"client_host": request.client.host if request.client else None,
			"status_code": response.status_code,
			"duration_seconds": round(duration, 3),
			"user_id": getattr(request.state, "user_id", None),
		}
		path_params = request.scope.get("path_params") or {}
		for name in TRACED_PARAMS:
			if name in path_params:
				entry[name] = str(path_params[name])

		if response.status_code >= 500:
			level = logging.ERROR
		elif response.status_code >= 400:
			level = logging.WARNING
		else:
			level = logging.INFO
		entry["level"] = logging.getLevelName(level)

		logger.log(level, json.dumps(entry))
		return response
