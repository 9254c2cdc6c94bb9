from prometheus_client import Counter, Histogram, Gauge, generate_latest
from fastapi import APIRouter
from fastapi.responses import PlainTextResponse

router = APIRouter()

request_count = Counter(
	'http_requests_total',
	'Total HTTP requests',
	['method', 'endpoint', 'status']
)

request_duration = Histogram(
	'http_request_duration_seconds',
	'HTTP request duration',
	['method', 'endpoint'],
	buckets=(0.01, 0.05, 0.1, 0.25, 0.5, 1.0, 2.5, 5.0, 10.0)
)

active_requests = Gauge(
	'http_requests_active',
	'Number of active HTTP requests'
)

readings_submitted = Counter(
	'meter_readings_submitted_total',
	'Meter readings recorded',
	['kind']
)

app_errors = Counter(
	'app_errors_total',
	'Domain errors returned to API callers',
	['kind']
)

startup_checks_failed = Gauge(
	'startup_checks_failed',
	'Number of failed startup health checks'
)


@router.get("/metrics", response_class=PlainTextResponse)
async def metrics():
	"""Prometheus metrics endpoint"""
	return generate_latest()
