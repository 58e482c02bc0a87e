"""
Prometheus metrics endpoint for monitoring infrastructure.

Public, following standard Prometheus practice. Exposes the service
operation, admission, denial and audit metrics from the private registry.
"""

from fastapi import APIRouter, Response

from app.monitoring.prometheus_metrics import prometheus_metrics

router = APIRouter(tags=["monitoring"])


@router.get("/metrics/prometheus", include_in_schema=False)
def prometheus_scrape() -> Response:
    return Response(
        content=prometheus_metrics.get_metrics(),
        media_type=prometheus_metrics.get_content_type(),
    )
