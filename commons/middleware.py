import logging
import time
import uuid

from django.utils.deprecation import MiddlewareMixin

logger = logging.getLogger("django.request")


class RequestLogMiddleware(MiddlewareMixin):
    """
    Atribui um request_id (ou reaproveita X-Request-ID) e registra
    método, rota, status e latência de cada requisição.
    """

    def process_request(self, request):
        request.request_id = request.headers.get("X-Request-ID") or str(uuid.uuid4())
        request._start_time = time.monotonic()

    def process_response(self, request, response):
        request_id = getattr(request, "request_id", None)
        if request_id:
            response["X-Request-ID"] = request_id

        inicio = getattr(request, "_start_time", None)
        latencia = int((time.monotonic() - inicio) * 1000) if inicio else None

        logger.info(
            "http_request",
            extra={
                "event": "http_request",
                "request_id": request_id or "-",
                "path": request.path,
                "method": request.method,
                "status": response.status_code,
                "latency_ms": latencia,
            },
        )
        return response
