# mdfe/engine_factory.py
"""
Ponto único de escolha do client do motor fiscal.

O backend vem de settings.MDFE_ENGINE["BACKEND"]:
  - "mock"          -> MockMdfeEngineClient (padrão em dev/testes)
  - "mock-falha"    -> MockMdfeEngineClientAlwaysFail
  - "mock-timeout"  -> MockMdfeEngineClientTimeout
  - "http"          -> HttpMdfeEngineClient (URL/TIMEOUT/TOKEN do mesmo dict)
"""

from __future__ import annotations

from typing import Type

from django.conf import settings
from django.core.exceptions import ImproperlyConfigured

from mdfe.engine_clients import (
    HttpMdfeEngineClient,
    MdfeEngineProtocol,
    MockMdfeEngineClient,
    MockMdfeEngineClientAlwaysFail,
    MockMdfeEngineClientTimeout,
)

CLIENT_CLASS_BY_BACKEND: dict[str, Type] = {
    "mock": MockMdfeEngineClient,
    "mock-falha": MockMdfeEngineClientAlwaysFail,
    "mock-timeout": MockMdfeEngineClientTimeout,
}


def _config() -> dict:
    return dict(getattr(settings, "MDFE_ENGINE", None) or {})


def get_mdfe_engine_client(backend: str | None = None) -> MdfeEngineProtocol:
    config = _config()
    backend = (backend or config.get("BACKEND") or "mock").strip().lower()

    if backend == "http":
        url = config.get("URL")
        if not url:
            raise ImproperlyConfigured("MDFE_ENGINE['URL'] é obrigatório para o backend http.")
        return HttpMdfeEngineClient(
            base_url=url,
            timeout=float(config.get("TIMEOUT") or 30),
            token=config.get("TOKEN") or "",
        )

    try:
        client_cls = CLIENT_CLASS_BY_BACKEND[backend]
    except KeyError:
        raise ImproperlyConfigured(f"Backend de motor fiscal desconhecido: {backend!r}.")

    return client_cls()
