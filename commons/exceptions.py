# commons/exceptions.py
"""
Taxonomia de erros da API e handler que aplica o envelope de erro.

Todo erro devolvido pela API segue:

    {"success": false, "message": "...", "errorCode": "...", "details": ...}
"""

from __future__ import annotations

import logging
from typing import Any

from django.core.exceptions import PermissionDenied as DjangoPermissionDenied
from django.core.exceptions import ValidationError as DjangoValidationError
from django.db import DatabaseError
from django.db.models import ProtectedError
from django.http import Http404
from rest_framework import status
from rest_framework.exceptions import (
    APIException,
    AuthenticationFailed,
    NotAuthenticated,
    NotFound,
    PermissionDenied,
    Throttled,
    ValidationError as DRFValidationError,
)
from rest_framework.response import Response
from rest_framework.views import exception_handler as drf_exception_handler
from rest_framework.views import set_rollback

logger = logging.getLogger("mdfe.api")

ERR_NAO_AUTENTICADO = "AUTH_1001"
ERR_SEM_PERMISSAO = "AUTH_1006"
ERR_INTERNO = "ERRO_INTERNO"


class DominioError(APIException):
    """
    Base dos erros de domínio. Carrega um código estável (errorCode),
    uma mensagem legível e detalhes opcionais.
    """

    status_code = status.HTTP_400_BAD_REQUEST
    default_code = "ERRO"
    default_detail = "Erro ao processar a requisição."

    def __init__(
        self,
        message: str | None = None,
        *,
        code: str | None = None,
        details: Any = None,
    ):
        self.message = message or str(self.default_detail)
        self.code = code or self.default_code
        self.details = details
        super().__init__(detail={"code": self.code, "message": self.message})


class ValidacaoError(DominioError):
    status_code = status.HTTP_400_BAD_REQUEST
    default_code = "VALIDACAO"
    default_detail = "Dados inválidos."


class NaoEncontradoError(DominioError):
    status_code = status.HTTP_404_NOT_FOUND
    default_code = "NAO_ENCONTRADO"
    default_detail = "Registro não encontrado."


class ConflitoError(DominioError):
    status_code = status.HTTP_409_CONFLICT
    default_code = "CONFLITO"
    default_detail = "Operação conflita com o estado atual."


class TransicaoInvalidaError(ConflitoError):
    """
    Pré-condição do ciclo de vida do MDF-e violada (ex.: editar autorizado,
    transmitir duas vezes, cancelar rascunho).
    """

    status_code = status.HTTP_400_BAD_REQUEST
    default_code = "TRANSICAO_DE_ESTADO_INVALIDA"
    default_detail = "Operação não permitida no status atual do MDF-e."


class MotorFiscalError(DominioError):
    """
    Falha reportada pelo motor de assinatura/transmissão ou indisponibilidade.
    `details["raw"]` leva o texto original do motor.
    """

    status_code = status.HTTP_502_BAD_GATEWAY
    default_code = "MOTOR_FISCAL"
    default_detail = "Falha na comunicação com o motor fiscal."


class MotorFiscalTimeoutError(MotorFiscalError):
    status_code = status.HTTP_504_GATEWAY_TIMEOUT
    default_code = "MOTOR_FISCAL_TIMEOUT"
    default_detail = (
        "Tempo esgotado aguardando o motor fiscal. Resultado desconhecido: "
        "consulte a situação do MDF-e antes de tentar novamente."
    )


class PersistenciaError(DominioError):
    status_code = status.HTTP_500_INTERNAL_SERVER_ERROR
    default_code = "PERSISTENCIA"
    default_detail = "Falha inesperada ao gravar os dados."


def _envelope(*, message: str, code: str, details: Any = None) -> dict:
    return {
        "success": False,
        "message": message,
        "errorCode": code,
        "details": details,
    }


def _traduzir_excecao(exc: Exception) -> Exception:
    if isinstance(exc, Http404):
        return NaoEncontradoError()
    if isinstance(exc, DjangoPermissionDenied):
        return PermissionDenied()
    if isinstance(exc, DjangoValidationError):
        detalhes = exc.message_dict if hasattr(exc, "error_dict") else exc.messages
        return ValidacaoError(details=detalhes)
    if isinstance(exc, ProtectedError):
        return ConflitoError(
            "Registro possui vínculos e não pode ser excluído.",
            details={"vinculos": sorted({obj._meta.label for obj in exc.protected_objects})},
        )
    if isinstance(exc, DatabaseError):
        return PersistenciaError(details={"erro": str(exc)})
    return exc


def _montar_corpo(exc: APIException, data: Any) -> dict:
    if isinstance(exc, DominioError):
        return _envelope(message=exc.message, code=exc.code, details=exc.details)

    if isinstance(exc, DRFValidationError):
        return _envelope(
            message="Dados inválidos.",
            code=ValidacaoError.default_code,
            details=data,
        )

    detalhe = exc.detail
    if isinstance(detalhe, dict) and "message" in detalhe:
        return _envelope(
            message=str(detalhe["message"]),
            code=str(detalhe.get("code") or exc.default_code),
            details=detalhe.get("details"),
        )

    if isinstance(exc, (NotAuthenticated, AuthenticationFailed)):
        codigo = ERR_NAO_AUTENTICADO
    elif isinstance(exc, PermissionDenied):
        codigo = ERR_SEM_PERMISSAO
    elif isinstance(exc, NotFound):
        codigo = NaoEncontradoError.default_code
    elif isinstance(exc, Throttled):
        codigo = "LIMITE_REQUISICOES"
    else:
        codigo = str(exc.default_code).upper()

    return _envelope(message=str(detalhe), code=codigo)


def envelope_exception_handler(exc: Exception, context: dict) -> Response:
    """
    EXCEPTION_HANDLER do DRF.

    Todo erro é logado com a operação (nome da view) e o id do MDF-e, quando
    a rota tiver `mdfe_id`.
    """
    view = context.get("view")
    kwargs = context.get("kwargs") or {}
    request = context.get("request")

    log_extra = {
        "event": "api_erro",
        "operacao": type(view).__name__ if view is not None else None,
        "mdfe_id": str(kwargs["mdfe_id"]) if kwargs.get("mdfe_id") else None,
        "user_id": getattr(getattr(request, "user", None), "id", None),
        "request_id": getattr(request, "request_id", None),
    }

    exc = _traduzir_excecao(exc)
    response = drf_exception_handler(exc, context)

    if response is None:
        set_rollback()
        logger.exception(
            "api_erro_inesperado",
            extra={**log_extra, "error": str(exc), "outcome": "erro_interno"},
        )
        return Response(
            _envelope(message="Erro interno ao processar a requisição.", code=ERR_INTERNO),
            status=status.HTTP_500_INTERNAL_SERVER_ERROR,
        )

    corpo = _montar_corpo(exc, response.data)
    response.data = corpo

    log_extra.update(
        {
            "status_code": response.status_code,
            "error_code": corpo["errorCode"],
            "detail": corpo["message"],
        }
    )
    if response.status_code >= 500:
        logger.error("api_erro", extra={**log_extra, "outcome": "erro_servidor"})
    else:
        logger.warning("api_erro", extra={**log_extra, "outcome": "erro_cliente"})

    return response
