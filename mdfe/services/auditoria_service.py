# mdfe/services/auditoria_service.py

from __future__ import annotations

import logging
from typing import Any

from django.db import transaction

from commons.exceptions import MotorFiscalError
from mdfe.models import Mdfe, MdfeEvento, TipoEventoMdfe

logger = logging.getLogger("mdfe.fiscal")


def _usuario(user) -> str:
    return getattr(user, "username", "") or ""


def registrar_evento(
    mdfe: Mdfe,
    tipo_evento: str,
    *,
    status_anterior: str = "",
    status_novo: str = "",
    codigo_retorno: Any = "",
    mensagem_retorno: str = "",
    protocolo: str = "",
    justificativa: str = "",
    raw: dict | None = None,
    user=None,
) -> MdfeEvento:
    return MdfeEvento.objects.create(
        mdfe=mdfe,
        tipo_evento=tipo_evento,
        status_anterior=status_anterior or "",
        status_novo=status_novo or "",
        codigo_retorno="" if codigo_retorno is None else str(codigo_retorno),
        mensagem_retorno=mensagem_retorno or "",
        protocolo=protocolo or "",
        justificativa=justificativa or "",
        raw=raw,
        usuario=_usuario(user),
    )


def registrar_falha_motor(mdfe_id, operacao: str, exc: MotorFiscalError, *, user=None) -> None:
    """
    Grava FALHA_MOTOR em transação própria, depois que a operação falhou.
    O status do MDF-e não é alterado.
    """
    detalhes = exc.details if isinstance(exc.details, dict) else {}
    with transaction.atomic():
        mdfe = Mdfe.objects.filter(pk=mdfe_id).first()
        if mdfe is None:
            return
        registrar_evento(
            mdfe,
            TipoEventoMdfe.FALHA_MOTOR,
            status_anterior=mdfe.status,
            status_novo=mdfe.status,
            codigo_retorno=detalhes.get("codigo") or exc.code,
            mensagem_retorno=exc.message,
            raw={"operacao": operacao, **detalhes},
            user=user,
        )

    logger.warning(
        "mdfe_falha_motor",
        extra={
            "event": "mdfe_falha_motor",
            "mdfe_id": str(mdfe_id),
            "operacao": operacao,
            "error_code": exc.code,
            "status": mdfe.status,
            "outcome": "falha_motor",
        },
    )
