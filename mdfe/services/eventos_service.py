# mdfe/services/eventos_service.py
"""
Eventos sobre MDF-e autorizado: cancelamento e encerramento.

Mesmo esquema de três fases da transmissão. Das duas tentativas
concorrentes de cancelar o mesmo MDF-e, só uma passa pela reconferência
da fase 3.
"""

from __future__ import annotations

import datetime
import logging

from django.db import transaction
from django.utils import timezone

from commons.exceptions import MotorFiscalError, TransicaoInvalidaError, ValidacaoError
from enderecos.services.municipio_service import resolver_municipio_ativo
from mdfe.gateway import TransmissaoGateway
from mdfe.models import Mdfe, MdfeStatus, TipoEventoMdfe
from mdfe.services.auditoria_service import registrar_evento, registrar_falha_motor
from mdfe.services.mdfe_service import carregar_para_alteracao, obter_mdfe
from mdfe.services.mdfe_state_machine import MdfeStateMachine

logger = logging.getLogger("mdfe.fiscal")

ERR_NAO_AUTORIZADO = "MDFE_NAO_AUTORIZADO"
ERR_JUSTIFICATIVA = "MDFE_JUSTIFICATIVA_INVALIDA"
ERR_DATA_ENCERRAMENTO = "MDFE_DATA_ENCERRAMENTO_INVALIDA"

JUSTIFICATIVA_MIN = 15
JUSTIFICATIVA_MAX = 255


def _exigir_autorizado(mdfe: Mdfe) -> None:
    if mdfe.status != MdfeStatus.AUTORIZADO:
        raise TransicaoInvalidaError(
            "MDF-e ainda não autorizado.",
            code=ERR_NAO_AUTORIZADO,
            details={"status": mdfe.status},
        )


def _validar_justificativa(justificativa: str | None) -> str:
    texto = (justificativa or "").strip()
    if len(texto) < JUSTIFICATIVA_MIN:
        raise ValidacaoError(
            f"Justificativa deve ter no mínimo {JUSTIFICATIVA_MIN} caracteres.",
            code=ERR_JUSTIFICATIVA,
            details={"tamanho": len(texto)},
        )
    if len(texto) > JUSTIFICATIVA_MAX:
        raise ValidacaoError(
            f"Justificativa deve ter no máximo {JUSTIFICATIVA_MAX} caracteres.",
            code=ERR_JUSTIFICATIVA,
            details={"tamanho": len(texto)},
        )
    return texto


def cancelar_mdfe(
    mdfe_id,
    justificativa: str,
    *,
    user=None,
    gateway: TransmissaoGateway | None = None,
) -> Mdfe:
    justificativa = _validar_justificativa(justificativa)
    gateway = gateway or TransmissaoGateway()

    with transaction.atomic():
        mdfe = carregar_para_alteracao(mdfe_id)
        _exigir_autorizado(mdfe)

    try:
        resultado = gateway.cancelar(mdfe, justificativa)
    except MotorFiscalError as exc:
        registrar_falha_motor(mdfe_id, "cancelar", exc, user=user)
        raise

    with transaction.atomic():
        mdfe = carregar_para_alteracao(mdfe_id)
        _exigir_autorizado(mdfe)

        status_anterior = mdfe.status
        mdfe.data_cancelamento = timezone.now()
        mdfe.codigo_status_sefaz = resultado.codigo
        mdfe.motivo_sefaz = resultado.mensagem
        mdfe.usuario_alteracao = getattr(user, "username", "") or ""
        MdfeStateMachine.para_cancelado(mdfe, motivo="cancelamento", save=False)
        mdfe.save()

        registrar_evento(
            mdfe,
            TipoEventoMdfe.CANCELAMENTO,
            status_anterior=status_anterior,
            status_novo=mdfe.status,
            codigo_retorno=resultado.codigo,
            mensagem_retorno=resultado.mensagem,
            protocolo=resultado.protocolo,
            justificativa=justificativa,
            raw=resultado.raw,
            user=user,
        )

    logger.info(
        "mdfe_cancelado",
        extra={
            "event": "mdfe_cancelado",
            "mdfe_id": str(mdfe.id),
            "protocolo": resultado.protocolo,
            "user_id": getattr(user, "id", None),
            "outcome": "success",
        },
    )
    return obter_mdfe(mdfe.id)


def encerrar_mdfe(
    mdfe_id,
    municipio_descarga: str,
    data_encerramento: datetime.date | None = None,
    *,
    user=None,
    gateway: TransmissaoGateway | None = None,
) -> Mdfe:
    if not (municipio_descarga or "").strip():
        raise ValidacaoError("Município de descarga é obrigatório para o encerramento.")

    gateway = gateway or TransmissaoGateway()
    data_encerramento = data_encerramento or timezone.localdate()
    if data_encerramento > timezone.localdate():
        raise ValidacaoError(
            "Data de encerramento não pode ser futura.",
            code=ERR_DATA_ENCERRAMENTO,
            details={"dataEncerramento": data_encerramento.isoformat()},
        )

    obter_mdfe(mdfe_id)
    municipio = resolver_municipio_ativo(municipio_descarga)

    with transaction.atomic():
        mdfe = carregar_para_alteracao(mdfe_id)
        _exigir_autorizado(mdfe)
        if mdfe.data_autorizacao and data_encerramento < timezone.localdate(mdfe.data_autorizacao):
            raise ValidacaoError(
                "Data de encerramento anterior à autorização do MDF-e.",
                code=ERR_DATA_ENCERRAMENTO,
                details={"dataEncerramento": data_encerramento.isoformat()},
            )

    try:
        resultado = gateway.encerrar(
            mdfe,
            codigo_uf=municipio.codigo_uf,
            codigo_municipio=municipio.codigo_ibge,
            data_encerramento=data_encerramento,
        )
    except MotorFiscalError as exc:
        registrar_falha_motor(mdfe_id, "encerrar", exc, user=user)
        raise

    with transaction.atomic():
        mdfe = carregar_para_alteracao(mdfe_id)
        _exigir_autorizado(mdfe)

        status_anterior = mdfe.status
        mdfe.data_encerramento = data_encerramento
        mdfe.municipio_encerramento = municipio.codigo_ibge
        mdfe.codigo_status_sefaz = resultado.codigo
        mdfe.motivo_sefaz = resultado.mensagem
        mdfe.usuario_alteracao = getattr(user, "username", "") or ""
        MdfeStateMachine.para_encerrado(mdfe, motivo="encerramento", save=False)
        mdfe.save()

        registrar_evento(
            mdfe,
            TipoEventoMdfe.ENCERRAMENTO,
            status_anterior=status_anterior,
            status_novo=mdfe.status,
            codigo_retorno=resultado.codigo,
            mensagem_retorno=resultado.mensagem,
            protocolo=resultado.protocolo,
            raw=resultado.raw,
            user=user,
        )

    logger.info(
        "mdfe_encerrado",
        extra={
            "event": "mdfe_encerrado",
            "mdfe_id": str(mdfe.id),
            "municipio": municipio.codigo_ibge,
            "data_encerramento": data_encerramento.isoformat(),
            "user_id": getattr(user, "id", None),
            "outcome": "success",
        },
    )
    return obter_mdfe(mdfe.id)


def listar_eventos(mdfe_id):
    mdfe = obter_mdfe(mdfe_id)
    return mdfe.eventos.order_by("created_at")
