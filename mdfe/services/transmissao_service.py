# mdfe/services/transmissao_service.py
"""
Geração, transmissão e consultas do MDF-e.

Toda operação que chama o motor segue três fases:
  1) transação curta: trava o MDF-e, confere a pré-condição e monta a
     requisição;
  2) chamada ao motor, fora de qualquer transação;
  3) nova transação: trava de novo, reconfere a pré-condição, grava o
     resultado, muda o status e registra o evento.
Falha ou timeout do motor não altera o status. A falha é registrada como
evento FALHA_MOTOR e repassada ao chamador com o texto original do motor.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass

from django.db import transaction
from django.utils import timezone

from commons.documentos import CODIGOS_UF, codigo_uf
from commons.exceptions import MotorFiscalError, TransicaoInvalidaError, ValidacaoError
from mdfe.gateway import (
    ResultadoConsulta,
    ResultadoStatusServico,
    TransmissaoGateway,
    hash_payload,
    montar_payload,
)
from mdfe.models import Mdfe, MdfeStatus, TipoEventoMdfe
from mdfe.services.auditoria_service import registrar_evento, registrar_falha_motor
from mdfe.services.mdfe_service import carregar_para_alteracao, obter_mdfe
from mdfe.services.mdfe_state_machine import MdfeStateMachine

logger = logging.getLogger("mdfe.fiscal")

ERR_NAO_RASCUNHO = "MDFE_NAO_RASCUNHO"
ERR_NAO_GERADO = "MDFE_NAO_GERADO"
ERR_JA_TRANSMITIDO = "MDFE_JA_TRANSMITIDO"
ERR_ALTERADO_DURANTE_OPERACAO = "MDFE_ALTERADO_DURANTE_OPERACAO"
ERR_SEM_DOCUMENTOS = "MDFE_SEM_DOCUMENTOS"
ERR_SEM_RECIBO = "MDFE_SEM_RECIBO"
ERR_SEM_CHAVE = "MDFE_SEM_CHAVE"
ERR_SEM_XML = "MDFE_SEM_XML"
ERR_UF_INVALIDA = "UF_INVALIDA"

STATUS_APOS_TRANSMISSAO = frozenset(
    {
        MdfeStatus.TRANSMITIDO,
        MdfeStatus.AUTORIZADO,
        MdfeStatus.REJEITADO,
        MdfeStatus.CANCELADO,
        MdfeStatus.ENCERRADO,
    }
)


@dataclass
class ConsultaResultado:
    mdfe: Mdfe
    resultado: ResultadoConsulta
    sincronizado: bool


def _gateway(gateway: TransmissaoGateway | None) -> TransmissaoGateway:
    return gateway or TransmissaoGateway()


def ja_transmitido(mdfe: Mdfe) -> bool:
    """
    Recibo ou protocolo existentes bloqueiam nova transmissão, mesmo que o
    status ainda seja GERADO (falha do motor depois de obter recibo).
    """
    return bool(
        mdfe.transmitido
        or mdfe.numero_recibo
        or mdfe.protocolo_autorizacao
        or mdfe.status in STATUS_APOS_TRANSMISSAO
    )


def _log(evento: str, mdfe: Mdfe, user, **extra) -> None:
    logger.info(
        evento,
        extra={
            "event": evento,
            "mdfe_id": str(mdfe.id),
            "status": mdfe.status,
            "user_id": getattr(user, "id", None),
            **extra,
        },
    )


def _aplicar_resultado_sefaz(mdfe: Mdfe, status: str, *, codigo, mensagem, protocolo, chave_acesso, xml_autorizado) -> list[str]:
    """
    Copia o retorno da SEFAZ para o MDF-e e devolve os campos alterados.
    A chave de acesso só é atribuída uma vez, na autorização.
    """
    mdfe.codigo_status_sefaz = codigo
    mdfe.motivo_sefaz = mensagem or ""
    campos = ["codigo_status_sefaz", "motivo_sefaz"]

    if status == MdfeStatus.AUTORIZADO:
        if not mdfe.chave_acesso:
            mdfe.chave_acesso = chave_acesso or mdfe.chave_gerada
            mdfe.codigo_verificador = mdfe.chave_acesso[-1:]
            campos += ["chave_acesso", "codigo_verificador"]
        mdfe.protocolo_autorizacao = protocolo or ""
        mdfe.xml_autorizado = xml_autorizado or ""
        mdfe.data_autorizacao = timezone.now()
        campos += ["protocolo_autorizacao", "xml_autorizado", "data_autorizacao"]

    return campos


# ---------------------------------------------------------------------------
# Geração
# ---------------------------------------------------------------------------


def gerar_mdfe(mdfe_id, *, user=None, gateway: TransmissaoGateway | None = None) -> Mdfe:
    gateway = _gateway(gateway)

    # Fase 1
    with transaction.atomic():
        mdfe = carregar_para_alteracao(mdfe_id)
        if mdfe.status != MdfeStatus.RASCUNHO:
            raise TransicaoInvalidaError(
                f"Somente MDF-e em rascunho pode ser gerado (status atual: {mdfe.status}).",
                code=ERR_NAO_RASCUNHO,
                details={"status": mdfe.status},
            )
        if not mdfe.documentos.exists():
            raise ValidacaoError(
                "MDF-e sem documentos fiscais vinculados.",
                code=ERR_SEM_DOCUMENTOS,
            )
        payload = montar_payload(mdfe)
        versao = mdfe.updated_at

    # Fase 2
    try:
        assinatura = gateway.assinar(payload, mdfe_id=mdfe_id)
    except MotorFiscalError as exc:
        registrar_falha_motor(mdfe_id, "gerar", exc, user=user)
        raise

    # Fase 3
    with transaction.atomic():
        mdfe = carregar_para_alteracao(mdfe_id)
        if mdfe.status != MdfeStatus.RASCUNHO or mdfe.updated_at != versao:
            raise TransicaoInvalidaError(
                "MDF-e foi alterado durante a geração. Gere novamente.",
                code=ERR_ALTERADO_DURANTE_OPERACAO,
                details={"status": mdfe.status},
            )

        status_anterior = mdfe.status
        mdfe.payload_json = payload
        mdfe.payload_hash = hash_payload(payload)
        mdfe.xml_assinado = assinatura.xml_assinado
        mdfe.chave_gerada = assinatura.chave_acesso
        mdfe.codigo_numerico = assinatura.codigo_numerico
        mdfe.codigo_verificador = assinatura.codigo_verificador
        mdfe.data_geracao = timezone.now()
        mdfe.usuario_alteracao = getattr(user, "username", "") or ""
        MdfeStateMachine.para_gerado(mdfe, motivo="geracao", save=False)
        mdfe.save()

        registrar_evento(
            mdfe,
            TipoEventoMdfe.GERACAO,
            status_anterior=status_anterior,
            status_novo=mdfe.status,
            raw={"chave": assinatura.chave_acesso, "payload_hash": mdfe.payload_hash},
            user=user,
        )

    _log("mdfe_gerado", mdfe, user, chave_gerada=mdfe.chave_gerada, outcome="success")
    return obter_mdfe(mdfe.id)


# ---------------------------------------------------------------------------
# Transmissão
# ---------------------------------------------------------------------------


def _exigir_transmissivel(mdfe: Mdfe) -> None:
    if ja_transmitido(mdfe):
        raise TransicaoInvalidaError(
            "MDF-e já transmitido.",
            code=ERR_JA_TRANSMITIDO,
            details={
                "status": mdfe.status,
                "numeroRecibo": mdfe.numero_recibo or None,
                "protocolo": mdfe.protocolo_autorizacao or None,
            },
        )
    if mdfe.status != MdfeStatus.GERADO or not mdfe.xml_assinado:
        raise TransicaoInvalidaError(
            "MDF-e precisa ser gerado antes da transmissão.",
            code=ERR_NAO_GERADO,
            details={"status": mdfe.status},
        )


def _guardar_recibo_da_falha(mdfe_id, exc: MotorFiscalError) -> None:
    """
    Se o motor chegou a obter recibo antes de falhar, o recibo é gravado:
    a próxima transmissão é recusada localmente e o chamador consulta pelo
    recibo.
    """
    detalhes = exc.details if isinstance(exc.details, dict) else {}
    recibo = detalhes.get("numeroRecibo")
    if not recibo:
        return
    with transaction.atomic():
        mdfe = carregar_para_alteracao(mdfe_id)
        if mdfe.numero_recibo:
            return
        mdfe.numero_recibo = str(recibo)
        mdfe.transmitido = True
        mdfe.data_transmissao = timezone.now()
        mdfe.save(update_fields=["numero_recibo", "transmitido", "data_transmissao", "updated_at"])


def transmitir_mdfe(
    mdfe_id,
    *,
    sincrono: bool = True,
    user=None,
    gateway: TransmissaoGateway | None = None,
) -> Mdfe:
    gateway = _gateway(gateway)

    # Fase 1
    with transaction.atomic():
        mdfe = carregar_para_alteracao(mdfe_id)
        _exigir_transmissivel(mdfe)
        xml_assinado = mdfe.xml_assinado

    # Fase 2
    try:
        resultado = gateway.transmitir(xml_assinado, sincrono=sincrono, mdfe_id=mdfe_id)
    except MotorFiscalError as exc:
        _guardar_recibo_da_falha(mdfe_id, exc)
        registrar_falha_motor(mdfe_id, "transmitir", exc, user=user)
        raise

    # Fase 3
    with transaction.atomic():
        mdfe = carregar_para_alteracao(mdfe_id)
        _exigir_transmissivel(mdfe)

        status_anterior = mdfe.status
        mdfe.transmitido = True
        mdfe.data_transmissao = timezone.now()
        mdfe.numero_recibo = resultado.numero_recibo or ""
        _aplicar_resultado_sefaz(
            mdfe,
            resultado.status,
            codigo=resultado.codigo,
            mensagem=resultado.mensagem,
            protocolo=resultado.protocolo,
            chave_acesso=resultado.chave_acesso,
            xml_autorizado=resultado.xml_autorizado,
        )
        MdfeStateMachine.mudar_status(
            mdfe,
            resultado.status,
            motivo="transmissao",
            extra_context={"codigo_sefaz": resultado.codigo},
            save=False,
        )
        mdfe.save()

        registrar_evento(
            mdfe,
            TipoEventoMdfe.TRANSMISSAO,
            status_anterior=status_anterior,
            status_novo=mdfe.status,
            codigo_retorno=resultado.codigo,
            mensagem_retorno=resultado.mensagem,
            protocolo=resultado.protocolo or resultado.numero_recibo,
            raw=resultado.raw,
            user=user,
        )

    _log(
        "mdfe_transmitido",
        mdfe,
        user,
        codigo_sefaz=resultado.codigo,
        sincrono=sincrono,
        outcome="autorizado" if mdfe.status == MdfeStatus.AUTORIZADO else mdfe.status.lower(),
    )
    return obter_mdfe(mdfe.id)


# ---------------------------------------------------------------------------
# Consultas
# ---------------------------------------------------------------------------


def _pendente(mdfe: Mdfe) -> bool:
    """
    Aguardando retorno da SEFAZ: TRANSMITIDO, ou GERADO com recibo
    guardado de uma transmissão que falhou.
    """
    if mdfe.status == MdfeStatus.TRANSMITIDO:
        return True
    return mdfe.status == MdfeStatus.GERADO and bool(mdfe.transmitido or mdfe.numero_recibo)


def _sincronizar(mdfe_id, resultado: ResultadoConsulta, *, user=None) -> ConsultaResultado:
    with transaction.atomic():
        mdfe = carregar_para_alteracao(mdfe_id)
        status_anterior = mdfe.status
        sincronizado = False

        if _pendente(mdfe) and resultado.status in (
            MdfeStatus.AUTORIZADO,
            MdfeStatus.REJEITADO,
            MdfeStatus.TRANSMITIDO,
        ):
            campos = _aplicar_resultado_sefaz(
                mdfe,
                resultado.status,
                codigo=resultado.codigo,
                mensagem=resultado.mensagem,
                protocolo=resultado.protocolo,
                chave_acesso=resultado.chave_acesso,
                xml_autorizado=resultado.xml_autorizado,
            )
            MdfeStateMachine.mudar_status(mdfe, resultado.status, motivo="consulta", save=False)
            mdfe.save(update_fields=[*campos, "status", "updated_at"])
            sincronizado = mdfe.status != status_anterior

        registrar_evento(
            mdfe,
            TipoEventoMdfe.CONSULTA,
            status_anterior=status_anterior,
            status_novo=mdfe.status,
            codigo_retorno=resultado.codigo,
            mensagem_retorno=resultado.mensagem,
            protocolo=resultado.protocolo,
            raw=resultado.raw,
            user=user,
        )

    _log("mdfe_consultado", mdfe, user, codigo_sefaz=resultado.codigo, sincronizado=sincronizado)
    return ConsultaResultado(mdfe=obter_mdfe(mdfe.id), resultado=resultado, sincronizado=sincronizado)


def consultar_recibo(mdfe_id, *, user=None, gateway: TransmissaoGateway | None = None) -> ConsultaResultado:
    gateway = _gateway(gateway)

    mdfe = obter_mdfe(mdfe_id)
    if not mdfe.numero_recibo:
        raise ValidacaoError("MDF-e sem recibo de transmissão.", code=ERR_SEM_RECIBO)

    try:
        resultado = gateway.consultar_por_recibo(mdfe.numero_recibo, mdfe_id=mdfe_id)
    except MotorFiscalError as exc:
        registrar_falha_motor(mdfe_id, "consultar_recibo", exc, user=user)
        raise

    return _sincronizar(mdfe_id, resultado, user=user)


def consultar_situacao(mdfe_id, *, user=None, gateway: TransmissaoGateway | None = None) -> ConsultaResultado:
    gateway = _gateway(gateway)

    mdfe = obter_mdfe(mdfe_id)
    chave = mdfe.chave_referencia
    if not chave:
        raise ValidacaoError("MDF-e ainda não possui chave de acesso.", code=ERR_SEM_CHAVE)

    try:
        resultado = gateway.consultar_por_chave(chave, mdfe_id=mdfe_id)
    except MotorFiscalError as exc:
        registrar_falha_motor(mdfe_id, "consultar_chave", exc, user=user)
        raise

    return _sincronizar(mdfe_id, resultado, user=user)


# ---------------------------------------------------------------------------
# DAMDFE
# ---------------------------------------------------------------------------


def imprimir_mdfe(mdfe_id, *, gateway: TransmissaoGateway | None = None) -> bytes:
    mdfe = obter_mdfe(mdfe_id)
    xml = mdfe.xml_autorizado or mdfe.xml_assinado
    if not xml:
        raise ValidacaoError("MDF-e ainda não foi gerado.", code=ERR_SEM_XML)
    return _gateway(gateway).imprimir(xml, mdfe_id=mdfe.id)


# ---------------------------------------------------------------------------
# Status do serviço
# ---------------------------------------------------------------------------


def consultar_status_servico(uf: str, *, gateway: TransmissaoGateway | None = None) -> ResultadoStatusServico:
    """
    Situação do webservice de autorização da UF. Aceita o código IBGE de
    dois dígitos ou a sigla.
    """
    valor = (uf or "").strip()
    codigo = valor if valor in CODIGOS_UF.values() else codigo_uf(valor)
    if not codigo:
        raise ValidacaoError(
            f"UF inválida: {uf!r}.",
            code=ERR_UF_INVALIDA,
            details={"codigo_uf": uf},
        )

    resultado = _gateway(gateway).status_servico(codigo)
    logger.info(
        "status_servico_consultado",
        extra={
            "event": "status_servico_consultado",
            "codigo_uf": codigo,
            "codigo": resultado.codigo,
            "em_operacao": resultado.em_operacao,
        },
    )
    return resultado
