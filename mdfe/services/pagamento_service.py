# mdfe/services/pagamento_service.py
"""
Pagamento do frete, vale-pedágio e seguro da carga do MDF-e.

- valor_total_contrato é sempre a soma dos componentes.
- Lista de vales vazia <=> sem_vale_pedagio=True. Os dois são gravados
  juntos, nunca um sem o outro.
- O seguro guarda um snapshot da seguradora, como os demais cadastros.
"""

from __future__ import annotations

import logging
from decimal import Decimal
from typing import Any, Mapping

from django.db import transaction

from cadastros.services import registros
from cadastros.services.registro_service import obter_ativo
from commons.documentos import normalizar_documento
from commons.exceptions import ValidacaoError
from mdfe import dto
from mdfe.models import Mdfe, TipoPagamento, TipoResponsavelSeguro
from mdfe.services import snapshot_service
from mdfe.services.mdfe_service import (
    carregar_para_alteracao,
    exigir_editavel,
    obter_mdfe,
    registrar_alteracao,
)

logger = logging.getLogger("mdfe.fiscal")

ERR_TOTAL_DIVERGENTE = "PAGAMENTO_TOTAL_DIVERGENTE"
ERR_SEGURO_RESPONSAVEL = "SEGURO_RESPONSAVEL_INVALIDO"


def obter_pagamentos(mdfe_id) -> dict:
    mdfe = obter_mdfe(mdfe_id)
    return _pagamentos(mdfe)


def _pagamentos(mdfe: Mdfe) -> dict:
    return {
        "mdfe_id": mdfe.id,
        "componentes": dto.decodificar_componentes(mdfe.componentes_pagamento),
        "vales_pedagio": dto.decodificar_vales(mdfe.vales_pedagio),
        "sem_vale_pedagio": mdfe.sem_vale_pedagio,
        "valor_total_contrato": mdfe.valor_total_contrato,
        "tipo_pagamento": mdfe.tipo_pagamento,
    }


def definir_pagamentos(mdfe_id, dados: Mapping[str, Any], *, user=None) -> dict:
    componentes = [dto.ComponentePagamento.de_dict(c) for c in dados.get("componentes") or []]
    vales = [dto.ValePedagio.de_dict(v) for v in dados.get("vales_pedagio") or []]

    componentes_json = dto.codificar_componentes(componentes)
    vales_json = dto.codificar_vales(vales)
    total = dto.somar_componentes(componentes)

    informado = dados.get("valor_total_contrato")
    if informado is not None and Decimal(str(informado)).quantize(Decimal("0.01")) != total:
        raise ValidacaoError(
            "Valor total do contrato diferente da soma dos componentes.",
            code=ERR_TOTAL_DIVERGENTE,
            details={"valorTotalContrato": str(informado), "somaComponentes": str(total)},
        )

    tipo_pagamento = dados.get("tipo_pagamento") or TipoPagamento.A_VISTA
    if tipo_pagamento not in TipoPagamento.values:
        raise ValidacaoError(f"Tipo de pagamento inválido: {tipo_pagamento!r}.")

    with transaction.atomic():
        mdfe = carregar_para_alteracao(mdfe_id)
        exigir_editavel(mdfe)

        mdfe.componentes_pagamento = componentes_json
        mdfe.valor_total_contrato = total
        mdfe.tipo_pagamento = tipo_pagamento
        mdfe.vales_pedagio = vales_json
        mdfe.sem_vale_pedagio = not vales_json

        registrar_alteracao(
            mdfe,
            user=user,
            campos=[
                "componentes_pagamento",
                "valor_total_contrato",
                "tipo_pagamento",
                "vales_pedagio",
                "sem_vale_pedagio",
            ],
        )

    logger.info(
        "mdfe_pagamentos_definidos",
        extra={
            "event": "mdfe_pagamentos_definidos",
            "mdfe_id": str(mdfe.id),
            "componentes": len(componentes_json),
            "vales": len(vales_json),
            "valor_total_contrato": str(total),
            "user_id": getattr(user, "id", None),
        },
    )
    return _pagamentos(mdfe)


def obter_seguro(mdfe_id) -> Mdfe:
    return obter_mdfe(mdfe_id)


def _responsavel(mdfe: Mdfe, dados: Mapping[str, Any]) -> tuple[int, str, str]:
    """
    Responsável 1 (emitente) usa o documento do snapshot do emitente quando
    nenhum é informado. Responsável 2 (contratante) exige CNPJ ou CPF.
    """
    tipo = dados.get("tipo_responsavel")
    if tipo not in TipoResponsavelSeguro.values:
        raise ValidacaoError(
            "Responsável pelo seguro deve ser 1 (emitente) ou 2 (contratante).",
            code=ERR_SEGURO_RESPONSAVEL,
            details={"tipoResponsavel": tipo},
        )

    cnpj = normalizar_documento(dados.get("cnpj_responsavel")) or ""
    cpf = normalizar_documento(dados.get("cpf_responsavel")) or ""
    if cnpj and cpf:
        raise ValidacaoError("Informe apenas CNPJ ou CPF do responsável pelo seguro.", code=ERR_SEGURO_RESPONSAVEL)

    if not cnpj and not cpf:
        if tipo == TipoResponsavelSeguro.EMITENTE:
            cnpj, cpf = mdfe.emitente_cnpj, mdfe.emitente_cpf
        else:
            cnpj, cpf = mdfe.contratante_cnpj, mdfe.contratante_cpf

    if not cnpj and not cpf:
        raise ValidacaoError("Documento do responsável pelo seguro é obrigatório.", code=ERR_SEGURO_RESPONSAVEL)
    if cnpj and len(cnpj) != 14:
        raise ValidacaoError("CNPJ do responsável deve ter 14 dígitos.", details={"cnpjResponsavel": cnpj})
    if cpf and len(cpf) != 11:
        raise ValidacaoError("CPF do responsável deve ter 11 dígitos.", details={"cpfResponsavel": cpf})
    return tipo, cnpj, cpf


def definir_seguro(mdfe_id, dados: Mapping[str, Any], *, user=None) -> Mdfe:
    seguradora = None
    if dados.get("seguradora_id"):
        seguradora = obter_ativo(registros.SEGURADORA, dados["seguradora_id"], campo="seguradoraId")

    averbacoes = [str(a).strip() for a in dados.get("numeros_averbacao") or [] if str(a or "").strip()]
    numero_apolice = (dados.get("numero_apolice") or "").strip()
    if not numero_apolice and seguradora is not None:
        numero_apolice = seguradora.apolice or ""

    with transaction.atomic():
        mdfe = carregar_para_alteracao(mdfe_id)
        exigir_editavel(mdfe)

        tipo, cnpj, cpf = _responsavel(mdfe, dados)

        mdfe.seguro_tipo_responsavel = tipo
        mdfe.seguro_responsavel_cnpj = cnpj
        mdfe.seguro_responsavel_cpf = cpf
        mdfe.seguradora = seguradora
        mdfe.seguro_numero_apolice = numero_apolice
        mdfe.seguro_averbacoes = averbacoes
        snapshot = snapshot_service.snapshot_seguradora(seguradora)
        for campo, valor in snapshot.items():
            setattr(mdfe, campo, valor)

        registrar_alteracao(
            mdfe,
            user=user,
            campos=[
                "seguro_tipo_responsavel",
                "seguro_responsavel_cnpj",
                "seguro_responsavel_cpf",
                "seguradora",
                "seguro_numero_apolice",
                "seguro_averbacoes",
                *snapshot.keys(),
            ],
        )

    logger.info(
        "mdfe_seguro_definido",
        extra={
            "event": "mdfe_seguro_definido",
            "mdfe_id": str(mdfe.id),
            "seguradora_id": str(seguradora.pk) if seguradora else None,
            "averbacoes": len(averbacoes),
            "user_id": getattr(user, "id", None),
        },
    )
    return mdfe
