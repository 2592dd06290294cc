# mdfe/services/documentos_service.py
"""
Documentos fiscais vinculados ao MDF-e, agrupados por município de descarga.

definir_documentos substitui o conjunto inteiro:
  1) trava o MDF-e e exige status editável;
  2) valida todo o payload (chaves, duplicidades, produtos perigosos,
     entrega parcial) e resolve os municípios;
  3) confere se alguma chave já pertence a outro MDF-e;
  4) apaga o conjunto anterior e insere o novo, na mesma transação.
Qualquer erro antes do passo 4 deixa os documentos anteriores intactos.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from decimal import Decimal
from typing import Any, Iterable, Mapping

from django.db import IntegrityError, transaction

from commons.documentos import chave_valida, somente_digitos
from commons.exceptions import ConflitoError, ValidacaoError
from enderecos.services.municipio_service import resolver_municipios_ativos
from mdfe.models import (
    Mdfe,
    MdfeDocumentoFiscal,
    MdfeLacreRodoviario,
    MdfeMunicipioDescarga,
    MdfeProdutoPerigoso,
    MdfeUnidadeCarga,
    MdfeUnidadeTransporte,
    TipoDocumentoFiscal,
)
from mdfe.services.mdfe_service import (
    carregar_para_alteracao,
    exigir_editavel,
    obter_mdfe,
    registrar_alteracao,
)

logger = logging.getLogger("mdfe.fiscal")

ERR_CHAVE_INVALIDA = "DOCUMENTO_CHAVE_INVALIDA"
ERR_CHAVE_REPETIDA = "DOCUMENTO_CHAVE_REPETIDA"
ERR_CHAVE_EM_USO = "DOCUMENTO_CHAVE_EM_USO"
ERR_PRODUTO_PERIGOSO_INCOMPLETO = "PRODUTO_PERIGOSO_INCOMPLETO"
ERR_ENTREGA_PARCIAL = "ENTREGA_PARCIAL_INVALIDA"

# chave no payload -> tipo do documento
GRUPOS_DOCUMENTO = {
    "documentos_cte": TipoDocumentoFiscal.CTE,
    "documentos_nfe": TipoDocumentoFiscal.NFE,
    "documentos_mdfe_transp": TipoDocumentoFiscal.MDFE,
}

CAMPOS_PERIGOSO_OBRIGATORIOS = ("numero_onu", "classe_risco", "quantidade_total")


@dataclass
class DocumentosResumo:
    mdfe: Mdfe
    municipios_descarga: list
    unidades_transporte: list
    lacres_rodoviarios: list[str]
    totais: dict[str, int] = field(default_factory=dict)


# ---------------------------------------------------------------------------
# Normalização e validação
# ---------------------------------------------------------------------------


def _lacres(valores: Iterable | None) -> list[str]:
    return [str(v).strip() for v in valores or [] if str(v or "").strip()]


def _produtos_perigosos(itens: Iterable[Mapping] | None, chave: str) -> list[dict]:
    """
    nº ONU, classe de risco e quantidade: os três juntos ou nenhum.
    Entrada totalmente vazia é descartada.
    """
    produtos = []
    for item in itens or []:
        produto = {k: str(v).strip() for k, v in item.items() if v is not None}
        preenchidos = [c for c in CAMPOS_PERIGOSO_OBRIGATORIOS if produto.get(c)]
        if not preenchidos and not any(produto.values()):
            continue
        if len(preenchidos) != len(CAMPOS_PERIGOSO_OBRIGATORIOS):
            faltando = [c for c in CAMPOS_PERIGOSO_OBRIGATORIOS if not produto.get(c)]
            raise ValidacaoError(
                "Produto perigoso incompleto: informe nº ONU, classe de risco e quantidade total.",
                code=ERR_PRODUTO_PERIGOSO_INCOMPLETO,
                details={"chave": chave, "faltando": faltando},
            )
        produtos.append(produto)
    return produtos


def _entrega_parcial(dados: Mapping | None, chave: str) -> tuple[Decimal | None, Decimal | None]:
    if not dados:
        return None, None
    total = dados.get("quantidade_total")
    parcial = dados.get("quantidade_parcial")
    if total is not None and parcial is not None and Decimal(str(parcial)) > Decimal(str(total)):
        raise ValidacaoError(
            "Quantidade parcial maior que a quantidade total na entrega parcial.",
            code=ERR_ENTREGA_PARCIAL,
            details={"chave": chave, "quantidadeTotal": str(total), "quantidadeParcial": str(parcial)},
        )
    return total, parcial


def _unidades(itens: Iterable[Mapping] | None) -> list[dict]:
    unidades = []
    for item in itens or []:
        unidade = dict(item)
        unidade["lacres"] = _lacres(item.get("lacres"))
        unidade["unidades_carga"] = [
            {**dict(carga), "lacres": _lacres(carga.get("lacres"))}
            for carga in item.get("unidades_carga") or []
        ]
        unidades.append(unidade)
    return unidades


def _normalizar_payload(dados: Mapping[str, Any]) -> dict:
    """
    Valida e normaliza tudo sem tocar no banco (exceto municípios).
    """
    chaves_vistas: set[str] = set()
    grupos = []

    for grupo in dados.get("municipios_descarga") or []:
        codigo = somente_digitos(grupo.get("codigo_ibge"))
        documentos = []
        for campo, tipo in GRUPOS_DOCUMENTO.items():
            for item in grupo.get(campo) or []:
                chave = somente_digitos(item.get("chave"))
                if not chave_valida(chave):
                    raise ValidacaoError(
                        "Chave de acesso deve ter 44 dígitos.",
                        code=ERR_CHAVE_INVALIDA,
                        details={"chave": item.get("chave")},
                    )
                if chave in chaves_vistas:
                    raise ValidacaoError(
                        "Chave de acesso repetida no mesmo envio.",
                        code=ERR_CHAVE_REPETIDA,
                        details={"chave": chave},
                    )
                chaves_vistas.add(chave)

                total, parcial = _entrega_parcial(item.get("entrega_parcial"), chave)
                documentos.append(
                    {
                        "tipo": tipo,
                        "chave": chave,
                        "segundo_codigo_barras": item.get("segundo_codigo_barras") or "",
                        "indicador_reentrega": bool(item.get("indicador_reentrega")),
                        "indicador_prestacao_parcial": bool(item.get("indicador_prestacao_parcial")),
                        "pin_suframa": item.get("pin_suframa") or "",
                        "data_prevista_entrega": item.get("data_prevista_entrega"),
                        "quantidade_rateada": item.get("quantidade_rateada"),
                        "entrega_parcial_quantidade_total": total,
                        "entrega_parcial_quantidade_parcial": parcial,
                        "unidades_transporte": _unidades(item.get("unidades_transporte")),
                        "produtos_perigosos": _produtos_perigosos(item.get("produtos_perigosos"), chave),
                    }
                )
        grupos.append({"codigo_ibge": codigo, "documentos": documentos})

    return {
        "municipios_descarga": grupos,
        "unidades_transporte": _unidades(dados.get("unidades_transporte")),
        "lacres_rodoviarios": _lacres(dados.get("lacres_rodoviarios")),
        "chaves": chaves_vistas,
    }


def _exigir_chaves_livres(mdfe: Mdfe, chaves: set[str]) -> None:
    em_uso = list(
        MdfeDocumentoFiscal.objects.filter(chave__in=chaves)
        .exclude(mdfe=mdfe)
        .values_list("chave", flat=True)
    )
    if em_uso:
        raise ConflitoError(
            "Chave(s) de acesso já vinculada(s) a outro MDF-e.",
            code=ERR_CHAVE_EM_USO,
            details={"chaves": sorted(em_uso)},
        )


# ---------------------------------------------------------------------------
# Gravação
# ---------------------------------------------------------------------------


def _criar_unidades(mdfe: Mdfe, unidades: list[dict], documento=None) -> None:
    for ordem, unidade in enumerate(unidades, start=1):
        transporte = MdfeUnidadeTransporte.objects.create(
            mdfe=mdfe,
            documento=documento,
            ordem=ordem,
            tipo=unidade["tipo"],
            identificacao=unidade["identificacao"],
            quantidade_rateada=unidade.get("quantidade_rateada"),
            tara=unidade.get("tara"),
            capacidade_kg=unidade.get("capacidade_kg"),
            lacres=unidade["lacres"],
        )
        MdfeUnidadeCarga.objects.bulk_create(
            [
                MdfeUnidadeCarga(
                    unidade_transporte=transporte,
                    ordem=ordem_carga,
                    tipo=carga["tipo"],
                    identificacao=carga["identificacao"],
                    quantidade_rateada=carga.get("quantidade_rateada"),
                    lacres=carga["lacres"],
                )
                for ordem_carga, carga in enumerate(unidade["unidades_carga"], start=1)
            ]
        )


def _limpar(mdfe: Mdfe) -> None:
    mdfe.unidades_transporte.all().delete()
    mdfe.documentos.all().delete()
    mdfe.municipios_descarga.all().delete()
    mdfe.lacres_rodoviarios.all().delete()


def _inserir(mdfe: Mdfe, normalizado: dict, municipios: dict) -> None:
    ordem_documento = 0
    for ordem, grupo in enumerate(normalizado["municipios_descarga"], start=1):
        municipio = municipios[grupo["codigo_ibge"]]
        descarga = MdfeMunicipioDescarga.objects.create(
            mdfe=mdfe,
            municipio=municipio,
            codigo_ibge=municipio.codigo_ibge,
            nome=municipio.nome,
            ordem=ordem,
        )
        for item in grupo["documentos"]:
            ordem_documento += 1
            unidades = item.pop("unidades_transporte")
            perigosos = item.pop("produtos_perigosos")
            documento = MdfeDocumentoFiscal.objects.create(
                mdfe=mdfe,
                municipio_descarga=descarga,
                ordem=ordem_documento,
                **item,
            )
            _criar_unidades(mdfe, unidades, documento)
            MdfeProdutoPerigoso.objects.bulk_create(
                [
                    MdfeProdutoPerigoso(documento=documento, ordem=ordem_perigoso, **produto)
                    for ordem_perigoso, produto in enumerate(perigosos, start=1)
                ]
            )

    _criar_unidades(mdfe, normalizado["unidades_transporte"])
    MdfeLacreRodoviario.objects.bulk_create(
        [
            MdfeLacreRodoviario(mdfe=mdfe, ordem=ordem, numero=numero)
            for ordem, numero in enumerate(normalizado["lacres_rodoviarios"], start=1)
        ]
    )


# ---------------------------------------------------------------------------
# Operações
# ---------------------------------------------------------------------------


def definir_documentos(mdfe_id, dados: Mapping[str, Any], *, user=None) -> DocumentosResumo:
    with transaction.atomic():
        mdfe = carregar_para_alteracao(mdfe_id)
        exigir_editavel(mdfe)

        normalizado = _normalizar_payload(dados)
        codigos = [g["codigo_ibge"] for g in normalizado["municipios_descarga"]]
        municipios = resolver_municipios_ativos(codigos) if codigos else {}
        _exigir_chaves_livres(mdfe, normalizado["chaves"])

        try:
            with transaction.atomic():
                _limpar(mdfe)
                _inserir(mdfe, normalizado, municipios)
        except IntegrityError as exc:
            # corrida com outro MDF-e gravando a mesma chave
            raise ConflitoError(
                "Chave de acesso já vinculada a outro MDF-e.",
                code=ERR_CHAVE_EM_USO,
                details={"erro": str(exc)},
            )

        registrar_alteracao(mdfe, user=user)

    resumo = obter_documentos(mdfe.id)
    logger.info(
        "mdfe_documentos_definidos",
        extra={
            "event": "mdfe_documentos_definidos",
            "mdfe_id": str(mdfe.id),
            "totais": resumo.totais,
            "user_id": getattr(user, "id", None),
            "outcome": "success",
        },
    )
    return resumo


def _contar_lacres(unidades: Iterable[MdfeUnidadeTransporte]) -> int:
    total = 0
    for unidade in unidades:
        total += len(unidade.lacres or [])
        total += sum(len(c.lacres or []) for c in unidade.unidades_carga.all())
    return total


def obter_documentos(mdfe_id) -> DocumentosResumo:
    mdfe = obter_mdfe(mdfe_id)

    municipios = list(
        mdfe.municipios_descarga.prefetch_related(
            "documentos__unidades_transporte__unidades_carga",
            "documentos__produtos_perigosos",
        )
    )
    unidades_mdfe = list(
        mdfe.unidades_transporte.filter(documento__isnull=True).prefetch_related("unidades_carga")
    )
    lacres = list(mdfe.lacres_rodoviarios.values_list("numero", flat=True))

    totais = {tipo: 0 for tipo in TipoDocumentoFiscal.values}
    unidades_documentos = []
    for municipio in municipios:
        for documento in municipio.documentos.all():
            totais[documento.tipo] += 1
            unidades_documentos.extend(documento.unidades_transporte.all())

    return DocumentosResumo(
        mdfe=mdfe,
        municipios_descarga=municipios,
        unidades_transporte=unidades_mdfe,
        lacres_rodoviarios=lacres,
        totais={
            "total_documentos_cte": totais[TipoDocumentoFiscal.CTE],
            "total_documentos_nfe": totais[TipoDocumentoFiscal.NFE],
            "total_documentos_mdfe_transp": totais[TipoDocumentoFiscal.MDFE],
            "total_lacres": _contar_lacres(unidades_mdfe) + _contar_lacres(unidades_documentos) + len(lacres),
        },
    )
