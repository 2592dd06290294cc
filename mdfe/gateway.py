# mdfe/gateway.py
"""
Adaptador entre o MDF-e e o motor fiscal.

Traduz as colunas do manifesto (snapshots, percurso, documentos, pagamento,
seguro) na requisição estruturada do motor e traduz as respostas do motor em
status do MDF-e. Não decide se uma operação é permitida: isso fica nos
services do ciclo de vida.
"""

from __future__ import annotations

import hashlib
import json
import logging
from dataclasses import dataclass, field
from decimal import Decimal
from typing import Any, Dict, Iterable, Optional

from commons.documentos import codigo_uf
from commons.exceptions import MotorFiscalError, MotorFiscalTimeoutError
from mdfe.engine_clients import (
    MdfeEngineProtocol,
    MotorAssinaturaResponse,
    MotorFiscalTechnicalError,
    MotorFiscalTimeout,
)
from mdfe.engine_factory import get_mdfe_engine_client
from mdfe.models import Mdfe, MdfeStatus, TipoDocumentoFiscal, TipoLocal

logger = logging.getLogger("mdfe.fiscal")

VERSAO_PROCESSO = "mdfe-backend 1.0"

CODIGOS_AUTORIZADO = {100, 150}
CODIGOS_PENDENTE = {103, 105}
CODIGO_LOTE_PROCESSADO = 104
CODIGO_CANCELADO = 101
CODIGO_ENCERRADO = 132
CODIGOS_EVENTO_OK = {135, 136}
CODIGO_SERVICO_EM_OPERACAO = 107

ERR_EVENTO_REJEITADO = "MOTOR_FISCAL_EVENTO_REJEITADO"


def status_por_codigo(codigo: int, codigo_protocolo: Optional[int] = None) -> str:
    """
    Mapeia o cStat devolvido pelo motor para o status do MDF-e.

    104 (lote processado) usa o cStat do protocolo dentro do lote.
    """
    if codigo == CODIGO_LOTE_PROCESSADO and codigo_protocolo is not None:
        codigo = codigo_protocolo

    if codigo in CODIGOS_AUTORIZADO:
        return MdfeStatus.AUTORIZADO
    if codigo in CODIGOS_PENDENTE:
        return MdfeStatus.TRANSMITIDO
    if codigo == CODIGO_CANCELADO:
        return MdfeStatus.CANCELADO
    if codigo == CODIGO_ENCERRADO:
        return MdfeStatus.ENCERRADO
    return MdfeStatus.REJEITADO


def status_da_transmissao(codigo: int) -> str:
    """
    Na transmissão só há autorizado, pendente ou rejeitado. 101 e 132 só
    têm sentido na consulta de um MDF-e já autorizado.
    """
    status = status_por_codigo(codigo)
    if status in (MdfeStatus.AUTORIZADO, MdfeStatus.TRANSMITIDO):
        return status
    return MdfeStatus.REJEITADO


@dataclass
class ResultadoTransmissao:
    status: str
    codigo: int
    mensagem: str
    protocolo: str = ""
    numero_recibo: str = ""
    chave_acesso: str = ""
    xml_autorizado: Optional[str] = None
    raw: Dict[str, Any] = field(default_factory=dict)


@dataclass
class ResultadoConsulta:
    status: str
    codigo: int
    mensagem: str
    protocolo: str = ""
    chave_acesso: str = ""
    xml_autorizado: Optional[str] = None
    raw: Dict[str, Any] = field(default_factory=dict)


@dataclass
class ResultadoEvento:
    codigo: int
    mensagem: str
    protocolo: str = ""
    raw: Dict[str, Any] = field(default_factory=dict)


@dataclass
class ResultadoStatusServico:
    codigo_uf: str
    em_operacao: bool
    codigo: int
    mensagem: str
    tempo_medio: Optional[int] = None
    raw: Dict[str, Any] = field(default_factory=dict)


# ---------------------------------------------------------------------------
# Payload
# ---------------------------------------------------------------------------


def _dec(valor: Any, casas: int = 2) -> str:
    return f"{Decimal(str(valor or 0)):.{casas}f}"


def _documento(cnpj: str, cpf: str) -> dict:
    if cnpj:
        return {"CNPJ": cnpj}
    if cpf:
        return {"CPF": cpf}
    return {}


def _sem_vazios(dados: dict) -> dict:
    return {k: v for k, v in dados.items() if v not in (None, "", [], {})}


def _unidade_carga(unidade) -> dict:
    return _sem_vazios(
        {
            "tpUnidCarga": unidade.tipo,
            "idUnidCarga": unidade.identificacao,
            "lacUnidCarga": [{"nLacre": lacre} for lacre in unidade.lacres or []],
            "qtdRat": _dec(unidade.quantidade_rateada) if unidade.quantidade_rateada is not None else None,
        }
    )


def _unidade_transporte(unidade) -> dict:
    return _sem_vazios(
        {
            "tpUnidTransp": unidade.tipo,
            "idUnidTransp": unidade.identificacao,
            "lacUnidTransp": [{"nLacre": lacre} for lacre in unidade.lacres or []],
            "infUnidCarga": [_unidade_carga(c) for c in unidade.unidades_carga.all()],
            "qtdRat": _dec(unidade.quantidade_rateada) if unidade.quantidade_rateada is not None else None,
        }
    )


def _produto_perigoso(produto) -> dict:
    return _sem_vazios(
        {
            "nONU": produto.numero_onu,
            "xNomeAE": produto.nome_apropriado,
            "xClaRisco": produto.classe_risco,
            "grEmb": produto.grupo_embalagem,
            "qTotProd": produto.quantidade_total,
            "qVolTipo": produto.quantidade_volume_tipo,
        }
    )


_CAMPO_CHAVE = {
    TipoDocumentoFiscal.CTE: "chCTe",
    TipoDocumentoFiscal.NFE: "chNFe",
    TipoDocumentoFiscal.MDFE: "chMDFe",
}

_GRUPO_DOCUMENTO = {
    TipoDocumentoFiscal.CTE: "infCTe",
    TipoDocumentoFiscal.NFE: "infNFe",
    TipoDocumentoFiscal.MDFE: "infMDFeTransp",
}


def _documento_fiscal(documento) -> dict:
    item = {
        _CAMPO_CHAVE[documento.tipo]: documento.chave,
        "SegCodBarra": documento.segundo_codigo_barras,
        "indReentrega": "1" if documento.indicador_reentrega else "",
        "indPrestacaoParcial": "1" if documento.indicador_prestacao_parcial else "",
        "PIN": documento.pin_suframa,
        "dPrevEntrega": documento.data_prevista_entrega.isoformat() if documento.data_prevista_entrega else "",
        "infUnidTransp": [_unidade_transporte(u) for u in documento.unidades_transporte.all()],
        "peri": [_produto_perigoso(p) for p in documento.produtos_perigosos.all()],
    }
    if documento.entrega_parcial_quantidade_total is not None:
        item["infEntregaParcial"] = _sem_vazios(
            {
                "qtdTotal": _dec(documento.entrega_parcial_quantidade_total, 4),
                "qtdParcial": (
                    _dec(documento.entrega_parcial_quantidade_parcial, 4)
                    if documento.entrega_parcial_quantidade_parcial is not None
                    else None
                ),
            }
        )
    return _sem_vazios(item)


def _inf_doc(municipios_descarga: Iterable) -> tuple[dict, dict]:
    totais = {tipo: 0 for tipo in TipoDocumentoFiscal.values}
    grupos = []
    for municipio in municipios_descarga:
        grupo: dict[str, Any] = {
            "cMunDescarga": municipio.codigo_ibge,
            "xMunDescarga": municipio.nome,
        }
        for documento in municipio.documentos.all():
            grupo.setdefault(_GRUPO_DOCUMENTO[documento.tipo], []).append(_documento_fiscal(documento))
            totais[documento.tipo] += 1
        grupos.append(grupo)
    return {"infMunDescarga": grupos}, totais


def _rodo(mdfe: Mdfe) -> dict:
    condutores = [{"xNome": mdfe.condutor_nome, "CPF": mdfe.condutor_cpf}]
    condutores += [{"xNome": c.nome, "CPF": c.cpf} for c in mdfe.condutores_adicionais.all()]

    veic_tracao = _sem_vazios(
        {
            "placa": mdfe.veiculo_placa,
            "RENAVAM": mdfe.veiculo_renavam,
            "tara": str(mdfe.veiculo_tara),
            "capKG": str(mdfe.veiculo_capacidade_kg) if mdfe.veiculo_capacidade_kg is not None else None,
            "tpRod": mdfe.veiculo_tipo_rodado,
            "tpCar": mdfe.veiculo_tipo_carroceria,
            "UF": mdfe.veiculo_uf,
            "condutor": condutores,
        }
    )

    reboques = [
        _sem_vazios(
            {
                "placa": r.placa,
                "RENAVAM": r.renavam,
                "tara": str(r.tara),
                "capKG": str(r.capacidade_kg) if r.capacidade_kg is not None else None,
                "tpCar": r.tipo_carroceria,
                "UF": r.uf,
                "prop": {"RNTRC": r.rntrc} if r.rntrc else None,
            }
        )
        for r in mdfe.reboques.all()
    ]

    contratantes = []
    if mdfe.contratante_cnpj or mdfe.contratante_cpf:
        contratantes.append(
            {
                "xNome": mdfe.contratante_razao_social,
                **_documento(mdfe.contratante_cnpj, mdfe.contratante_cpf),
            }
        )

    inf_pag = []
    if mdfe.componentes_pagamento:
        responsavel = contratantes[0] if contratantes else {
            "xNome": mdfe.emitente_razao_social,
            **_documento(mdfe.emitente_cnpj, mdfe.emitente_cpf),
        }
        inf_pag.append(
            {
                **responsavel,
                "Comp": [
                    _sem_vazios(
                        {
                            "tpComp": c.get("tipo_componente"),
                            "vComp": _dec(c.get("valor")),
                            "xComp": c.get("descricao"),
                        }
                    )
                    for c in mdfe.componentes_pagamento
                ],
                "vContrato": _dec(mdfe.valor_total_contrato),
                "indPag": mdfe.tipo_pagamento,
            }
        )

    vale_ped = None
    if not mdfe.sem_vale_pedagio and mdfe.vales_pedagio:
        vale_ped = {
            "disp": [
                _sem_vazios(
                    {
                        "CNPJForn": v.get("cnpj_fornecedor"),
                        "CNPJPg": v.get("cnpj_pagador"),
                        "nCompra": v.get("numero_compra"),
                        "vValePed": _dec(v.get("valor")),
                        "tpValePed": v.get("tipo_vale"),
                    }
                )
                for v in mdfe.vales_pedagio
            ]
        }

    inf_antt = _sem_vazios(
        {
            "RNTRC": mdfe.emitente_rntrc,
            "infContratante": contratantes,
            "valePed": vale_ped,
            "infPag": inf_pag,
        }
    )

    return _sem_vazios(
        {
            "infANTT": inf_antt,
            "veicTracao": veic_tracao,
            "veicReboque": reboques,
        }
    )


def _seguro(mdfe: Mdfe) -> list[dict]:
    if not mdfe.seguro_tipo_responsavel:
        return []
    return [
        _sem_vazios(
            {
                "infResp": {
                    "respSeg": str(mdfe.seguro_tipo_responsavel),
                    **_documento(mdfe.seguro_responsavel_cnpj, mdfe.seguro_responsavel_cpf),
                },
                "infSeg": _sem_vazios(
                    {"xSeg": mdfe.seguradora_razao_social, "CNPJ": mdfe.seguradora_cnpj}
                ),
                "nApol": mdfe.seguro_numero_apolice,
                "nAver": list(mdfe.seguro_averbacoes or []),
            }
        )
    ]


def montar_payload(mdfe: Mdfe, municipios_descarga: Iterable | None = None) -> dict:
    """
    Requisição estruturada do motor. Usa apenas as colunas do próprio MDF-e
    e dos seus filhos, nunca os cadastros de origem.
    """
    if municipios_descarga is None:
        municipios_descarga = mdfe.municipios_descarga.all()

    carregamento = [l for l in mdfe.locais.all() if l.tipo == TipoLocal.CARREGAMENTO]
    inf_doc, totais = _inf_doc(municipios_descarga)

    ide = _sem_vazios(
        {
            "cUF": codigo_uf(mdfe.emitente_uf),
            "tpAmb": str(mdfe.emitente_ambiente),
            "tpEmit": str(mdfe.emitente_tipo),
            "tpTransp": mdfe.tipo_transportador,
            "mod": mdfe.modelo,
            "serie": str(mdfe.serie),
            "nMDF": str(mdfe.numero),
            "modal": mdfe.modal,
            "dhEmi": mdfe.data_emissao.isoformat(),
            "tpEmis": "1",
            "procEmi": "0",
            "verProc": VERSAO_PROCESSO,
            "UFIni": mdfe.uf_inicio,
            "UFFim": mdfe.uf_fim,
            "infMunCarrega": [{"cMunCarrega": l.codigo_ibge, "xMunCarrega": l.nome} for l in carregamento],
            "infPercurso": [{"UFPer": uf} for uf in mdfe.ufs_percurso or []],
            "dhIniViagem": mdfe.data_inicio_viagem.isoformat() if mdfe.data_inicio_viagem else None,
        }
    )

    emit = _sem_vazios(
        {
            **_documento(mdfe.emitente_cnpj, mdfe.emitente_cpf),
            "IE": mdfe.emitente_ie,
            "xNome": mdfe.emitente_razao_social,
            "xFant": mdfe.emitente_nome_fantasia,
            "enderEmit": _sem_vazios(
                {
                    "xLgr": mdfe.emitente_endereco,
                    "nro": mdfe.emitente_numero,
                    "xCpl": mdfe.emitente_complemento,
                    "xBairro": mdfe.emitente_bairro,
                    "cMun": mdfe.emitente_codigo_municipio,
                    "xMun": mdfe.emitente_municipio,
                    "CEP": mdfe.emitente_cep,
                    "UF": mdfe.emitente_uf,
                    "fone": mdfe.emitente_telefone,
                    "email": mdfe.emitente_email,
                }
            ),
        }
    )

    aut_xml = []
    if mdfe.contratante_cnpj or mdfe.contratante_cpf:
        aut_xml.append(_documento(mdfe.contratante_cnpj, mdfe.contratante_cpf))

    payload = {
        "ide": ide,
        "emit": emit,
        "rodo": _rodo(mdfe),
        "infDoc": inf_doc,
        "seg": _seguro(mdfe),
        "tot": {
            "qCTe": str(totais[TipoDocumentoFiscal.CTE]),
            "qNFe": str(totais[TipoDocumentoFiscal.NFE]),
            "qMDFe": str(totais[TipoDocumentoFiscal.MDFE]),
            "vCarga": _dec(mdfe.valor_carga),
            "cUnid": mdfe.unidade_medida,
            "qCarga": _dec(mdfe.peso_bruto_total, 4),
        },
        "lacres": [{"nLacre": l.numero} for l in mdfe.lacres_rodoviarios.all()],
        "autXML": aut_xml,
        "infAdic": _sem_vazios({"infAdFisco": mdfe.info_fisco, "infCpl": mdfe.info_adicional}),
    }
    return payload


def hash_payload(payload: dict) -> str:
    canonico = json.dumps(payload, sort_keys=True, ensure_ascii=False, separators=(",", ":"))
    return hashlib.sha256(canonico.encode("utf-8")).hexdigest()


# ---------------------------------------------------------------------------
# Gateway
# ---------------------------------------------------------------------------


class TransmissaoGateway:
    """
    Chamadas ao motor com tradução de erros para MotorFiscalError /
    MotorFiscalTimeoutError. O texto original do motor vai em details.raw.
    """

    def __init__(self, client: MdfeEngineProtocol | None = None):
        self.client = client or get_mdfe_engine_client()

    montar_payload = staticmethod(montar_payload)

    def _chamar(self, operacao: str, func, *args, mdfe_id=None, **kwargs):
        try:
            return func(*args, **kwargs)
        except MotorFiscalTimeout as exc:
            logger.warning(
                "motor_fiscal_timeout",
                extra={
                    "event": "motor_fiscal_timeout",
                    "operacao": operacao,
                    "mdfe_id": str(mdfe_id) if mdfe_id else None,
                    "codigo": exc.codigo,
                },
            )
            raise MotorFiscalTimeoutError(
                details={"codigo": exc.codigo, "raw": exc.raw, "motor": str(exc)},
            ) from exc
        except MotorFiscalTechnicalError as exc:
            logger.error(
                "motor_fiscal_falha",
                extra={
                    "event": "motor_fiscal_falha",
                    "operacao": operacao,
                    "mdfe_id": str(mdfe_id) if mdfe_id else None,
                    "codigo": exc.codigo,
                    "numero_recibo": exc.numero_recibo,
                },
            )
            raise MotorFiscalError(
                f"Motor fiscal falhou em {operacao}: {exc}",
                details={
                    "codigo": exc.codigo,
                    "raw": exc.raw,
                    "numeroRecibo": exc.numero_recibo,
                },
            ) from exc

    def assinar(self, payload: dict, *, mdfe_id=None) -> MotorAssinaturaResponse:
        resposta = self._chamar("assinar", self.client.assinar, payload, mdfe_id=mdfe_id)
        if not resposta.xml_assinado:
            raise MotorFiscalError(
                "Motor fiscal não devolveu o XML assinado.",
                details={"raw": resposta.raw},
            )
        return resposta

    def transmitir(self, xml_assinado: str, *, sincrono: bool = True, mdfe_id=None) -> ResultadoTransmissao:
        resposta = self._chamar(
            "transmitir",
            self.client.transmitir,
            xml_assinado,
            sincrono=sincrono,
            mdfe_id=mdfe_id,
        )
        return ResultadoTransmissao(
            status=status_da_transmissao(resposta.codigo),
            codigo=resposta.codigo,
            mensagem=resposta.mensagem,
            protocolo=resposta.protocolo,
            numero_recibo=resposta.numero_recibo,
            chave_acesso=resposta.chave_acesso,
            xml_autorizado=resposta.xml_autorizado,
            raw=resposta.raw,
        )

    def _resultado_consulta(self, resposta) -> ResultadoConsulta:
        codigo = resposta.codigo
        if codigo == CODIGO_LOTE_PROCESSADO and resposta.codigo_protocolo is not None:
            codigo = resposta.codigo_protocolo
        return ResultadoConsulta(
            status=status_por_codigo(codigo),
            codigo=codigo,
            mensagem=resposta.mensagem,
            protocolo=resposta.protocolo,
            chave_acesso=resposta.chave_acesso,
            xml_autorizado=resposta.xml_autorizado,
            raw=resposta.raw,
        )

    def consultar_por_chave(self, chave: str, *, mdfe_id=None) -> ResultadoConsulta:
        resposta = self._chamar("consultar_chave", self.client.consultar_chave, chave, mdfe_id=mdfe_id)
        return self._resultado_consulta(resposta)

    def consultar_por_recibo(self, recibo: str, *, mdfe_id=None) -> ResultadoConsulta:
        resposta = self._chamar("consultar_recibo", self.client.consultar_recibo, recibo, mdfe_id=mdfe_id)
        return self._resultado_consulta(resposta)

    def _resultado_evento(self, operacao: str, resposta) -> ResultadoEvento:
        if resposta.codigo not in CODIGOS_EVENTO_OK:
            raise MotorFiscalError(
                f"Evento de {operacao} rejeitado: {resposta.codigo} - {resposta.mensagem}",
                code=ERR_EVENTO_REJEITADO,
                details={"codigo": resposta.codigo, "raw": resposta.raw},
            )
        return ResultadoEvento(
            codigo=resposta.codigo,
            mensagem=resposta.mensagem,
            protocolo=resposta.protocolo,
            raw=resposta.raw,
        )

    def cancelar(self, mdfe: Mdfe, justificativa: str) -> ResultadoEvento:
        resposta = self._chamar(
            "cancelar",
            self.client.cancelar,
            chave=mdfe.chave_acesso,
            protocolo=mdfe.protocolo_autorizacao,
            justificativa=justificativa,
            cnpj=mdfe.emitente_documento,
            ambiente=mdfe.emitente_ambiente,
            mdfe_id=mdfe.id,
        )
        return self._resultado_evento("cancelamento", resposta)

    def encerrar(self, mdfe: Mdfe, *, codigo_uf: str, codigo_municipio: str, data_encerramento) -> ResultadoEvento:
        resposta = self._chamar(
            "encerrar",
            self.client.encerrar,
            chave=mdfe.chave_acesso,
            protocolo=mdfe.protocolo_autorizacao,
            codigo_uf=codigo_uf,
            codigo_municipio=codigo_municipio,
            data_encerramento=data_encerramento.isoformat(),
            cnpj=mdfe.emitente_documento,
            ambiente=mdfe.emitente_ambiente,
            mdfe_id=mdfe.id,
        )
        return self._resultado_evento("encerramento", resposta)

    def imprimir(self, xml: str, *, mdfe_id=None) -> bytes:
        return self._chamar("imprimir", self.client.imprimir, xml, mdfe_id=mdfe_id)

    def status_servico(self, codigo_uf: str) -> ResultadoStatusServico:
        resposta = self._chamar("status_servico", self.client.status_servico, codigo_uf)
        return ResultadoStatusServico(
            codigo_uf=codigo_uf,
            em_operacao=resposta.codigo == CODIGO_SERVICO_EM_OPERACAO,
            codigo=resposta.codigo,
            mensagem=resposta.mensagem,
            tempo_medio=resposta.tempo_medio,
            raw=resposta.raw,
        )
