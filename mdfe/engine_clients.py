"""
Camada de client do motor fiscal de MDF-e (assinatura, transmissão, eventos
e DAMDFE).

Este módulo define:

- Contrato MdfeEngineProtocol consumido pelo TransmissaoGateway.
- MockMdfeEngineClient, determinístico, usado em desenvolvimento e testes.
- MockMdfeEngineClientAlwaysFail e MockMdfeEngineClientTimeout, para os
  cenários de falha técnica e de resultado desconhecido.
- HttpMdfeEngineClient, que conversa JSON sobre HTTP com o serviço do motor.
"""

from __future__ import annotations

import hashlib
import json
import re
from dataclasses import dataclass, field
from typing import Any, Dict, Optional, Protocol

import requests


# ---------------------------------------------------------------------------
# Exceções específicas
# ---------------------------------------------------------------------------


class MotorFiscalTechnicalError(Exception):
    """
    Falha técnica ou erro reportado pelo motor (conexão, HTTP não-2xx,
    resposta ilegível).

    `numero_recibo` vem preenchido quando o motor chegou a obter recibo da
    SEFAZ antes de falhar. Nesse caso a transmissão não pode ser repetida.
    """

    def __init__(
        self,
        message: str,
        *,
        codigo: str | None = None,
        raw: Dict[str, Any] | None = None,
        numero_recibo: str | None = None,
    ):
        super().__init__(message)
        self.codigo = codigo
        self.raw: Dict[str, Any] = raw or {}
        self.numero_recibo = numero_recibo


class MotorFiscalTimeout(MotorFiscalTechnicalError):
    """
    Tempo esgotado. O resultado na SEFAZ é desconhecido.
    """


# ---------------------------------------------------------------------------
# DTOs de resposta do motor
# ---------------------------------------------------------------------------


@dataclass
class MotorAssinaturaResponse:
    chave_acesso: str
    codigo_numerico: str
    codigo_verificador: str
    xml_assinado: str
    raw: Dict[str, Any] = field(default_factory=dict)


@dataclass
class MotorTransmissaoResponse:
    """
    Retorno da transmissão. Em modo assíncrono vem apenas o recibo
    (codigo 103) e o resultado sai na consulta por recibo.
    """

    codigo: int
    mensagem: str
    protocolo: str = ""
    numero_recibo: str = ""
    chave_acesso: str = ""
    xml_autorizado: Optional[str] = None
    raw: Dict[str, Any] = field(default_factory=dict)


@dataclass
class MotorConsultaResponse:
    """
    Situação de um MDF-e ou de um lote.

    Na consulta por recibo, `codigo` é o status do lote (104 = processado)
    e `codigo_protocolo` é o status do MDF-e dentro do lote.
    """

    codigo: int
    mensagem: str
    protocolo: str = ""
    chave_acesso: str = ""
    codigo_protocolo: Optional[int] = None
    xml_autorizado: Optional[str] = None
    raw: Dict[str, Any] = field(default_factory=dict)


@dataclass
class MotorEventoResponse:
    codigo: int
    mensagem: str
    protocolo: str = ""
    raw: Dict[str, Any] = field(default_factory=dict)


@dataclass
class MotorStatusServicoResponse:
    """
    Situação do webservice de autorização da UF (107 = em operação).
    """

    codigo: int
    mensagem: str
    tempo_medio: Optional[int] = None
    raw: Dict[str, Any] = field(default_factory=dict)


# ---------------------------------------------------------------------------
# Contrato do motor
# ---------------------------------------------------------------------------


class MdfeEngineProtocol(Protocol):
    def assinar(self, payload: Dict[str, Any]) -> MotorAssinaturaResponse:
        ...

    def transmitir(self, xml_assinado: str, *, sincrono: bool = True) -> MotorTransmissaoResponse:
        ...

    def consultar_chave(self, chave: str) -> MotorConsultaResponse:
        ...

    def consultar_recibo(self, recibo: str) -> MotorConsultaResponse:
        ...

    def cancelar(
        self,
        *,
        chave: str,
        protocolo: str,
        justificativa: str,
        cnpj: str,
        ambiente: int,
    ) -> MotorEventoResponse:
        ...

    def encerrar(
        self,
        *,
        chave: str,
        protocolo: str,
        codigo_uf: str,
        codigo_municipio: str,
        data_encerramento: str,
        cnpj: str,
        ambiente: int,
    ) -> MotorEventoResponse:
        ...

    def imprimir(self, xml: str) -> bytes:
        ...

    def status_servico(self, codigo_uf: str) -> MotorStatusServicoResponse:
        ...


# ---------------------------------------------------------------------------
# Chave de acesso
# ---------------------------------------------------------------------------


def digito_modulo11(base: str) -> str:
    """
    Dígito verificador da chave de acesso: pesos 2..9 da direita para a
    esquerda, resto 0 ou 1 resulta em 0.
    """
    soma = 0
    peso = 2
    for digito in reversed(base):
        soma += int(digito) * peso
        peso = 2 if peso == 9 else peso + 1
    resto = soma % 11
    return "0" if resto in (0, 1) else str(11 - resto)


def montar_chave_acesso(
    *,
    codigo_uf: str,
    ano_mes: str,
    documento: str,
    serie: int,
    numero: int,
    tipo_emissao: str,
    codigo_numerico: str,
    modelo: str = "58",
) -> str:
    base = (
        f"{codigo_uf:0>2}{ano_mes:0>4}{documento:0>14}{modelo}"
        f"{int(serie):03d}{int(numero):09d}{tipo_emissao[:1]}{codigo_numerico:0>8}"
    )
    return base + digito_modulo11(base)


_RE_CHAVE_XML = re.compile(r'Id="MDFe(\d{44})"')


def _chave_do_xml(xml: str) -> str:
    encontrado = _RE_CHAVE_XML.search(xml or "")
    return encontrado.group(1) if encontrado else ""


# ---------------------------------------------------------------------------
# Implementação mock
# ---------------------------------------------------------------------------


class MockMdfeEngineClient:
    """
    Motor fiscal simulado.

    - A chave é calculada do próprio payload (cUF, AAMM, CNPJ, 58, série,
      número, tpEmis, cMDF derivado do hash do payload e DV módulo 11),
      então o mesmo payload sempre gera a mesma chave.
    - Transmissão síncrona autoriza com 100. Assíncrona devolve 103 e
      recibo, e a consulta por recibo responde 104 com protocolo 100.
    - Cancelamento e encerramento homologam com 135.
    """

    def __init__(self, *, ambiente: int = 2):
        self.ambiente = ambiente

    def assinar(self, payload: Dict[str, Any]) -> MotorAssinaturaResponse:
        ide = payload.get("ide") or {}
        emit = payload.get("emit") or {}

        canonico = json.dumps(payload, sort_keys=True, ensure_ascii=False, default=str)
        codigo_numerico = f"{int(hashlib.sha256(canonico.encode('utf-8')).hexdigest(), 16) % 10**8:08d}"

        dh_emi = str(ide.get("dhEmi") or "")
        ano_mes = dh_emi[2:4] + dh_emi[5:7] if len(dh_emi) >= 7 else "0000"

        chave = montar_chave_acesso(
            codigo_uf=str(ide.get("cUF") or "00"),
            ano_mes=ano_mes,
            documento=str(emit.get("CNPJ") or emit.get("CPF") or ""),
            serie=int(ide.get("serie") or 0),
            numero=int(ide.get("nMDF") or 0),
            tipo_emissao=str(ide.get("tpEmis") or "1"),
            codigo_numerico=codigo_numerico,
        )

        xml = (
            f'<MDFe xmlns="http://www.portalfiscal.inf.br/mdfe">'
            f'<infMDFe versao="3.00" Id="MDFe{chave}">'
            f"<ide><serie>{ide.get('serie')}</serie><nMDF>{ide.get('nMDF')}</nMDF></ide>"
            f"</infMDFe><Signature>mock</Signature></MDFe>"
        )

        return MotorAssinaturaResponse(
            chave_acesso=chave,
            codigo_numerico=codigo_numerico,
            codigo_verificador=chave[-1],
            xml_assinado=xml,
            raw={"chave_acesso": chave, "ambiente": self.ambiente},
        )

    def transmitir(self, xml_assinado: str, *, sincrono: bool = True) -> MotorTransmissaoResponse:
        chave = _chave_do_xml(xml_assinado)

        if not sincrono:
            recibo = "3" + chave[-14:]
            mensagem = "Lote recebido com sucesso (mock)."
            return MotorTransmissaoResponse(
                codigo=103,
                mensagem=mensagem,
                numero_recibo=recibo,
                chave_acesso=chave,
                raw={"codigo": 103, "mensagem": mensagem, "recibo": recibo},
            )

        protocolo = "9" + chave[-14:]
        mensagem = "Autorizado o uso do MDF-e (mock)."
        return MotorTransmissaoResponse(
            codigo=100,
            mensagem=mensagem,
            protocolo=protocolo,
            chave_acesso=chave,
            xml_autorizado=f"<mdfeProc>{xml_assinado}<protMDFe nProt='{protocolo}'/></mdfeProc>",
            raw={"codigo": 100, "mensagem": mensagem, "protocolo": protocolo},
        )

    def consultar_chave(self, chave: str) -> MotorConsultaResponse:
        protocolo = "9" + chave[-14:]
        mensagem = "Autorizado o uso do MDF-e (mock)."
        return MotorConsultaResponse(
            codigo=100,
            mensagem=mensagem,
            protocolo=protocolo,
            chave_acesso=chave,
            raw={"codigo": 100, "mensagem": mensagem, "protocolo": protocolo},
        )

    def consultar_recibo(self, recibo: str) -> MotorConsultaResponse:
        protocolo = "9" + recibo[1:]
        mensagem = "Lote processado (mock)."
        return MotorConsultaResponse(
            codigo=104,
            mensagem=mensagem,
            protocolo=protocolo,
            codigo_protocolo=100,
            raw={"codigo": 104, "mensagem": mensagem, "cStatProt": 100, "protocolo": protocolo},
        )

    def cancelar(
        self,
        *,
        chave: str,
        protocolo: str,
        justificativa: str,
        cnpj: str,
        ambiente: int,
    ) -> MotorEventoResponse:
        protocolo_evento = "8" + chave[-14:]
        mensagem = "Evento registrado e vinculado ao MDF-e (mock)."
        return MotorEventoResponse(
            codigo=135,
            mensagem=mensagem,
            protocolo=protocolo_evento,
            raw={"codigo": 135, "evento": "110111", "justificativa": justificativa},
        )

    def encerrar(
        self,
        *,
        chave: str,
        protocolo: str,
        codigo_uf: str,
        codigo_municipio: str,
        data_encerramento: str,
        cnpj: str,
        ambiente: int,
    ) -> MotorEventoResponse:
        protocolo_evento = "7" + chave[-14:]
        mensagem = "Evento registrado e vinculado ao MDF-e (mock)."
        return MotorEventoResponse(
            codigo=135,
            mensagem=mensagem,
            protocolo=protocolo_evento,
            raw={
                "codigo": 135,
                "evento": "110112",
                "cUF": codigo_uf,
                "cMun": codigo_municipio,
                "dtEnc": data_encerramento,
            },
        )

    def imprimir(self, xml: str) -> bytes:
        chave = _chave_do_xml(xml) or "sem-chave"
        return (
            b"%PDF-1.4\n"
            b"1 0 obj << /Type /Catalog /Pages 2 0 R >> endobj\n"
            b"2 0 obj << /Type /Pages /Kids [] /Count 0 >> endobj\n"
            + f"% DAMDFE {chave}\n".encode("ascii")
            + b"trailer << /Root 1 0 R >>\n%%EOF\n"
        )

    def status_servico(self, codigo_uf: str) -> MotorStatusServicoResponse:
        mensagem = "Serviço em Operação (mock)."
        return MotorStatusServicoResponse(
            codigo=107,
            mensagem=mensagem,
            tempo_medio=1,
            raw={"codigo": 107, "mensagem": mensagem, "cUF": codigo_uf, "tMed": 1},
        )


class MockMdfeEngineClientAlwaysFail(MockMdfeEngineClient):
    """
    Motor que SEMPRE falha tecnicamente. Usado nos testes de falha.
    """

    def _falhar(self, operacao: str):
        raise MotorFiscalTechnicalError(
            "Falha técnica simulada no motor fiscal (mock).",
            codigo="TECH_FAIL",
            raw={"operacao": operacao, "motivo": "Falha técnica simulada no mock."},
        )

    def assinar(self, payload):
        self._falhar("assinar")

    def transmitir(self, xml_assinado, *, sincrono=True):
        self._falhar("transmitir")

    def consultar_chave(self, chave):
        self._falhar("consultar_chave")

    def consultar_recibo(self, recibo):
        self._falhar("consultar_recibo")

    def cancelar(self, **kwargs):
        self._falhar("cancelar")

    def encerrar(self, **kwargs):
        self._falhar("encerrar")

    def imprimir(self, xml):
        self._falhar("imprimir")

    def status_servico(self, codigo_uf):
        self._falhar("status_servico")


class MockMdfeEngineClientTimeout(MockMdfeEngineClientAlwaysFail):
    def _falhar(self, operacao: str):
        raise MotorFiscalTimeout(
            "Tempo esgotado aguardando o motor fiscal (mock).",
            codigo="TIMEOUT",
            raw={"operacao": operacao},
        )


# ---------------------------------------------------------------------------
# Implementação HTTP
# ---------------------------------------------------------------------------


class HttpMdfeEngineClient:
    """
    Client do serviço HTTP do motor fiscal.

    Cada operação é um POST JSON em `{base_url}/mdfe/<operacao>`. O corpo de
    resposta usa camelCase (codigo, mensagem, protocolo, numeroRecibo,
    chaveAcesso, xmlAssinado, xmlAutorizado, codigoProtocolo).
    """

    def __init__(
        self,
        *,
        base_url: str,
        timeout: float = 30,
        token: str = "",
        session: requests.Session | None = None,
    ):
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self.token = token
        self.session = session or requests.Session()

    def _post(self, rota: str, corpo: Dict[str, Any]) -> requests.Response:
        url = f"{self.base_url}/mdfe/{rota}"
        headers = {"Accept": "application/json"}
        if self.token:
            headers["Authorization"] = f"Bearer {self.token}"

        try:
            resp = self.session.request(
                "POST",
                url,
                json=corpo,
                headers=headers,
                timeout=self.timeout,
            )
        except requests.Timeout as exc:
            raise MotorFiscalTimeout(
                f"Tempo esgotado chamando o motor fiscal ({rota}).",
                codigo="TIMEOUT",
                raw={"url": url, "erro": str(exc)},
            ) from exc
        except requests.RequestException as exc:
            raise MotorFiscalTechnicalError(
                f"Falha de comunicação com o motor fiscal ({rota}).",
                codigo="CONEXAO",
                raw={"url": url, "erro": str(exc)},
            ) from exc

        if resp.status_code >= 400:
            try:
                corpo_erro = resp.json()
            except ValueError:
                corpo_erro = {}
            if not isinstance(corpo_erro, dict):
                corpo_erro = {}
            raise MotorFiscalTechnicalError(
                str(corpo_erro.get("mensagem") or f"Motor fiscal respondeu HTTP {resp.status_code}."),
                codigo=str(corpo_erro.get("codigo") or f"HTTP_{resp.status_code}"),
                raw={"status_code": resp.status_code, "body": resp.text},
                numero_recibo=corpo_erro.get("numeroRecibo") or None,
            )

        return resp

    def _post_json(self, rota: str, corpo: Dict[str, Any]) -> Dict[str, Any]:
        resp = self._post(rota, corpo)
        try:
            dados = resp.json()
        except ValueError as exc:
            raise MotorFiscalTechnicalError(
                "Resposta do motor fiscal não é JSON.",
                codigo="RESPOSTA_INVALIDA",
                raw={"status_code": resp.status_code, "body": resp.text},
            ) from exc
        if not isinstance(dados, dict):
            raise MotorFiscalTechnicalError(
                "Resposta do motor fiscal em formato inesperado.",
                codigo="RESPOSTA_INVALIDA",
                raw={"status_code": resp.status_code, "body": resp.text},
            )
        return dados

    @staticmethod
    def _codigo(dados: Dict[str, Any], campo: str = "codigo") -> Optional[int]:
        valor = dados.get(campo)
        if valor in (None, ""):
            return None
        try:
            return int(valor)
        except (TypeError, ValueError):
            raise MotorFiscalTechnicalError(
                f"Código de retorno inválido: {valor!r}.",
                codigo="RESPOSTA_INVALIDA",
                raw=dados,
            )

    def assinar(self, payload: Dict[str, Any]) -> MotorAssinaturaResponse:
        dados = self._post_json("assinar", payload)
        chave = str(dados.get("chaveAcesso") or "")
        return MotorAssinaturaResponse(
            chave_acesso=chave,
            codigo_numerico=str(dados.get("codigoNumerico") or ""),
            codigo_verificador=str(dados.get("codigoVerificador") or chave[-1:]),
            xml_assinado=str(dados.get("xmlAssinado") or ""),
            raw=dados,
        )

    def transmitir(self, xml_assinado: str, *, sincrono: bool = True) -> MotorTransmissaoResponse:
        dados = self._post_json("transmitir", {"xml": xml_assinado, "sincrono": sincrono})
        return MotorTransmissaoResponse(
            codigo=self._codigo(dados) or 0,
            mensagem=str(dados.get("mensagem") or ""),
            protocolo=str(dados.get("protocolo") or ""),
            numero_recibo=str(dados.get("numeroRecibo") or ""),
            chave_acesso=str(dados.get("chaveAcesso") or ""),
            xml_autorizado=dados.get("xmlAutorizado"),
            raw=dados,
        )

    def _consulta(self, rota: str, corpo: Dict[str, Any]) -> MotorConsultaResponse:
        dados = self._post_json(rota, corpo)
        return MotorConsultaResponse(
            codigo=self._codigo(dados) or 0,
            mensagem=str(dados.get("mensagem") or ""),
            protocolo=str(dados.get("protocolo") or ""),
            chave_acesso=str(dados.get("chaveAcesso") or ""),
            codigo_protocolo=self._codigo(dados, "codigoProtocolo"),
            xml_autorizado=dados.get("xmlAutorizado"),
            raw=dados,
        )

    def consultar_chave(self, chave: str) -> MotorConsultaResponse:
        return self._consulta("consultar-chave", {"chave": chave})

    def consultar_recibo(self, recibo: str) -> MotorConsultaResponse:
        return self._consulta("consultar-recibo", {"recibo": recibo})

    def _evento(self, rota: str, corpo: Dict[str, Any]) -> MotorEventoResponse:
        dados = self._post_json(rota, corpo)
        return MotorEventoResponse(
            codigo=self._codigo(dados) or 0,
            mensagem=str(dados.get("mensagem") or ""),
            protocolo=str(dados.get("protocolo") or ""),
            raw=dados,
        )

    def cancelar(self, *, chave, protocolo, justificativa, cnpj, ambiente) -> MotorEventoResponse:
        return self._evento(
            "cancelar",
            {
                "chave": chave,
                "protocolo": protocolo,
                "justificativa": justificativa,
                "cnpj": cnpj,
                "ambiente": ambiente,
            },
        )

    def encerrar(
        self,
        *,
        chave,
        protocolo,
        codigo_uf,
        codigo_municipio,
        data_encerramento,
        cnpj,
        ambiente,
    ) -> MotorEventoResponse:
        return self._evento(
            "encerrar",
            {
                "chave": chave,
                "protocolo": protocolo,
                "codigoUf": codigo_uf,
                "codigoMunicipio": codigo_municipio,
                "dataEncerramento": data_encerramento,
                "cnpj": cnpj,
                "ambiente": ambiente,
            },
        )

    def imprimir(self, xml: str) -> bytes:
        return self._post("imprimir", {"xml": xml}).content

    def status_servico(self, codigo_uf: str) -> MotorStatusServicoResponse:
        dados = self._post_json("status-servico", {"codigoUf": codigo_uf})
        return MotorStatusServicoResponse(
            codigo=self._codigo(dados) or 0,
            mensagem=str(dados.get("mensagem") or ""),
            tempo_medio=self._codigo(dados, "tempoMedio"),
            raw=dados,
        )
