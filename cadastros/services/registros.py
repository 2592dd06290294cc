# cadastros/services/registros.py
"""
Configuração de cada cadastro de referência para o serviço genérico.
"""

from __future__ import annotations

from django.apps import apps
from django.db.models import Q

from cadastros.models import Condutor, Contratante, Emitente, Reboque, Seguradora, Veiculo
from cadastros.services.registro_service import RegistroConfig
from commons.documentos import (
    normalizar_documento,
    normalizar_placa,
    normalizar_uf,
    uf_valida,
)
from commons.exceptions import ValidacaoError


def _mdfes():
    return apps.get_model("mdfe", "Mdfe").objects


def _exigir_uf(estado: dict, campo: str = "uf", *, obrigatoria: bool = True) -> None:
    uf = estado.get(campo)
    if not uf and not obrigatoria:
        return
    if not uf_valida(uf):
        raise ValidacaoError(f"UF inválida: {uf!r}.", details={campo: uf})


def _exigir_cnpj_ou_cpf(estado: dict) -> None:
    cnpj, cpf = estado.get("cnpj"), estado.get("cpf")
    if bool(cnpj) == bool(cpf):
        raise ValidacaoError("Informe exatamente um documento: CNPJ ou CPF.")
    if cnpj and len(cnpj) != 14:
        raise ValidacaoError("CNPJ deve ter 14 dígitos.", details={"cnpj": cnpj})
    if cpf and len(cpf) != 11:
        raise ValidacaoError("CPF deve ter 11 dígitos.", details={"cpf": cpf})


def _validar_emitente(estado: dict) -> None:
    _exigir_cnpj_ou_cpf(estado)
    _exigir_uf(estado)


def _validar_contratante(estado: dict) -> None:
    _exigir_cnpj_ou_cpf(estado)
    _exigir_uf(estado, obrigatoria=False)


def _validar_placa(estado: dict) -> None:
    placa = estado.get("placa") or ""
    if len(placa) != 7:
        raise ValidacaoError("Placa deve ter 7 caracteres.", details={"placa": placa})
    _exigir_uf(estado)


def _validar_condutor(estado: dict) -> None:
    if len(estado.get("cpf") or "") != 11:
        raise ValidacaoError("CPF deve ter 11 dígitos.", details={"cpf": estado.get("cpf")})


def _validar_seguradora(estado: dict) -> None:
    if len(estado.get("cnpj") or "") != 14:
        raise ValidacaoError("CNPJ deve ter 14 dígitos.", details={"cnpj": estado.get("cnpj")})


def _referencias_emitente(emitente) -> int:
    return _mdfes().filter(emitente=emitente).count()


def _referencias_veiculo(veiculo) -> int:
    return _mdfes().filter(veiculo=veiculo).count()


def _referencias_condutor(condutor) -> int:
    return (
        _mdfes()
        .filter(Q(condutor=condutor) | Q(condutores_adicionais__condutor=condutor))
        .distinct()
        .count()
    )


def _referencias_reboque(reboque) -> int:
    return (
        apps.get_model("mdfe", "MdfeReboque")
        .objects.filter(reboque=reboque)
        .values("mdfe_id")
        .distinct()
        .count()
    )


def _referencias_contratante(contratante) -> int:
    return _mdfes().filter(contratante=contratante).count()


def _referencias_seguradora(seguradora) -> int:
    return _mdfes().filter(seguradora=seguradora).count()


def _normalizar_ie(valor) -> str:
    if valor and str(valor).strip().upper() == "ISENTO":
        return "ISENTO"
    return normalizar_documento(valor) or ""


_DOCUMENTOS = {
    "cnpj": normalizar_documento,
    "cpf": normalizar_documento,
}

EMITENTE = RegistroConfig(
    model=Emitente,
    rotulo="emitente",
    chaves_naturais=[("cnpj",), ("cpf",)],
    normalizadores={
        **_DOCUMENTOS,
        "ie": _normalizar_ie,
        "cep": lambda v: normalizar_documento(v) or "",
        "codigo_municipio": lambda v: normalizar_documento(v) or "",
        "uf": normalizar_uf,
    },
    validar=_validar_emitente,
    contar_referencias=_referencias_emitente,
)

VEICULO = RegistroConfig(
    model=Veiculo,
    rotulo="veículo",
    chaves_naturais=[("placa",)],
    normalizadores={
        "placa": normalizar_placa,
        "renavam": lambda v: normalizar_documento(v) or "",
        "uf": normalizar_uf,
    },
    validar=_validar_placa,
    contar_referencias=_referencias_veiculo,
)

CONDUTOR = RegistroConfig(
    model=Condutor,
    rotulo="condutor",
    chaves_naturais=[("cpf",)],
    normalizadores={"cpf": normalizar_documento},
    validar=_validar_condutor,
    contar_referencias=_referencias_condutor,
)

REBOQUE = RegistroConfig(
    model=Reboque,
    rotulo="reboque",
    chaves_naturais=[("placa",)],
    normalizadores={
        "placa": normalizar_placa,
        "renavam": lambda v: normalizar_documento(v) or "",
        "uf": normalizar_uf,
    },
    validar=_validar_placa,
    contar_referencias=_referencias_reboque,
)

CONTRATANTE = RegistroConfig(
    model=Contratante,
    rotulo="contratante",
    chaves_naturais=[("cnpj",), ("cpf",)],
    normalizadores={
        **_DOCUMENTOS,
        "cep": lambda v: normalizar_documento(v) or "",
        "uf": lambda v: normalizar_uf(v) or "",
    },
    validar=_validar_contratante,
    contar_referencias=_referencias_contratante,
)

SEGURADORA = RegistroConfig(
    model=Seguradora,
    rotulo="seguradora",
    chaves_naturais=[("cnpj",)],
    normalizadores={"cnpj": normalizar_documento},
    validar=_validar_seguradora,
    contar_referencias=_referencias_seguradora,
)
