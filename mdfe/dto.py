# mdfe/dto.py
"""
Listas tipadas gravadas como JSON no MDF-e (componentes de pagamento e
vales-pedágio).

Leitura: decodificar -> validar -> usar.
Escrita: validar -> codificar -> gravar.
"""

from __future__ import annotations

from dataclasses import asdict, dataclass
from decimal import Decimal, InvalidOperation
from typing import Any, Iterable

from commons.documentos import normalizar_documento
from commons.exceptions import ValidacaoError

TIPOS_COMPONENTE = {
    "01": "Vale Pedágio",
    "02": "Impostos, taxas e contribuições",
    "03": "Despesas (bancárias, meios de pagamento, outras)",
    "99": "Outros",
}

TIPOS_VALE = {
    "01": "TAG",
    "02": "Cupom",
    "03": "Cartão",
}


def _decimal(valor: Any, campo: str) -> Decimal:
    try:
        numero = Decimal(str(valor))
    except (InvalidOperation, TypeError, ValueError):
        raise ValidacaoError(f"Valor inválido em {campo}.", details={campo: valor})
    if not numero.is_finite():
        raise ValidacaoError(f"Valor inválido em {campo}.", details={campo: valor})
    return numero.quantize(Decimal("0.01"))


@dataclass(frozen=True)
class ComponentePagamento:
    tipo_componente: str
    valor: Decimal
    descricao: str = ""

    def validar(self) -> "ComponentePagamento":
        if self.tipo_componente not in TIPOS_COMPONENTE:
            raise ValidacaoError(
                f"Tipo de componente inválido: {self.tipo_componente!r}.",
                details={"tipoComponente": self.tipo_componente},
            )
        if self.valor <= 0:
            raise ValidacaoError(
                "Valor do componente deve ser maior que zero.",
                details={"valor": str(self.valor)},
            )
        if self.tipo_componente == "99" and not self.descricao:
            raise ValidacaoError("Componente do tipo 99 (Outros) exige descrição.")
        return self

    @classmethod
    def de_dict(cls, dados: dict) -> "ComponentePagamento":
        return cls(
            tipo_componente=str(dados.get("tipo_componente") or "").strip(),
            valor=_decimal(dados.get("valor"), "valor"),
            descricao=str(dados.get("descricao") or "").strip(),
        )

    def para_dict(self) -> dict:
        dados = asdict(self)
        dados["valor"] = str(self.valor)
        return dados


@dataclass(frozen=True)
class ValePedagio:
    cnpj_fornecedor: str
    numero_compra: str
    valor: Decimal
    tipo_vale: str = "01"
    nome_fornecedor: str = ""
    cnpj_pagador: str = ""

    def validar(self) -> "ValePedagio":
        if len(self.cnpj_fornecedor) != 14:
            raise ValidacaoError(
                "CNPJ do fornecedor do vale-pedágio deve ter 14 dígitos.",
                details={"cnpjFornecedor": self.cnpj_fornecedor},
            )
        if self.cnpj_pagador and len(self.cnpj_pagador) not in (11, 14):
            raise ValidacaoError(
                "Documento do responsável pelo pagamento do vale-pedágio inválido.",
                details={"cnpjPagador": self.cnpj_pagador},
            )
        if not self.numero_compra:
            raise ValidacaoError("Número do comprovante de compra do vale-pedágio é obrigatório.")
        if self.valor <= 0:
            raise ValidacaoError(
                "Valor do vale-pedágio deve ser maior que zero.",
                details={"valor": str(self.valor)},
            )
        if self.tipo_vale not in TIPOS_VALE:
            raise ValidacaoError(
                f"Tipo de vale-pedágio inválido: {self.tipo_vale!r}.",
                details={"tipoVale": self.tipo_vale},
            )
        return self

    @classmethod
    def de_dict(cls, dados: dict) -> "ValePedagio":
        return cls(
            cnpj_fornecedor=normalizar_documento(dados.get("cnpj_fornecedor")) or "",
            numero_compra=str(dados.get("numero_compra") or "").strip(),
            valor=_decimal(dados.get("valor"), "valor"),
            tipo_vale=str(dados.get("tipo_vale") or "01").strip(),
            nome_fornecedor=str(dados.get("nome_fornecedor") or "").strip(),
            cnpj_pagador=normalizar_documento(dados.get("cnpj_pagador")) or "",
        )

    def para_dict(self) -> dict:
        dados = asdict(self)
        dados["valor"] = str(self.valor)
        return dados


def decodificar_componentes(brutos: Iterable[dict] | None) -> list[ComponentePagamento]:
    return [ComponentePagamento.de_dict(item).validar() for item in brutos or []]


def codificar_componentes(componentes: Iterable[ComponentePagamento]) -> list[dict]:
    return [c.validar().para_dict() for c in componentes]


def decodificar_vales(brutos: Iterable[dict] | None) -> list[ValePedagio]:
    return [ValePedagio.de_dict(item).validar() for item in brutos or []]


def codificar_vales(vales: Iterable[ValePedagio]) -> list[dict]:
    return [v.validar().para_dict() for v in vales]


def somar_componentes(componentes: Iterable[ComponentePagamento]) -> Decimal:
    return sum((c.valor for c in componentes), Decimal("0.00"))
