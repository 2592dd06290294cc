# commons/documentos.py
"""
Normalização de documentos e códigos usados nos cadastros e no MDF-e.

As mesmas funções são aplicadas em criação, edição e consulta, para que a
detecção de duplicidade compare sempre a forma normalizada.
"""

from __future__ import annotations

import re
from typing import Optional

_NAO_DIGITOS = re.compile(r"\D")
_NAO_ALFANUMERICOS = re.compile(r"[^0-9A-Za-z]")

# Código IBGE da UF (cUF).
CODIGOS_UF: dict[str, str] = {
    "AC": "12", "AL": "27", "AP": "16", "AM": "13", "BA": "29",
    "CE": "23", "DF": "53", "ES": "32", "GO": "52", "MA": "21",
    "MT": "51", "MS": "50", "MG": "31", "PA": "15", "PB": "25",
    "PR": "41", "PE": "26", "PI": "22", "RJ": "33", "RN": "24",
    "RS": "43", "RO": "11", "RR": "14", "SC": "42", "SP": "35",
    "SE": "28", "TO": "17",
}


def somente_digitos(valor: Optional[str]) -> str:
    if valor is None:
        return ""
    return _NAO_DIGITOS.sub("", str(valor))


def normalizar_documento(valor: Optional[str]) -> Optional[str]:
    """
    CNPJ/CPF/IE/RENAVAM sem pontuação. Vazio vira None, para não colidir
    nas constraints de unicidade.
    """
    digitos = somente_digitos(valor)
    return digitos or None


def normalizar_placa(valor: Optional[str]) -> Optional[str]:
    if valor is None:
        return None
    placa = _NAO_ALFANUMERICOS.sub("", str(valor)).upper()
    return placa or None


def normalizar_uf(valor: Optional[str]) -> Optional[str]:
    if valor is None:
        return None
    uf = str(valor).strip().upper()
    return uf or None


def codigo_uf(sigla: Optional[str]) -> Optional[str]:
    """
    Retorna o código IBGE da UF ou None se a sigla não existir.
    """
    return CODIGOS_UF.get(normalizar_uf(sigla) or "")


def uf_valida(sigla: Optional[str]) -> bool:
    return codigo_uf(sigla) is not None


def chave_valida(chave: Optional[str]) -> bool:
    """
    Chave de acesso: 44 dígitos. O dígito verificador não é conferido aqui.
    """
    return len(somente_digitos(chave)) == 44
