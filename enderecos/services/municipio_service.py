# enderecos/services/municipio_service.py

from __future__ import annotations

import logging
from typing import Iterable

from django.apps import apps
from django.db.models import Q

from commons.documentos import somente_digitos
from commons.exceptions import ConflitoError, NaoEncontradoError
from enderecos.models import Municipio

logger = logging.getLogger("mdfe.cadastros")

ERR_MUNICIPIO_NAO_ENCONTRADO = "MUNICIPIO_NAO_ENCONTRADO"
ERR_MUNICIPIO_REFERENCIADO = "MUNICIPIO_REFERENCIADO"


def resolver_municipio_ativo(referencia: str) -> Municipio:
    """
    Localiza um município ativo pelo código IBGE (7 dígitos) ou, na falta
    dele, pelo nome exato (sem diferenciar maiúsculas).
    """
    referencia = (referencia or "").strip()
    qs = Municipio.objects.select_related("uf").filter(ativo=True)

    codigo = somente_digitos(referencia)
    if len(codigo) == 7 and codigo == referencia:
        municipio = qs.filter(codigo_ibge=codigo).first()
    else:
        municipio = qs.filter(nome__iexact=referencia).order_by("codigo_ibge").first()

    if municipio is None:
        raise NaoEncontradoError(
            f"Município '{referencia}' não encontrado ou inativo.",
            code=ERR_MUNICIPIO_NAO_ENCONTRADO,
        )
    return municipio


def resolver_municipios_ativos(codigos: Iterable[str]) -> dict[str, Municipio]:
    """
    Resolve vários códigos IBGE de uma vez. Qualquer código sem município
    ativo aborta com NaoEncontradoError listando os faltantes.
    """
    codigos = {somente_digitos(c) for c in codigos}
    encontrados = {
        m.codigo_ibge: m
        for m in Municipio.objects.select_related("uf").filter(
            ativo=True, codigo_ibge__in=codigos
        )
    }
    faltantes = sorted(c for c in codigos if c not in encontrados)
    if faltantes:
        raise NaoEncontradoError(
            "Município(s) não encontrado(s) ou inativo(s): "
            + ", ".join(faltantes),
            code=ERR_MUNICIPIO_NAO_ENCONTRADO,
            details={"codigos": faltantes},
        )
    return encontrados


def contar_referencias(municipio: Municipio) -> int:
    """
    Quantidade de MDF-e que usam o município como carregamento,
    descarregamento ou descarga de documentos.
    """
    Mdfe = apps.get_model("mdfe", "Mdfe")
    return (
        Mdfe.objects.filter(
            Q(locais__municipio=municipio) | Q(municipios_descarga__municipio=municipio)
        )
        .distinct()
        .count()
    )


def excluir_municipio(municipio: Municipio, *, user=None) -> None:
    referencias = contar_referencias(municipio)
    if referencias:
        raise ConflitoError(
            f"Município {municipio.codigo_ibge} está vinculado a {referencias} MDF-e(s) "
            "e não pode ser excluído. Desative o município.",
            code=ERR_MUNICIPIO_REFERENCIADO,
            details={"referencias": referencias},
        )

    codigo = municipio.codigo_ibge
    municipio.delete()
    logger.info(
        "municipio_excluido",
        extra={
            "event": "municipio_excluido",
            "codigo_ibge": codigo,
            "user_id": getattr(user, "id", None),
        },
    )
