# mdfe/services/numero_service.py
"""
Numeração do MDF-e por (emitente, série).

O próximo número é max(numero) + 1 considerando todos os status, inclusive
excluídos, ou o piso MDFE_NUMERO_INICIAL quando ainda não há manifesto.
A constraint uniq_mdfe_emitente_serie_numero é a garantia final: colisões
são refeitas até MDFE_NUMERO_TENTATIVAS vezes.
"""

from __future__ import annotations

import logging
from typing import Callable

from django.conf import settings
from django.db import IntegrityError, transaction
from django.db.models import Max

from cadastros.models import Emitente
from cadastros.services import registros
from cadastros.services.registro_service import buscar_ativo_por_chave
from commons.exceptions import ConflitoError, NaoEncontradoError
from mdfe.models import Mdfe

logger = logging.getLogger("mdfe.fiscal")

ERR_NUMERO_CONFLITO = "MDFE_NUMERO_CONFLITO"


def numero_inicial() -> int:
    return int(getattr(settings, "MDFE_NUMERO_INICIAL", 1) or 1)


def serie_padrao(emitente: Emitente | None = None) -> int:
    if emitente is not None and emitente.serie_mdfe:
        return emitente.serie_mdfe
    return int(getattr(settings, "MDFE_SERIE_PADRAO", 1) or 1)


def calcular_proximo_numero(emitente_id, serie: int) -> int:
    ultimo = (
        Mdfe.objects.filter(emitente_id=emitente_id, serie=serie)
        .aggregate(ultimo=Max("numero"))
        .get("ultimo")
    )
    if ultimo is None:
        return numero_inicial()
    return max(ultimo + 1, numero_inicial())


def criar_com_proximo_numero(emitente_id, serie: int, criar: Callable[[int], Mdfe]) -> Mdfe:
    """
    Reserva o próximo número e chama `criar(numero)` dentro de um savepoint.

    - O emitente fica travado (select_for_update) enquanto o número é
      calculado e o MDF-e inserido.
    - IntegrityError em (emitente, serie, numero) recalcula e tenta de novo.
      Qualquer outra IntegrityError sobe como está.
    """
    tentativas = int(getattr(settings, "MDFE_NUMERO_TENTATIVAS", 5) or 5)

    with transaction.atomic():
        Emitente.objects.select_for_update().only("id").get(pk=emitente_id)

        for tentativa in range(1, tentativas + 1):
            numero = calcular_proximo_numero(emitente_id, serie)
            try:
                with transaction.atomic():
                    return criar(numero)
            except IntegrityError:
                colidiu = Mdfe.objects.filter(
                    emitente_id=emitente_id, serie=serie, numero=numero
                ).exists()
                if not colidiu:
                    raise
                logger.warning(
                    "mdfe_numero_colisao",
                    extra={
                        "event": "mdfe_numero_colisao",
                        "emitente_id": str(emitente_id),
                        "serie": serie,
                        "numero": numero,
                        "tentativa": tentativa,
                    },
                )

    raise ConflitoError(
        "Não foi possível reservar um número para o MDF-e. Tente novamente.",
        code=ERR_NUMERO_CONFLITO,
        details={"emitenteId": str(emitente_id), "serie": serie, "tentativas": tentativas},
    )


def previsualizar_proximo_numero(*, emitente_id=None, emitente_cnpj=None, serie: int | None = None) -> dict:
    """
    Número que o próximo MDF-e do emitente receberia. Não reserva nada.
    """
    if emitente_id:
        emitente = Emitente.objects.filter(pk=emitente_id).first()
        if emitente is None:
            raise NaoEncontradoError("Emitente não encontrado.", details={"emitenteId": str(emitente_id)})
    else:
        emitente = buscar_ativo_por_chave(registros.EMITENTE, "cnpj", emitente_cnpj)

    serie = serie or serie_padrao(emitente)
    return {
        "emitente_id": emitente.pk,
        "serie": serie,
        "proximo_numero": calcular_proximo_numero(emitente.pk, serie),
    }
