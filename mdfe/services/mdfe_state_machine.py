# mdfe/services/mdfe_state_machine.py

from __future__ import annotations

import logging
from typing import Iterable

from django.db import transaction

from commons.exceptions import TransicaoInvalidaError
from mdfe.models import Mdfe, MdfeStatus

logger = logging.getLogger("mdfe.fiscal")


TRANSICOES_VALIDAS: dict[str, set[str]] = {
    # Rascunho só sai por geração ou exclusão
    MdfeStatus.RASCUNHO: {
        MdfeStatus.GERADO,
        MdfeStatus.EXCLUIDO,
    },
    # Gerado volta a rascunho quando editado. A transmissão pode autorizar
    # direto (síncrona), rejeitar ou ficar pendente (assíncrona).
    MdfeStatus.GERADO: {
        MdfeStatus.RASCUNHO,
        MdfeStatus.TRANSMITIDO,
        MdfeStatus.AUTORIZADO,
        MdfeStatus.REJEITADO,
        MdfeStatus.EXCLUIDO,
    },
    MdfeStatus.TRANSMITIDO: {
        MdfeStatus.AUTORIZADO,
        MdfeStatus.REJEITADO,
        MdfeStatus.EXCLUIDO,
    },
    MdfeStatus.REJEITADO: {
        MdfeStatus.EXCLUIDO,
    },
    MdfeStatus.AUTORIZADO: {
        MdfeStatus.CANCELADO,
        MdfeStatus.ENCERRADO,
    },
    # Terminais
    MdfeStatus.CANCELADO: set(),
    MdfeStatus.ENCERRADO: set(),
    MdfeStatus.EXCLUIDO: set(),
}

STATUS_EDITAVEIS = frozenset({MdfeStatus.RASCUNHO, MdfeStatus.GERADO})


class MdfeStateMachine:
    """
    ÚNICO ponto autorizado a trocar o status do MDF-e.
    """

    @classmethod
    @transaction.atomic
    def mudar_status(
        cls,
        mdfe: Mdfe,
        novo_status: str,
        *,
        motivo: str | None = None,
        extra_context: dict | None = None,
        save: bool = True,
    ) -> None:
        """
        - Valida a transição a partir do status atual.
        - É idempotente (mesmo status não faz nada).
        - save=False apenas altera o atributo; quem chama grava.
        """
        status_atual = mdfe.status

        if status_atual == novo_status:
            logger.debug(
                "Transição de status idempotente ignorada.",
                extra={
                    "event": "mdfe_status_idempotente",
                    "mdfe_id": str(mdfe.id),
                    "status_atual": status_atual,
                },
            )
            return

        permitidos: Iterable[str] = TRANSICOES_VALIDAS.get(status_atual, set())
        if novo_status not in permitidos:
            raise TransicaoInvalidaError(
                f"Transição de {status_atual} para {novo_status} não é permitida.",
                details={"statusAtual": status_atual, "statusSolicitado": novo_status},
            )

        mdfe.status = novo_status
        if save:
            mdfe.save(update_fields=["status", "updated_at"])

        context = {
            "event": "mdfe_status_transicao",
            "mdfe_id": str(mdfe.id),
            "status_anterior": status_atual,
            "status_novo": novo_status,
            "motivo": motivo,
            "emitente_id": str(mdfe.emitente_id) if mdfe.emitente_id else None,
            "serie": mdfe.serie,
            "numero": mdfe.numero,
        }
        if extra_context:
            context.update(extra_context)

        logger.info("mdfe_status_transicao", extra=context)

    @classmethod
    def pode_transicionar(cls, mdfe: Mdfe, novo_status: str) -> bool:
        return mdfe.status == novo_status or novo_status in TRANSICOES_VALIDAS.get(mdfe.status, set())

    @classmethod
    def para_rascunho(cls, mdfe: Mdfe, **kwargs) -> None:
        cls.mudar_status(mdfe, MdfeStatus.RASCUNHO, **kwargs)

    @classmethod
    def para_gerado(cls, mdfe: Mdfe, **kwargs) -> None:
        cls.mudar_status(mdfe, MdfeStatus.GERADO, **kwargs)

    @classmethod
    def para_cancelado(cls, mdfe: Mdfe, **kwargs) -> None:
        cls.mudar_status(mdfe, MdfeStatus.CANCELADO, **kwargs)

    @classmethod
    def para_encerrado(cls, mdfe: Mdfe, **kwargs) -> None:
        cls.mudar_status(mdfe, MdfeStatus.ENCERRADO, **kwargs)

    @classmethod
    def para_excluido(cls, mdfe: Mdfe, **kwargs) -> None:
        cls.mudar_status(mdfe, MdfeStatus.EXCLUIDO, **kwargs)
