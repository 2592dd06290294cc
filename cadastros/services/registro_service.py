# cadastros/services/registro_service.py
"""
Serviço genérico dos cadastros de referência.

Cada cadastro é descrito por um RegistroConfig: model, chaves naturais,
normalizadores por campo, validação extra e guarda de exclusão. As funções
deste módulo recebem o config como parâmetro; não há subclasse por entidade.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Callable, Mapping, Optional, Sequence

from django.db import IntegrityError, transaction
from django.db.models import Model, ProtectedError, Q

from commons.exceptions import ConflitoError, NaoEncontradoError, ValidacaoError

logger = logging.getLogger("mdfe.cadastros")

ERR_CHAVE_DUPLICADA = "CADASTRO_CHAVE_DUPLICADA"
ERR_REGISTRO_REFERENCIADO = "CADASTRO_REFERENCIADO"
ERR_REGISTRO_INATIVO = "CADASTRO_INATIVO"


@dataclass(frozen=True)
class RegistroConfig:
    model: type[Model]
    rotulo: str
    # Cada tupla é uma chave natural; basta uma colidir para rejeitar.
    chaves_naturais: Sequence[tuple[str, ...]]
    normalizadores: Mapping[str, Callable[[Any], Any]] = field(default_factory=dict)
    validar: Optional[Callable[[dict], None]] = None
    contar_referencias: Optional[Callable[[Model], int]] = None


def normalizar_dados(config: RegistroConfig, dados: Mapping[str, Any]) -> dict:
    normalizados = dict(dados)
    for campo, normalizador in config.normalizadores.items():
        if campo in normalizados:
            normalizados[campo] = normalizador(normalizados[campo])
    return normalizados


def _estado_final(config: RegistroConfig, dados: Mapping[str, Any], instancia: Optional[Model]) -> dict:
    """
    Valores que o registro terá após a gravação (instância atual + alterações).
    """
    estado: dict[str, Any] = {}
    if instancia is not None:
        for f in config.model._meta.concrete_fields:
            estado[f.attname] = getattr(instancia, f.attname)
    estado.update(dados)
    estado.setdefault("ativo", True)
    return estado


def validar_chave_unica(
    config: RegistroConfig,
    dados: Mapping[str, Any],
    *,
    instancia: Optional[Model] = None,
) -> None:
    """
    Rejeita chave natural duplicada entre registros ativos, excluindo o
    próprio registro em edições. Registros inativos não participam.
    """
    estado = _estado_final(config, dados, instancia)
    if not estado.get("ativo"):
        return

    for chave in config.chaves_naturais:
        valores = {campo: estado.get(campo) for campo in chave}
        if any(v in (None, "") for v in valores.values()):
            continue

        qs = config.model.objects.filter(ativo=True, **valores)
        if instancia is not None:
            qs = qs.exclude(pk=instancia.pk)

        if qs.exists():
            descricao = ", ".join(f"{k}={v}" for k, v in valores.items())
            raise ConflitoError(
                f"Já existe {config.rotulo} ativo com {descricao}.",
                code=ERR_CHAVE_DUPLICADA,
                details=valores,
            )


def _validar(config: RegistroConfig, dados: Mapping[str, Any], instancia: Optional[Model]) -> None:
    if config.validar is not None:
        config.validar(_estado_final(config, dados, instancia))
    validar_chave_unica(config, dados, instancia=instancia)


def criar_registro(config: RegistroConfig, dados: Mapping[str, Any], *, user=None) -> Model:
    dados = normalizar_dados(config, dados)
    _validar(config, dados, None)

    try:
        with transaction.atomic():
            instancia = config.model.objects.create(**dados)
    except IntegrityError as exc:
        # corrida entre dois cadastros simultâneos: a constraint parcial decide
        raise ConflitoError(
            f"Já existe {config.rotulo} ativo com a mesma chave.",
            code=ERR_CHAVE_DUPLICADA,
            details={"erro": str(exc)},
        )

    logger.info(
        "cadastro_criado",
        extra={
            "event": "cadastro_criado",
            "entidade": config.rotulo,
            "registro_id": str(instancia.pk),
            "user_id": getattr(user, "id", None),
        },
    )
    return instancia


def atualizar_registro(
    config: RegistroConfig,
    instancia: Model,
    dados: Mapping[str, Any],
    *,
    user=None,
) -> Model:
    dados = normalizar_dados(config, dados)
    _validar(config, dados, instancia)

    for campo, valor in dados.items():
        setattr(instancia, campo, valor)

    try:
        with transaction.atomic():
            instancia.save()
    except IntegrityError as exc:
        raise ConflitoError(
            f"Já existe {config.rotulo} ativo com a mesma chave.",
            code=ERR_CHAVE_DUPLICADA,
            details={"erro": str(exc)},
        )

    logger.info(
        "cadastro_atualizado",
        extra={
            "event": "cadastro_atualizado",
            "entidade": config.rotulo,
            "registro_id": str(instancia.pk),
            "campos": sorted(dados.keys()),
            "user_id": getattr(user, "id", None),
        },
    )
    return instancia


def excluir_registro(config: RegistroConfig, instancia: Model, *, user=None) -> None:
    """
    Exclusão física, bloqueada enquanto algum MDF-e referenciar o registro.
    Para retirar de uso sem excluir, desative (ativo=False).
    """
    referencias = config.contar_referencias(instancia) if config.contar_referencias else 0
    if referencias:
        raise ConflitoError(
            f"{config.rotulo.capitalize()} está vinculado a {referencias} MDF-e(s) "
            "e não pode ser excluído. Desative o cadastro.",
            code=ERR_REGISTRO_REFERENCIADO,
            details={"referencias": referencias},
        )

    registro_id = str(instancia.pk)
    try:
        with transaction.atomic():
            instancia.delete()
    except ProtectedError:
        raise ConflitoError(
            f"{config.rotulo.capitalize()} possui vínculos e não pode ser excluído.",
            code=ERR_REGISTRO_REFERENCIADO,
        )

    logger.info(
        "cadastro_excluido",
        extra={
            "event": "cadastro_excluido",
            "entidade": config.rotulo,
            "registro_id": registro_id,
            "user_id": getattr(user, "id", None),
        },
    )


def obter_ativo(config: RegistroConfig, registro_id, *, campo: str | None = None) -> Model:
    """
    Busca usada pelo MDF-e: o registro precisa existir e estar ativo.
    Ausência/inatividade é erro de validação da requisição que o referencia.
    """
    instancia = config.model.objects.filter(pk=registro_id).first() if registro_id else None
    if instancia is None or not instancia.esta_ativo():
        raise ValidacaoError(
            f"{config.rotulo.capitalize()} não encontrado ou inativo.",
            code=ERR_REGISTRO_INATIVO,
            details={campo or "id": str(registro_id) if registro_id else None},
        )
    return instancia


def buscar_ativo_por_chave(config: RegistroConfig, campo: str, valor: Any) -> Model:
    """
    Consulta por chave natural, aplicando a mesma normalização do cadastro.
    """
    valor = normalizar_dados(config, {campo: valor})[campo]
    instancia = (
        config.model.objects.filter(Q(ativo=True), **{campo: valor}).first()
        if valor not in (None, "")
        else None
    )
    if instancia is None:
        raise NaoEncontradoError(
            f"{config.rotulo.capitalize()} com {campo}={valor} não encontrado.",
        )
    return instancia
