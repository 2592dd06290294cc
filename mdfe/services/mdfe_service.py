# mdfe/services/mdfe_service.py
"""
Criação, edição, exclusão e leitura do MDF-e.

Regras:
  - Emitente, veículo e condutor (e contratante, reboques e condutores
    adicionais, quando informados) precisam existir e estar ativos.
    Qualquer falha aborta antes de numerar: nada é criado.
  - Os dados dos cadastros são copiados para o manifesto (snapshot).
  - Edição só em RASCUNHO ou GERADO. Um MDF-e GERADO editado volta para
    RASCUNHO e perde o XML assinado, que não corresponde mais aos dados.
"""

from __future__ import annotations

import logging
from typing import Any, Iterable, Mapping

from django.db import transaction

from cadastros.services import registros
from cadastros.services.registro_service import obter_ativo
from commons.documentos import normalizar_uf, uf_valida
from commons.exceptions import NaoEncontradoError, TransicaoInvalidaError, ValidacaoError
from enderecos.services.municipio_service import resolver_municipios_ativos
from mdfe.models import (
    Mdfe,
    MdfeCondutorAdicional,
    MdfeLocal,
    MdfeReboque,
    MdfeStatus,
    TipoEventoMdfe,
    TipoLocal,
)
from mdfe.services import numero_service, snapshot_service
from mdfe.services.auditoria_service import registrar_evento
from mdfe.services.mdfe_state_machine import STATUS_EDITAVEIS, MdfeStateMachine

logger = logging.getLogger("mdfe.fiscal")

ERR_MDFE_NAO_EDITAVEL = "MDFE_NAO_EDITAVEL"
ERR_MDFE_NAO_EXCLUIVEL = "MDFE_NAO_EXCLUIVEL"

MAX_REBOQUES = 3
MAX_CONDUTORES_ADICIONAIS = 9

# Campos de viagem aceitos diretamente na criação/edição
CAMPOS_VIAGEM = (
    "data_emissao",
    "data_inicio_viagem",
    "uf_inicio",
    "uf_fim",
    "municipio_inicio",
    "municipio_fim",
    "ufs_percurso",
    "peso_bruto_total",
    "valor_carga",
    "unidade_medida",
    "tipo_transportador",
    "info_adicional",
    "info_fisco",
)

STATUS_EXCLUSAO_FISICA = frozenset({MdfeStatus.RASCUNHO, MdfeStatus.GERADO})
STATUS_EXCLUSAO_LOGICA = frozenset({MdfeStatus.TRANSMITIDO, MdfeStatus.REJEITADO})


def _usuario(user) -> str:
    return getattr(user, "username", "") or ""


def _prefetch(qs):
    return qs.select_related("emitente").prefetch_related(
        "reboques",
        "condutores_adicionais",
        "locais",
    )


# ---------------------------------------------------------------------------
# Leitura
# ---------------------------------------------------------------------------


def obter_mdfe(mdfe_id) -> Mdfe:
    """
    MDF-e excluído logicamente é tratado como inexistente.
    """
    mdfe = _prefetch(Mdfe.objects.filter(pk=mdfe_id)).first()
    if mdfe is None or mdfe.status == MdfeStatus.EXCLUIDO:
        raise NaoEncontradoError("MDF-e não encontrado.", details={"mdfeId": str(mdfe_id)})
    return mdfe


def carregar_para_alteracao(mdfe_id) -> Mdfe:
    """
    Lê o MDF-e travando a linha. Deve ser chamado dentro de transaction.atomic().
    """
    mdfe = Mdfe.objects.select_for_update().filter(pk=mdfe_id).first()
    if mdfe is None or mdfe.status == MdfeStatus.EXCLUIDO:
        raise NaoEncontradoError("MDF-e não encontrado.", details={"mdfeId": str(mdfe_id)})
    return mdfe


def exigir_editavel(mdfe: Mdfe) -> None:
    if mdfe.status not in STATUS_EDITAVEIS:
        raise TransicaoInvalidaError(
            f"MDF-e com status {mdfe.status} não pode ser alterado.",
            code=ERR_MDFE_NAO_EDITAVEL,
            details={"status": mdfe.status},
        )


def registrar_alteracao(mdfe: Mdfe, *, user=None, campos: Iterable[str] = ()) -> None:
    """
    Marca o MDF-e como alterado. Se já estava GERADO, descarta a geração e
    volta para RASCUNHO. Deve ser chamado com a linha travada.
    """
    mdfe.usuario_alteracao = _usuario(user)
    update_fields = {"usuario_alteracao", "updated_at", *campos}

    if mdfe.status == MdfeStatus.GERADO:
        mdfe.payload_json = None
        mdfe.payload_hash = ""
        mdfe.xml_assinado = ""
        mdfe.chave_gerada = ""
        mdfe.codigo_numerico = ""
        mdfe.codigo_verificador = ""
        mdfe.data_geracao = None
        update_fields |= {
            "payload_json",
            "payload_hash",
            "xml_assinado",
            "chave_gerada",
            "codigo_numerico",
            "codigo_verificador",
            "data_geracao",
        }
        MdfeStateMachine.para_rascunho(mdfe, motivo="alteracao_apos_geracao", save=False)
        update_fields.add("status")

    mdfe.save(update_fields=sorted(update_fields))


# ---------------------------------------------------------------------------
# Validação de entrada
# ---------------------------------------------------------------------------


def _validar_ufs(dados: Mapping[str, Any]) -> dict:
    normalizados: dict[str, Any] = {}
    for campo in ("uf_inicio", "uf_fim"):
        if campo in dados:
            uf = normalizar_uf(dados[campo])
            if not uf_valida(uf):
                raise ValidacaoError(f"UF inválida: {dados[campo]!r}.", details={campo: dados[campo]})
            normalizados[campo] = uf

    if "ufs_percurso" in dados:
        percurso = []
        for uf in dados["ufs_percurso"] or []:
            sigla = normalizar_uf(uf)
            if not uf_valida(sigla):
                raise ValidacaoError(f"UF de percurso inválida: {uf!r}.", details={"ufs_percurso": uf})
            percurso.append(sigla)
        if len(set(percurso)) != len(percurso):
            raise ValidacaoError("UF de percurso repetida.", details={"ufs_percurso": percurso})
        normalizados["ufs_percurso"] = percurso

    return normalizados


def _ids_sem_repeticao(ids: Iterable, campo: str, limite: int) -> list:
    ids = list(ids or [])
    if len(ids) > limite:
        raise ValidacaoError(f"Máximo de {limite} itens em {campo}.", details={campo: len(ids)})
    if len({str(i) for i in ids}) != len(ids):
        raise ValidacaoError(f"Itens repetidos em {campo}.", details={campo: [str(i) for i in ids]})
    return ids


def _resolver_reboques(ids: Iterable, placa_tracao: str = "") -> list:
    ids = _ids_sem_repeticao(ids, "reboques_ids", MAX_REBOQUES)
    reboques = [obter_ativo(registros.REBOQUE, rid, campo="reboques_ids") for rid in ids]
    if placa_tracao and any(r.placa == placa_tracao for r in reboques):
        raise ValidacaoError("Reboque não pode ter a mesma placa do veículo de tração.")
    return reboques


def _resolver_condutores_adicionais(ids: Iterable, condutor_principal_id=None) -> list:
    ids = _ids_sem_repeticao(ids, "condutores_adicionais_ids", MAX_CONDUTORES_ADICIONAIS)
    if condutor_principal_id is not None and str(condutor_principal_id) in {str(i) for i in ids}:
        raise ValidacaoError("Condutor principal não pode ser repetido como condutor adicional.")
    return [obter_ativo(registros.CONDUTOR, cid, campo="condutores_adicionais_ids") for cid in ids]


def _resolver_locais(dados: Mapping[str, Any]) -> dict[str, list]:
    """
    Municípios de carregamento/descarregamento informados, já resolvidos.
    Só devolve as chaves presentes em `dados`.
    """
    locais: dict[str, list] = {}
    campos = {
        TipoLocal.CARREGAMENTO: "municipios_carregamento",
        TipoLocal.DESCARREGAMENTO: "municipios_descarregamento",
    }
    for tipo, campo in campos.items():
        if campo not in dados:
            continue
        codigos = [str(c) for c in dados[campo] or []]
        if len(set(codigos)) != len(codigos):
            raise ValidacaoError(f"Município repetido em {campo}.", details={campo: codigos})
        encontrados = resolver_municipios_ativos(codigos) if codigos else {}
        locais[tipo] = [encontrados[c] for c in codigos]
    return locais


# ---------------------------------------------------------------------------
# Filhos ordenados
# ---------------------------------------------------------------------------


def _gravar_reboques(mdfe: Mdfe, reboques: list) -> None:
    mdfe.reboques.all().delete()
    MdfeReboque.objects.bulk_create(
        [
            MdfeReboque(mdfe=mdfe, ordem=ordem, **snapshot_service.snapshot_reboque(r))
            for ordem, r in enumerate(reboques, start=1)
        ]
    )


def _gravar_condutores_adicionais(mdfe: Mdfe, condutores: list) -> None:
    mdfe.condutores_adicionais.all().delete()
    MdfeCondutorAdicional.objects.bulk_create(
        [
            MdfeCondutorAdicional(mdfe=mdfe, ordem=ordem, **snapshot_service.snapshot_condutor_adicional(c))
            for ordem, c in enumerate(condutores, start=1)
        ]
    )


def _gravar_locais(mdfe: Mdfe, locais: dict[str, list]) -> None:
    for tipo, municipios in locais.items():
        mdfe.locais.filter(tipo=tipo).delete()
        MdfeLocal.objects.bulk_create(
            [
                MdfeLocal(
                    mdfe=mdfe,
                    tipo=tipo,
                    municipio=m,
                    codigo_ibge=m.codigo_ibge,
                    nome=m.nome,
                    ordem=ordem,
                )
                for ordem, m in enumerate(municipios, start=1)
            ]
        )


# ---------------------------------------------------------------------------
# Operações
# ---------------------------------------------------------------------------


def criar_mdfe(dados: Mapping[str, Any], *, user=None) -> Mdfe:
    emitente = obter_ativo(registros.EMITENTE, dados.get("emitente_id"), campo="emitenteId")
    veiculo = obter_ativo(registros.VEICULO, dados.get("veiculo_id"), campo="veiculoId")
    condutor = obter_ativo(registros.CONDUTOR, dados.get("condutor_id"), campo="condutorId")

    contratante = None
    if dados.get("contratante_id"):
        contratante = obter_ativo(registros.CONTRATANTE, dados["contratante_id"], campo="contratanteId")

    reboques = _resolver_reboques(dados.get("reboques_ids"), veiculo.placa)
    condutores_adicionais = _resolver_condutores_adicionais(
        dados.get("condutores_adicionais_ids"), condutor.pk
    )
    locais = _resolver_locais(dados)

    campos = {c: dados[c] for c in CAMPOS_VIAGEM if c in dados and dados[c] is not None}
    campos.update(_validar_ufs(dados))
    if "uf_inicio" not in campos or "uf_fim" not in campos:
        raise ValidacaoError("UF inicial e UF final são obrigatórias.")

    serie = dados.get("serie") or numero_service.serie_padrao(emitente)

    def _criar(numero: int) -> Mdfe:
        mdfe = Mdfe.objects.create(
            emitente=emitente,
            veiculo=veiculo,
            condutor=condutor,
            contratante=contratante,
            serie=serie,
            numero=numero,
            status=MdfeStatus.RASCUNHO,
            usuario_criacao=_usuario(user),
            usuario_alteracao=_usuario(user),
            **campos,
            **snapshot_service.snapshot_emitente(emitente),
            **snapshot_service.snapshot_veiculo(veiculo),
            **snapshot_service.snapshot_condutor(condutor),
            **snapshot_service.snapshot_contratante(contratante),
        )
        _gravar_reboques(mdfe, reboques)
        _gravar_condutores_adicionais(mdfe, condutores_adicionais)
        _gravar_locais(mdfe, locais)
        return mdfe

    mdfe = numero_service.criar_com_proximo_numero(emitente.pk, serie, _criar)

    logger.info(
        "mdfe_criado",
        extra={
            "event": "mdfe_criado",
            "mdfe_id": str(mdfe.id),
            "emitente_id": str(emitente.pk),
            "serie": mdfe.serie,
            "numero": mdfe.numero,
            "user_id": getattr(user, "id", None),
            "outcome": "success",
        },
    )
    return obter_mdfe(mdfe.id)


def atualizar_mdfe(mdfe_id, dados: Mapping[str, Any], *, user=None) -> Mdfe:
    """
    Atualiza os dados de viagem e, quando os ids mudam, refaz o snapshot
    de veículo, condutor ou contratante. Ids iguais aos atuais não relêem o
    cadastro, então o snapshot original é mantido.
    """
    with transaction.atomic():
        mdfe = carregar_para_alteracao(mdfe_id)
        exigir_editavel(mdfe)

        campos = {c: dados[c] for c in CAMPOS_VIAGEM if c in dados and c not in ("uf_inicio", "uf_fim", "ufs_percurso")}
        campos.update(_validar_ufs(dados))

        veiculo_id = dados.get("veiculo_id")
        if veiculo_id and str(veiculo_id) != str(mdfe.veiculo_id):
            veiculo = obter_ativo(registros.VEICULO, veiculo_id, campo="veiculoId")
            campos["veiculo"] = veiculo
            campos.update(snapshot_service.snapshot_veiculo(veiculo))

        condutor_id = dados.get("condutor_id")
        if condutor_id and str(condutor_id) != str(mdfe.condutor_id):
            condutor = obter_ativo(registros.CONDUTOR, condutor_id, campo="condutorId")
            campos["condutor"] = condutor
            campos.update(snapshot_service.snapshot_condutor(condutor))

        if "contratante_id" in dados and str(dados["contratante_id"] or "") != str(mdfe.contratante_id or ""):
            contratante = (
                obter_ativo(registros.CONTRATANTE, dados["contratante_id"], campo="contratanteId")
                if dados["contratante_id"]
                else None
            )
            campos["contratante"] = contratante
            campos.update(snapshot_service.snapshot_contratante(contratante))

        # placa de tração do snapshot, já com a troca de veículo aplicada
        placa_tracao = campos.get("veiculo_placa", mdfe.veiculo_placa)
        reboques = None
        if "reboques_ids" in dados:
            reboques = _resolver_reboques(dados["reboques_ids"], placa_tracao)

        condutores_adicionais = None
        if "condutores_adicionais_ids" in dados:
            condutores_adicionais = _resolver_condutores_adicionais(
                dados["condutores_adicionais_ids"],
                getattr(campos.get("condutor"), "pk", mdfe.condutor_id),
            )
        locais = _resolver_locais(dados)

        for campo, valor in campos.items():
            setattr(mdfe, campo, valor)

        if reboques is not None:
            _gravar_reboques(mdfe, reboques)
        if condutores_adicionais is not None:
            _gravar_condutores_adicionais(mdfe, condutores_adicionais)
        _gravar_locais(mdfe, locais)

        registrar_alteracao(mdfe, user=user, campos=campos.keys())

    logger.info(
        "mdfe_atualizado",
        extra={
            "event": "mdfe_atualizado",
            "mdfe_id": str(mdfe.id),
            "campos": sorted(campos),
            "status": mdfe.status,
            "user_id": getattr(user, "id", None),
            "outcome": "success",
        },
    )
    return obter_mdfe(mdfe.id)


def excluir_mdfe(mdfe_id, *, user=None) -> None:
    """
    - RASCUNHO/GERADO: exclusão física (nunca foi à SEFAZ).
    - TRANSMITIDO/REJEITADO: exclusão lógica (status DELETED), preservando
      numeração e histórico.
    - AUTORIZADO/CANCELADO/ENCERRADO: proibido.
    """
    with transaction.atomic():
        mdfe = carregar_para_alteracao(mdfe_id)
        status_anterior = mdfe.status

        if status_anterior in STATUS_EXCLUSAO_FISICA:
            mdfe.delete()
            modo = "fisica"
        elif status_anterior in STATUS_EXCLUSAO_LOGICA:
            MdfeStateMachine.para_excluido(mdfe, motivo="exclusao")
            mdfe.usuario_alteracao = _usuario(user)
            mdfe.save(update_fields=["usuario_alteracao", "updated_at"])
            registrar_evento(
                mdfe,
                TipoEventoMdfe.EXCLUSAO,
                status_anterior=status_anterior,
                status_novo=mdfe.status,
                user=user,
            )
            modo = "logica"
        else:
            raise TransicaoInvalidaError(
                f"MDF-e com status {status_anterior} não pode ser excluído.",
                code=ERR_MDFE_NAO_EXCLUIVEL,
                details={"status": status_anterior},
            )

    logger.info(
        "mdfe_excluido",
        extra={
            "event": "mdfe_excluido",
            "mdfe_id": str(mdfe_id),
            "status_anterior": status_anterior,
            "modo": modo,
            "user_id": getattr(user, "id", None),
            "outcome": "success",
        },
    )



# Colunas que pertencem à emissão, não ao conteúdo do manifesto
CAMPOS_NAO_DUPLICADOS = frozenset(
    {
        "id",
        "numero",
        "modelo",
        "status",
        "chave_acesso",
        "chave_gerada",
        "codigo_numerico",
        "codigo_verificador",
        "codigo_status_sefaz",
        "motivo_sefaz",
        "numero_recibo",
        "protocolo_autorizacao",
        "transmitido",
        "data_emissao",
        "data_inicio_viagem",
        "payload_json",
        "payload_hash",
        "xml_assinado",
        "xml_autorizado",
        "data_geracao",
        "data_transmissao",
        "data_autorizacao",
        "data_cancelamento",
        "data_encerramento",
        "municipio_encerramento",
        "usuario_criacao",
        "usuario_alteracao",
        "created_at",
        "updated_at",
    }
)


def _copiar_colunas(obj, excluir=("id", "mdfe_id")) -> dict:
    return {
        f.attname: getattr(obj, f.attname)
        for f in obj._meta.concrete_fields
        if f.attname not in excluir
    }


def duplicar_mdfe(mdfe_id, *, user=None) -> Mdfe:
    """
    Cria um RASCUNHO com o próximo número da série a partir de um MDF-e
    existente, em qualquer status.

    Copia snapshots, viagem, percurso, reboques, condutores adicionais,
    locais, pagamento e seguro. Documentos fiscais não são copiados: a
    chave de um documento só pode estar em um MDF-e.
    """
    original = obter_mdfe(mdfe_id)

    campos = _copiar_colunas(original, excluir=CAMPOS_NAO_DUPLICADOS)
    reboques = [_copiar_colunas(r) for r in original.reboques.all()]
    condutores = [_copiar_colunas(c) for c in original.condutores_adicionais.all()]
    locais = [_copiar_colunas(local) for local in original.locais.all()]

    def _criar(numero: int) -> Mdfe:
        mdfe = Mdfe.objects.create(
            numero=numero,
            status=MdfeStatus.RASCUNHO,
            usuario_criacao=_usuario(user),
            usuario_alteracao=_usuario(user),
            **campos,
        )
        MdfeReboque.objects.bulk_create([MdfeReboque(mdfe=mdfe, **r) for r in reboques])
        MdfeCondutorAdicional.objects.bulk_create(
            [MdfeCondutorAdicional(mdfe=mdfe, **c) for c in condutores]
        )
        MdfeLocal.objects.bulk_create([MdfeLocal(mdfe=mdfe, **local) for local in locais])
        return mdfe

    mdfe = numero_service.criar_com_proximo_numero(original.emitente_id, original.serie, _criar)

    logger.info(
        "mdfe_duplicado",
        extra={
            "event": "mdfe_duplicado",
            "mdfe_id": str(mdfe.id),
            "mdfe_origem_id": str(original.id),
            "serie": mdfe.serie,
            "numero": mdfe.numero,
            "user_id": getattr(user, "id", None),
            "outcome": "success",
        },
    )
    return obter_mdfe(mdfe.id)
