# mdfe/views/mdfe_views.py

import logging

from rest_framework import status
from rest_framework.decorators import api_view, permission_classes
from rest_framework.exceptions import ValidationError as DRFValidationError
from rest_framework.permissions import IsAuthenticated
from rest_framework.response import Response

from commons.pagination import PaginacaoPadrao
from mdfe.filters import MdfeFilter
from mdfe.models import Mdfe
from mdfe.serializers.mdfe_serializers import (
    MdfeAtualizarSerializer,
    MdfeCriarSerializer,
    MdfeResumoSerializer,
    MdfeSerializer,
    ProximoNumeroQuerySerializer,
    ProximoNumeroSerializer,
)
from mdfe.services.mdfe_service import (
    atualizar_mdfe,
    criar_mdfe,
    duplicar_mdfe,
    excluir_mdfe,
    obter_mdfe,
)
from mdfe.services.numero_service import previsualizar_proximo_numero

logger = logging.getLogger("mdfe.api")


def _log_sucesso(evento: str, request, **extra):
    logger.info(
        evento,
        extra={
            "event": evento,
            "user_id": getattr(request.user, "id", None),
            "request_id": getattr(request, "request_id", None),
            "outcome": "success",
            **extra,
        },
    )


@api_view(["GET", "POST"])
@permission_classes([IsAuthenticated])
def mdfe_list_create(request):
    """
    GET  /api/v1/mdfe/   listagem paginada (status, emitenteId, serie, numero, search)
    POST /api/v1/mdfe/   cria o MDF-e em rascunho, já numerado
    """
    if request.method == "POST":
        ser_in = MdfeCriarSerializer(data=request.data)
        ser_in.is_valid(raise_exception=True)

        mdfe = criar_mdfe(ser_in.validated_data, user=request.user)
        _log_sucesso("mdfe_criar", request, mdfe_id=str(mdfe.id), numero=mdfe.numero)
        return Response(MdfeSerializer(mdfe).data, status=status.HTTP_201_CREATED)

    filtro = MdfeFilter(request.query_params, queryset=Mdfe.objects.all())
    if not filtro.is_valid():
        raise DRFValidationError(filtro.errors)

    paginador = PaginacaoPadrao()
    pagina = paginador.paginate_queryset(filtro.qs, request)
    return paginador.get_paginated_response(MdfeResumoSerializer(pagina, many=True).data)


@api_view(["GET", "PUT", "DELETE"])
@permission_classes([IsAuthenticated])
def mdfe_detail(request, mdfe_id):
    if request.method == "GET":
        return Response(MdfeSerializer(obter_mdfe(mdfe_id)).data)

    if request.method == "PUT":
        ser_in = MdfeAtualizarSerializer(data=request.data)
        ser_in.is_valid(raise_exception=True)

        mdfe = atualizar_mdfe(mdfe_id, ser_in.validated_data, user=request.user)
        _log_sucesso("mdfe_atualizar", request, mdfe_id=str(mdfe_id), status=mdfe.status)
        return Response(MdfeSerializer(mdfe).data)

    excluir_mdfe(mdfe_id, user=request.user)
    _log_sucesso("mdfe_excluir", request, mdfe_id=str(mdfe_id))
    return Response(status=status.HTTP_204_NO_CONTENT)


@api_view(["GET"])
@permission_classes([IsAuthenticated])
def proximo_numero(request):
    """
    GET /api/v1/mdfe/proximo-numero?emitenteCnpj=|emitenteId=&serie=
    """
    ser_in = ProximoNumeroQuerySerializer(data=request.query_params)
    ser_in.is_valid(raise_exception=True)

    dados = previsualizar_proximo_numero(**ser_in.validated_data)
    return Response(ProximoNumeroSerializer(dados).data)


@api_view(["POST"])
@permission_classes([IsAuthenticated])
def duplicar(request, mdfe_id):
    """
    POST /api/v1/mdfe/<id>/duplicar

    Novo rascunho, com o próximo número da série, a partir do MDF-e
    informado. Documentos fiscais não são copiados.
    """
    mdfe = duplicar_mdfe(mdfe_id, user=request.user)
    _log_sucesso(
        "mdfe_duplicar",
        request,
        mdfe_id=str(mdfe.id),
        mdfe_origem_id=str(mdfe_id),
        numero=mdfe.numero,
    )
    return Response(MdfeSerializer(mdfe).data, status=status.HTTP_201_CREATED)
