# mdfe/views/mdfe_eventos_views.py

import logging

from rest_framework.decorators import api_view, permission_classes
from rest_framework.permissions import IsAuthenticated
from rest_framework.response import Response

from mdfe.permissions import PodeCancelarMdfe, PodeEncerrarMdfe
from mdfe.serializers.mdfe_serializers import (
    CancelarSerializer,
    EncerrarSerializer,
    MdfeEventoSerializer,
    MdfeSerializer,
)
from mdfe.services.eventos_service import cancelar_mdfe, encerrar_mdfe, listar_eventos

logger = logging.getLogger("mdfe.api")


@api_view(["POST"])
@permission_classes([IsAuthenticated, PodeCancelarMdfe])
def cancelar(request, mdfe_id):
    """
    POST /api/v1/mdfe/<id>/cancelar  {"justificativa": "..."}
    """
    ser_in = CancelarSerializer(data=request.data)
    ser_in.is_valid(raise_exception=True)

    mdfe = cancelar_mdfe(mdfe_id, ser_in.validated_data["justificativa"], user=request.user)
    logger.info(
        "mdfe_cancelar",
        extra={
            "event": "mdfe_cancelar",
            "mdfe_id": str(mdfe.id),
            "user_id": getattr(request.user, "id", None),
            "outcome": "success",
        },
    )
    return Response(MdfeSerializer(mdfe).data)


@api_view(["POST"])
@permission_classes([IsAuthenticated, PodeEncerrarMdfe])
def encerrar(request, mdfe_id):
    """
    POST /api/v1/mdfe/<id>/encerrar  {"municipioDescarga": "3550308", "dataEncerramento": "2025-01-31"}
    """
    ser_in = EncerrarSerializer(data=request.data)
    ser_in.is_valid(raise_exception=True)
    dados = ser_in.validated_data

    mdfe = encerrar_mdfe(
        mdfe_id,
        dados["municipio_descarga"],
        dados.get("data_encerramento"),
        user=request.user,
    )
    logger.info(
        "mdfe_encerrar",
        extra={
            "event": "mdfe_encerrar",
            "mdfe_id": str(mdfe.id),
            "municipio": mdfe.municipio_encerramento,
            "user_id": getattr(request.user, "id", None),
            "outcome": "success",
        },
    )
    return Response(MdfeSerializer(mdfe).data)


@api_view(["GET"])
@permission_classes([IsAuthenticated])
def eventos(request, mdfe_id):
    return Response(MdfeEventoSerializer(listar_eventos(mdfe_id), many=True).data)
