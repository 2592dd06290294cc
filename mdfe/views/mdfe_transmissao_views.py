# mdfe/views/mdfe_transmissao_views.py

import logging

from django.http import HttpResponse
from rest_framework.decorators import api_view, permission_classes
from rest_framework.permissions import IsAuthenticated
from rest_framework.response import Response

from mdfe.permissions import PodeGerarMdfe, PodeTransmitirMdfe
from mdfe.serializers.mdfe_serializers import (
    ConsultaSerializer,
    MdfeSerializer,
    StatusServicoSerializer,
    TransmitirSerializer,
)
from mdfe.services.transmissao_service import (
    consultar_recibo,
    consultar_status_servico,
    consultar_situacao,
    gerar_mdfe,
    imprimir_mdfe,
    transmitir_mdfe,
)

logger = logging.getLogger("mdfe.api")


def _extra(request, mdfe, **extra):
    return {
        "user_id": getattr(request.user, "id", None),
        "request_id": getattr(request, "request_id", None),
        "mdfe_id": str(mdfe.id),
        "status": mdfe.status,
        **extra,
    }


@api_view(["POST"])
@permission_classes([IsAuthenticated, PodeGerarMdfe])
def gerar(request, mdfe_id):
    """
    POST /api/v1/mdfe/<id>/gerar

    Monta o payload a partir do snapshot e assina no motor fiscal.
    """
    mdfe = gerar_mdfe(mdfe_id, user=request.user)
    logger.info("mdfe_gerar", extra={"event": "mdfe_gerar", "outcome": "success", **_extra(request, mdfe)})
    return Response(MdfeSerializer(mdfe).data)


@api_view(["POST"])
@permission_classes([IsAuthenticated, PodeTransmitirMdfe])
def transmitir(request, mdfe_id):
    """
    POST /api/v1/mdfe/<id>/transmitir  {"sincrono": true}

    Rejeição da SEFAZ não é erro HTTP: o MDF-e volta com status REJECTED
    e o código/motivo do retorno.
    """
    ser_in = TransmitirSerializer(data=request.data)
    ser_in.is_valid(raise_exception=True)

    mdfe = transmitir_mdfe(mdfe_id, sincrono=ser_in.validated_data["sincrono"], user=request.user)
    logger.info(
        "mdfe_transmitir",
        extra={
            "event": "mdfe_transmitir",
            "outcome": mdfe.status.lower(),
            **_extra(request, mdfe, codigo_sefaz=mdfe.codigo_status_sefaz),
        },
    )
    return Response(MdfeSerializer(mdfe).data)


@api_view(["POST"])
@permission_classes([IsAuthenticated])
def consultar_por_recibo(request, mdfe_id):
    consulta = consultar_recibo(mdfe_id, user=request.user)
    return Response(ConsultaSerializer(consulta).data)


@api_view(["POST"])
@permission_classes([IsAuthenticated])
def consultar(request, mdfe_id):
    consulta = consultar_situacao(mdfe_id, user=request.user)
    return Response(ConsultaSerializer(consulta).data)


@api_view(["GET"])
@permission_classes([IsAuthenticated])
def imprimir(request, mdfe_id):
    """
    GET /api/v1/mdfe/<id>/imprimir -> application/pdf (DAMDFE)
    """
    pdf = imprimir_mdfe(mdfe_id)
    response = HttpResponse(pdf, content_type="application/pdf")
    response["Content-Disposition"] = f'inline; filename="damdfe-{mdfe_id}.pdf"'
    return response


@api_view(["GET"])
@permission_classes([IsAuthenticated])
def status_servico(request, codigo_uf):
    """
    GET /api/v1/mdfe/status-servico/<codigo_uf>  (código IBGE ou sigla)

    Serviço fora de operação não é erro HTTP: emOperacao vem false com o
    código e a mensagem da SEFAZ.
    """
    resultado = consultar_status_servico(codigo_uf)
    return Response(StatusServicoSerializer(resultado).data)
