# mdfe/views/mdfe_documentos_views.py

from rest_framework.decorators import api_view, permission_classes
from rest_framework.permissions import IsAuthenticated
from rest_framework.response import Response

from mdfe.serializers.documentos_serializers import DocumentosInputSerializer, DocumentosSerializer
from mdfe.serializers.pagamento_serializers import (
    PagamentosInputSerializer,
    PagamentosSerializer,
    SeguroInputSerializer,
    SeguroSerializer,
)
from mdfe.services.documentos_service import definir_documentos, obter_documentos
from mdfe.services.pagamento_service import (
    definir_pagamentos,
    definir_seguro,
    obter_pagamentos,
    obter_seguro,
)


@api_view(["GET", "POST"])
@permission_classes([IsAuthenticated])
def documentos_fiscais(request, mdfe_id):
    """
    POST substitui todos os documentos do MDF-e; GET devolve o conjunto atual
    agrupado por município de descarga, com os totais.
    """
    if request.method == "POST":
        ser_in = DocumentosInputSerializer(data=request.data)
        ser_in.is_valid(raise_exception=True)
        resumo = definir_documentos(mdfe_id, ser_in.validated_data, user=request.user)
    else:
        resumo = obter_documentos(mdfe_id)
    return Response(DocumentosSerializer(resumo).data)


@api_view(["GET", "PUT"])
@permission_classes([IsAuthenticated])
def pagamentos(request, mdfe_id):
    if request.method == "PUT":
        ser_in = PagamentosInputSerializer(data=request.data)
        ser_in.is_valid(raise_exception=True)
        dados = definir_pagamentos(mdfe_id, ser_in.validated_data, user=request.user)
    else:
        dados = obter_pagamentos(mdfe_id)
    return Response(PagamentosSerializer(dados).data)


@api_view(["GET", "PUT"])
@permission_classes([IsAuthenticated])
def seguro(request, mdfe_id):
    if request.method == "PUT":
        ser_in = SeguroInputSerializer(data=request.data)
        ser_in.is_valid(raise_exception=True)
        mdfe = definir_seguro(mdfe_id, ser_in.validated_data, user=request.user)
    else:
        mdfe = obter_seguro(mdfe_id)
    return Response(SeguroSerializer(mdfe).data)
