# mdfe/serializers/documentos_serializers.py

from rest_framework import serializers

from mdfe.models import TipoDocumentoFiscal, TipoUnidadeCarga, TipoUnidadeTransporte


def _lacres_field(**kwargs):
    return serializers.ListField(child=serializers.CharField(allow_blank=True), required=False, **kwargs)


# ---------------------------------------------------------------------------
# Entrada
# ---------------------------------------------------------------------------


class UnidadeCargaInputSerializer(serializers.Serializer):
    tipo = serializers.ChoiceField(choices=TipoUnidadeCarga.choices)
    identificacao = serializers.CharField(max_length=20)
    quantidadeRateada = serializers.DecimalField(
        source="quantidade_rateada", max_digits=7, decimal_places=2, required=False, allow_null=True
    )
    lacres = _lacres_field()


class UnidadeTransporteInputSerializer(serializers.Serializer):
    tipo = serializers.ChoiceField(choices=TipoUnidadeTransporte.choices)
    identificacao = serializers.CharField(max_length=20)
    quantidadeRateada = serializers.DecimalField(
        source="quantidade_rateada", max_digits=7, decimal_places=2, required=False, allow_null=True
    )
    tara = serializers.IntegerField(required=False, allow_null=True, min_value=0)
    capacidade = serializers.IntegerField(source="capacidade_kg", required=False, allow_null=True, min_value=0)
    lacres = _lacres_field()
    unidadesCarga = UnidadeCargaInputSerializer(source="unidades_carga", many=True, required=False)


class ProdutoPerigosoInputSerializer(serializers.Serializer):
    """
    Completude (nº ONU, classe e quantidade juntos) é conferida no serviço.
    """

    numeroOnu = serializers.CharField(source="numero_onu", required=False, allow_blank=True, max_length=4)
    nomeApropriado = serializers.CharField(source="nome_apropriado", required=False, allow_blank=True, max_length=150)
    classeRisco = serializers.CharField(source="classe_risco", required=False, allow_blank=True, max_length=40)
    grupoEmbalagem = serializers.CharField(source="grupo_embalagem", required=False, allow_blank=True, max_length=6)
    quantidadeTotal = serializers.CharField(source="quantidade_total", required=False, allow_blank=True, max_length=20)
    quantidadeVolumeTipo = serializers.CharField(
        source="quantidade_volume_tipo", required=False, allow_blank=True, max_length=60
    )


class EntregaParcialInputSerializer(serializers.Serializer):
    quantidadeTotal = serializers.DecimalField(
        source="quantidade_total", max_digits=15, decimal_places=4, required=False, allow_null=True, min_value=0
    )
    quantidadeParcial = serializers.DecimalField(
        source="quantidade_parcial", max_digits=15, decimal_places=4, required=False, allow_null=True, min_value=0
    )


class DocumentoInputSerializer(serializers.Serializer):
    chave = serializers.CharField()
    segundoCodigoBarras = serializers.CharField(
        source="segundo_codigo_barras", required=False, allow_blank=True, max_length=36
    )
    indicadorReentrega = serializers.BooleanField(source="indicador_reentrega", required=False)
    indicadorPrestacaoParcial = serializers.BooleanField(source="indicador_prestacao_parcial", required=False)
    pinSuframa = serializers.CharField(source="pin_suframa", required=False, allow_blank=True, max_length=9)
    dataPrevistaEntrega = serializers.DateField(source="data_prevista_entrega", required=False, allow_null=True)
    quantidadeRateada = serializers.DecimalField(
        source="quantidade_rateada", max_digits=7, decimal_places=2, required=False, allow_null=True
    )
    unidadesTransporte = UnidadeTransporteInputSerializer(source="unidades_transporte", many=True, required=False)
    produtosPerigosos = ProdutoPerigosoInputSerializer(source="produtos_perigosos", many=True, required=False)
    entregaParcial = EntregaParcialInputSerializer(source="entrega_parcial", required=False, allow_null=True)


class MunicipioDescargaInputSerializer(serializers.Serializer):
    codigoIbge = serializers.CharField(source="codigo_ibge")
    documentosCte = DocumentoInputSerializer(source="documentos_cte", many=True, required=False)
    documentosNfe = DocumentoInputSerializer(source="documentos_nfe", many=True, required=False)
    documentosMdfeTransp = DocumentoInputSerializer(source="documentos_mdfe_transp", many=True, required=False)


class DocumentosInputSerializer(serializers.Serializer):
    municipiosDescarga = MunicipioDescargaInputSerializer(source="municipios_descarga", many=True, required=False)
    unidadesTransporte = UnidadeTransporteInputSerializer(source="unidades_transporte", many=True, required=False)
    lacresRodoviarios = _lacres_field(source="lacres_rodoviarios")


# ---------------------------------------------------------------------------
# Saída
# ---------------------------------------------------------------------------


class UnidadeCargaSerializer(serializers.Serializer):
    ordem = serializers.IntegerField()
    tipo = serializers.CharField()
    identificacao = serializers.CharField()
    quantidadeRateada = serializers.DecimalField(
        source="quantidade_rateada", max_digits=7, decimal_places=2, allow_null=True
    )
    lacres = serializers.ListField(child=serializers.CharField())


class UnidadeTransporteSerializer(serializers.Serializer):
    ordem = serializers.IntegerField()
    tipo = serializers.CharField()
    identificacao = serializers.CharField()
    quantidadeRateada = serializers.DecimalField(
        source="quantidade_rateada", max_digits=7, decimal_places=2, allow_null=True
    )
    tara = serializers.IntegerField(allow_null=True)
    capacidade = serializers.IntegerField(source="capacidade_kg", allow_null=True)
    lacres = serializers.ListField(child=serializers.CharField())
    unidadesCarga = UnidadeCargaSerializer(source="unidades_carga", many=True)


class ProdutoPerigosoSerializer(serializers.Serializer):
    numeroOnu = serializers.CharField(source="numero_onu")
    nomeApropriado = serializers.CharField(source="nome_apropriado")
    classeRisco = serializers.CharField(source="classe_risco")
    grupoEmbalagem = serializers.CharField(source="grupo_embalagem")
    quantidadeTotal = serializers.CharField(source="quantidade_total")
    quantidadeVolumeTipo = serializers.CharField(source="quantidade_volume_tipo")


class DocumentoSerializer(serializers.Serializer):
    ordem = serializers.IntegerField()
    chave = serializers.CharField()
    segundoCodigoBarras = serializers.CharField(source="segundo_codigo_barras")
    indicadorReentrega = serializers.BooleanField(source="indicador_reentrega")
    indicadorPrestacaoParcial = serializers.BooleanField(source="indicador_prestacao_parcial")
    pinSuframa = serializers.CharField(source="pin_suframa")
    dataPrevistaEntrega = serializers.DateField(source="data_prevista_entrega", allow_null=True)
    quantidadeRateada = serializers.DecimalField(
        source="quantidade_rateada", max_digits=7, decimal_places=2, allow_null=True
    )
    unidadesTransporte = UnidadeTransporteSerializer(source="unidades_transporte", many=True)
    produtosPerigosos = ProdutoPerigosoSerializer(source="produtos_perigosos", many=True)
    entregaParcial = serializers.SerializerMethodField()

    def get_entregaParcial(self, obj):
        if obj.entrega_parcial_quantidade_total is None and obj.entrega_parcial_quantidade_parcial is None:
            return None
        return {
            "quantidadeTotal": _decimal_str(obj.entrega_parcial_quantidade_total),
            "quantidadeParcial": _decimal_str(obj.entrega_parcial_quantidade_parcial),
        }


def _decimal_str(valor):
    return None if valor is None else str(valor)


class MunicipioDescargaSerializer(serializers.Serializer):
    ordem = serializers.IntegerField()
    codigoIbge = serializers.CharField(source="codigo_ibge")
    nome = serializers.CharField()
    documentosCte = serializers.SerializerMethodField()
    documentosNfe = serializers.SerializerMethodField()
    documentosMdfeTransp = serializers.SerializerMethodField()

    def _documentos(self, obj, tipo):
        documentos = sorted(
            (d for d in obj.documentos.all() if d.tipo == tipo),
            key=lambda d: d.ordem,
        )
        return DocumentoSerializer(documentos, many=True).data

    def get_documentosCte(self, obj):
        return self._documentos(obj, TipoDocumentoFiscal.CTE)

    def get_documentosNfe(self, obj):
        return self._documentos(obj, TipoDocumentoFiscal.NFE)

    def get_documentosMdfeTransp(self, obj):
        return self._documentos(obj, TipoDocumentoFiscal.MDFE)


class DocumentosSerializer(serializers.Serializer):
    """
    Saída de DocumentosResumo.
    """

    mdfeId = serializers.UUIDField(source="mdfe.id")
    municipiosDescarga = MunicipioDescargaSerializer(source="municipios_descarga", many=True)
    unidadesTransporte = UnidadeTransporteSerializer(source="unidades_transporte", many=True)
    lacresRodoviarios = serializers.ListField(source="lacres_rodoviarios", child=serializers.CharField())
    totalDocumentosCte = serializers.IntegerField(source="totais.total_documentos_cte")
    totalDocumentosNfe = serializers.IntegerField(source="totais.total_documentos_nfe")
    totalDocumentosMdfeTransp = serializers.IntegerField(source="totais.total_documentos_mdfe_transp")
    totalLacres = serializers.IntegerField(source="totais.total_lacres")
