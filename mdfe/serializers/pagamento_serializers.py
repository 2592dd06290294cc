# mdfe/serializers/pagamento_serializers.py

from rest_framework import serializers

from mdfe.models import TipoPagamento, TipoResponsavelSeguro


class ComponentePagamentoSerializer(serializers.Serializer):
    tipoComponente = serializers.CharField(source="tipo_componente", max_length=2)
    valor = serializers.DecimalField(max_digits=15, decimal_places=2)
    descricao = serializers.CharField(required=False, allow_blank=True, max_length=60)


class ValePedagioSerializer(serializers.Serializer):
    cnpjFornecedor = serializers.CharField(source="cnpj_fornecedor")
    numeroCompra = serializers.CharField(source="numero_compra", max_length=20)
    valor = serializers.DecimalField(max_digits=15, decimal_places=2)
    tipoVale = serializers.CharField(source="tipo_vale", required=False, max_length=2)
    nomeFornecedor = serializers.CharField(source="nome_fornecedor", required=False, allow_blank=True)
    cnpjPagador = serializers.CharField(source="cnpj_pagador", required=False, allow_blank=True)


class PagamentosInputSerializer(serializers.Serializer):
    """
    Valores e tipos são conferidos pelos dataclasses de mdfe.dto; aqui só a
    forma do payload.
    """

    componentes = ComponentePagamentoSerializer(many=True, required=False)
    valesPedagio = ValePedagioSerializer(source="vales_pedagio", many=True, required=False)
    tipoPagamento = serializers.ChoiceField(source="tipo_pagamento", choices=TipoPagamento.choices, required=False)
    valorTotalContrato = serializers.DecimalField(
        source="valor_total_contrato", max_digits=15, decimal_places=2, required=False, allow_null=True
    )


class PagamentosSerializer(serializers.Serializer):
    mdfeId = serializers.UUIDField(source="mdfe_id")
    componentes = ComponentePagamentoSerializer(many=True)
    valesPedagio = ValePedagioSerializer(source="vales_pedagio", many=True)
    semValePedagio = serializers.BooleanField(source="sem_vale_pedagio")
    valorTotalContrato = serializers.DecimalField(source="valor_total_contrato", max_digits=15, decimal_places=2)
    tipoPagamento = serializers.CharField(source="tipo_pagamento")


class SeguroInputSerializer(serializers.Serializer):
    tipoResponsavel = serializers.ChoiceField(source="tipo_responsavel", choices=TipoResponsavelSeguro.choices)
    cnpjResponsavel = serializers.CharField(source="cnpj_responsavel", required=False, allow_blank=True)
    cpfResponsavel = serializers.CharField(source="cpf_responsavel", required=False, allow_blank=True)
    seguradoraId = serializers.UUIDField(source="seguradora_id", required=False, allow_null=True)
    numeroApolice = serializers.CharField(source="numero_apolice", required=False, allow_blank=True, max_length=20)
    numerosAverbacao = serializers.ListField(
        source="numeros_averbacao",
        child=serializers.CharField(max_length=40),
        required=False,
    )


class SeguroSerializer(serializers.Serializer):
    mdfeId = serializers.UUIDField(source="id")
    tipoResponsavel = serializers.IntegerField(source="seguro_tipo_responsavel", allow_null=True)
    cnpjResponsavel = serializers.CharField(source="seguro_responsavel_cnpj")
    cpfResponsavel = serializers.CharField(source="seguro_responsavel_cpf")
    seguradoraId = serializers.UUIDField(source="seguradora_id", allow_null=True)
    seguradora = serializers.SerializerMethodField()
    numeroApolice = serializers.CharField(source="seguro_numero_apolice")
    numerosAverbacao = serializers.ListField(source="seguro_averbacoes", child=serializers.CharField())

    def get_seguradora(self, obj):
        if not obj.seguradora_id:
            return None
        return {
            "cnpj": obj.seguradora_cnpj,
            "razaoSocial": obj.seguradora_razao_social,
            "nomeFantasia": obj.seguradora_nome_fantasia,
            "codigoSusep": obj.seguradora_codigo_susep,
        }
