from rest_framework import serializers

from commons.documentos import codigo_uf, normalizar_uf, somente_digitos
from enderecos.models.uf_models import UF
from enderecos.models.municipio_models import Municipio


class UFSerializer(serializers.ModelSerializer):
    class Meta:
        model = UF
        fields = ['id', 'sigla', 'nome', 'codigo_ibge']

    def validate_sigla(self, value):
        sigla = normalizar_uf(value)
        if codigo_uf(sigla) is None:
            raise serializers.ValidationError("UF inexistente.")
        return sigla

    def validate(self, attrs):
        sigla = attrs.get("sigla", getattr(self.instance, "sigla", None))
        codigo = attrs.get("codigo_ibge", getattr(self.instance, "codigo_ibge", None))
        if codigo_uf(sigla) != codigo:
            raise serializers.ValidationError({"codigo_ibge": f"Código IBGE não corresponde à UF {sigla}."})
        return attrs


class MunicipioSerializer(serializers.ModelSerializer):
    uf_sigla = serializers.ReadOnlyField(source='uf.sigla')

    class Meta:
        model = Municipio
        fields = ['id', 'nome', 'codigo_ibge', 'uf', 'uf_sigla', 'ativo']

    def validate_codigo_ibge(self, value):
        codigo = somente_digitos(value)
        if len(codigo) != 7:
            raise serializers.ValidationError("Código IBGE deve ter 7 dígitos.")
        return codigo
