from rest_framework import serializers

from cadastros.models import Condutor, Contratante, Emitente, Reboque, Seguradora, Veiculo
from cadastros.services import registros
from cadastros.services.registro_service import normalizar_dados


class RegistroSerializer(serializers.ModelSerializer):
    """
    Normaliza as chaves naturais antes da validação dos campos, com os
    mesmos normalizadores do serviço de cadastro. A unicidade entre ativos
    é decidida no serviço (409), não pelos validators gerados pelo DRF.
    """

    registro = None

    def to_internal_value(self, data):
        if hasattr(data, "dict"):
            data = data.dict()
        if self.registro is not None and hasattr(data, "items"):
            data = normalizar_dados(self.registro, data)
        return super().to_internal_value(data)


def _sem_validador_de_unicidade(*campos):
    return {campo: {"validators": []} for campo in campos}


class EmitenteSerializer(RegistroSerializer):
    registro = registros.EMITENTE
    documento = serializers.ReadOnlyField()

    class Meta:
        model = Emitente
        fields = [
            "id", "cnpj", "cpf", "documento", "ie", "razao_social", "nome_fantasia",
            "endereco", "numero", "complemento", "bairro", "codigo_municipio",
            "municipio", "cep", "uf", "telefone", "email", "tipo_emitente", "rntrc",
            "ambiente_sefaz", "serie_mdfe", "ativo", "created_at", "updated_at",
        ]
        read_only_fields = ["created_at", "updated_at"]
        extra_kwargs = _sem_validador_de_unicidade("cnpj", "cpf")
        validators = []


class VeiculoSerializer(RegistroSerializer):
    registro = registros.VEICULO
    tipo_rodado_display = serializers.CharField(source="get_tipo_rodado_display", read_only=True)

    class Meta:
        model = Veiculo
        fields = [
            "id", "placa", "renavam", "marca", "tara", "capacidade_kg", "tipo_rodado",
            "tipo_rodado_display", "tipo_carroceria", "uf", "ativo", "created_at", "updated_at",
        ]
        read_only_fields = ["created_at", "updated_at"]
        extra_kwargs = _sem_validador_de_unicidade("placa")
        validators = []


class CondutorSerializer(RegistroSerializer):
    registro = registros.CONDUTOR

    class Meta:
        model = Condutor
        fields = ["id", "nome", "cpf", "telefone", "ativo", "created_at", "updated_at"]
        read_only_fields = ["created_at", "updated_at"]
        extra_kwargs = _sem_validador_de_unicidade("cpf")
        validators = []


class ReboqueSerializer(RegistroSerializer):
    registro = registros.REBOQUE

    class Meta:
        model = Reboque
        fields = [
            "id", "placa", "renavam", "tara", "capacidade_kg", "tipo_carroceria", "uf",
            "rntrc", "ativo", "created_at", "updated_at",
        ]
        read_only_fields = ["created_at", "updated_at"]
        extra_kwargs = _sem_validador_de_unicidade("placa")
        validators = []


class ContratanteSerializer(RegistroSerializer):
    registro = registros.CONTRATANTE
    documento = serializers.ReadOnlyField()

    class Meta:
        model = Contratante
        fields = [
            "id", "cnpj", "cpf", "documento", "razao_social", "nome_fantasia", "endereco",
            "numero", "complemento", "bairro", "codigo_municipio", "municipio", "cep", "uf",
            "telefone", "email", "ativo", "created_at", "updated_at",
        ]
        read_only_fields = ["created_at", "updated_at"]
        extra_kwargs = _sem_validador_de_unicidade("cnpj", "cpf")
        validators = []


class SeguradoraSerializer(RegistroSerializer):
    registro = registros.SEGURADORA

    class Meta:
        model = Seguradora
        fields = [
            "id", "cnpj", "razao_social", "nome_fantasia", "apolice", "codigo_susep",
            "ativo", "created_at", "updated_at",
        ]
        read_only_fields = ["created_at", "updated_at"]
        extra_kwargs = _sem_validador_de_unicidade("cnpj")
        validators = []
