# cadastros/views/views.py

from django_filters.rest_framework import DjangoFilterBackend
from rest_framework import filters, permissions, viewsets

from cadastros.models import Condutor, Contratante, Emitente, Reboque, Seguradora, Veiculo
from cadastros.serializers import (
    CondutorSerializer,
    ContratanteSerializer,
    EmitenteSerializer,
    ReboqueSerializer,
    SeguradoraSerializer,
    VeiculoSerializer,
)
from cadastros.services import registros
from cadastros.services.registro_service import (
    atualizar_registro,
    criar_registro,
    excluir_registro,
)


class RegistroViewSet(viewsets.ModelViewSet):
    """
    CRUD paginado de cadastro de referência.

    Gravação e exclusão passam pelo serviço genérico (normalização,
    unicidade entre ativos, guarda de exclusão) com o RegistroConfig
    informado em `registro`.
    """

    registro = None
    permission_classes = [permissions.IsAuthenticated]
    filter_backends = [DjangoFilterBackend, filters.SearchFilter, filters.OrderingFilter]
    filterset_fields = ["ativo"]

    def perform_create(self, serializer):
        serializer.instance = criar_registro(
            self.registro, serializer.validated_data, user=self.request.user
        )

    def perform_update(self, serializer):
        serializer.instance = atualizar_registro(
            self.registro,
            serializer.instance,
            serializer.validated_data,
            user=self.request.user,
        )

    def perform_destroy(self, instance):
        excluir_registro(self.registro, instance, user=self.request.user)


class EmitenteViewSet(RegistroViewSet):
    registro = registros.EMITENTE
    queryset = Emitente.objects.all()
    serializer_class = EmitenteSerializer
    filterset_fields = ["ativo", "uf", "tipo_emitente"]
    search_fields = ["razao_social", "nome_fantasia", "cnpj", "cpf"]
    ordering_fields = ["razao_social", "created_at"]


class VeiculoViewSet(RegistroViewSet):
    registro = registros.VEICULO
    queryset = Veiculo.objects.all()
    serializer_class = VeiculoSerializer
    filterset_fields = ["ativo", "uf", "tipo_rodado"]
    search_fields = ["placa", "marca", "renavam"]
    ordering_fields = ["placa", "tara", "created_at"]


class CondutorViewSet(RegistroViewSet):
    registro = registros.CONDUTOR
    queryset = Condutor.objects.all()
    serializer_class = CondutorSerializer
    search_fields = ["nome", "cpf"]
    ordering_fields = ["nome", "created_at"]


class ReboqueViewSet(RegistroViewSet):
    registro = registros.REBOQUE
    queryset = Reboque.objects.all()
    serializer_class = ReboqueSerializer
    filterset_fields = ["ativo", "uf"]
    search_fields = ["placa", "renavam"]
    ordering_fields = ["placa", "created_at"]


class ContratanteViewSet(RegistroViewSet):
    registro = registros.CONTRATANTE
    queryset = Contratante.objects.all()
    serializer_class = ContratanteSerializer
    search_fields = ["razao_social", "nome_fantasia", "cnpj", "cpf"]
    ordering_fields = ["razao_social", "created_at"]


class SeguradoraViewSet(RegistroViewSet):
    registro = registros.SEGURADORA
    queryset = Seguradora.objects.all()
    serializer_class = SeguradoraSerializer
    search_fields = ["razao_social", "cnpj"]
    ordering_fields = ["razao_social", "created_at"]
