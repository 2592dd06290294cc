from rest_framework import viewsets, filters, permissions
from django_filters.rest_framework import DjangoFilterBackend

from enderecos.models.uf_models import UF
from enderecos.models.municipio_models import Municipio
from enderecos.serializers import UFSerializer, MunicipioSerializer
from enderecos.services.municipio_service import excluir_municipio


class UFViewSet(viewsets.ModelViewSet):
    queryset = UF.objects.all()
    serializer_class = UFSerializer
    permission_classes = [permissions.IsAuthenticated]
    filter_backends = [filters.SearchFilter, filters.OrderingFilter]
    search_fields = ['nome', 'sigla']
    ordering_fields = ['nome', 'sigla', 'codigo_ibge']


class MunicipioViewSet(viewsets.ModelViewSet):
    queryset = Municipio.objects.select_related('uf')
    serializer_class = MunicipioSerializer
    permission_classes = [permissions.IsAuthenticated]
    filter_backends = [DjangoFilterBackend, filters.SearchFilter, filters.OrderingFilter]
    filterset_fields = ['uf', 'ativo']  # combos de descarga filtram por UF
    search_fields = ['nome', 'codigo_ibge']
    ordering_fields = ['nome', 'codigo_ibge']

    def perform_destroy(self, instance):
        excluir_municipio(instance, user=self.request.user)
