# mdfe/filters.py

import django_filters
from django.db.models import Q

from mdfe.models import Mdfe, MdfeStatus


class MdfeFilter(django_filters.FilterSet):
    """
    Filtros da listagem. Excluídos só aparecem com ?status=DELETED.
    """

    status = django_filters.ChoiceFilter(choices=MdfeStatus.choices)
    emitenteId = django_filters.UUIDFilter(field_name="emitente_id")
    serie = django_filters.NumberFilter()
    numero = django_filters.NumberFilter()
    search = django_filters.CharFilter(method="filtrar_busca")

    class Meta:
        model = Mdfe
        fields = ["status", "emitenteId", "serie", "numero", "search"]

    def filtrar_busca(self, queryset, name, value):
        termo = (value or "").strip()
        if not termo:
            return queryset
        return queryset.filter(
            Q(chave_acesso__icontains=termo)
            | Q(chave_gerada__icontains=termo)
            | Q(veiculo_placa__icontains=termo.upper())
            | Q(emitente_razao_social__icontains=termo)
        )

    @property
    def qs(self):
        queryset = super().qs
        if getattr(self.form, "cleaned_data", {}).get("status") != MdfeStatus.EXCLUIDO:
            queryset = queryset.exclude(status=MdfeStatus.EXCLUIDO)
        return queryset
