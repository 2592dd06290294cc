import uuid

from django.core.validators import RegexValidator
from django.db import models

from commons.documentos import codigo_uf
from commons.models.base_models import BaseModel


class UF(BaseModel):
    """
    Unidade da Federação. O código IBGE é o cUF usado na chave do MDF-e
    e no evento de encerramento.
    """

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)

    sigla = models.CharField(max_length=2, unique=True)
    nome = models.CharField(max_length=60, unique=True)
    codigo_ibge = models.CharField(
        max_length=2,
        unique=True,
        validators=[RegexValidator(r"^\d{2}$", "Código IBGE da UF deve ter 2 dígitos.")],
    )

    class Meta:
        verbose_name = "UF"
        verbose_name_plural = "UFs"
        ordering = ["sigla"]

    def __str__(self):
        return f"{self.sigla} - {self.nome}"

    def codigo_confere(self) -> bool:
        """
        True quando o código IBGE informado é o da tabela oficial para a sigla.
        """
        return codigo_uf(self.sigla) == self.codigo_ibge
