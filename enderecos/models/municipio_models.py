import uuid
from django.db import models
from django.core.validators import MinLengthValidator

from commons.models.base_models import BaseModel
from enderecos.models.uf_models import UF


class Municipio(BaseModel):
    """
    Município conforme tabela IBGE.
    No MDF-e:
      - cMunCarrega / cMunDescarga / cMun do encerramento = código IBGE (7 dígitos)
      - xMunCarrega / xMunDescarga = nome do município
    """

    id = models.UUIDField(
        primary_key=True,
        default=uuid.uuid4,
        editable=False,
    )

    nome = models.CharField(
        max_length=60,
        help_text="Nome do município.",
    )

    uf = models.ForeignKey(
        UF,
        on_delete=models.PROTECT,
        related_name="municipios",
        help_text="UF do município.",
    )

    codigo_ibge = models.CharField(
        max_length=7,
        unique=True,
        validators=[MinLengthValidator(7)],
        help_text="Código IBGE do município (7 dígitos).",
    )

    ativo = models.BooleanField(
        default=True,
        db_index=True,
        help_text="Municípios inativos não podem ser usados como descarga/encerramento.",
    )

    class Meta:
        verbose_name = "Município"
        verbose_name_plural = "Municípios"
        ordering = ["uf__sigla", "nome"]
        constraints = [
            models.UniqueConstraint(
                fields=["nome", "uf"],
                name="uniq_municipio_nome_uf"
            ),
        ]
        indexes = [
            models.Index(fields=["uf"], name="idx_municipio_uf"),
            models.Index(fields=["codigo_ibge"], name="idx_municipio_codigo_ibge"),
        ]

    def __str__(self):
        return f"{self.nome} / {self.uf.sigla}"

    @property
    def codigo_uf(self) -> str:
        return self.codigo_ibge[:2]
