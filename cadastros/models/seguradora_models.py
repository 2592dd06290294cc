from django.core.validators import MinLengthValidator
from django.db import models
from django.db.models import Q

from commons.models.base_models import RegistroAtivoModel


class Seguradora(RegistroAtivoModel):
    cnpj = models.CharField(max_length=14, validators=[MinLengthValidator(14)])
    razao_social = models.CharField(max_length=120)
    nome_fantasia = models.CharField(max_length=120, blank=True, default="")
    apolice = models.CharField(
        max_length=20,
        blank=True,
        default="",
        help_text="Apólice padrão sugerida ao informar o seguro do MDF-e.",
    )
    codigo_susep = models.CharField(max_length=20, blank=True, default="")

    class Meta:
        db_table = "cadastro_seguradora"
        verbose_name = "Seguradora"
        verbose_name_plural = "Seguradoras"
        ordering = ["razao_social"]
        constraints = [
            models.UniqueConstraint(
                fields=["cnpj"],
                condition=Q(ativo=True),
                name="uniq_seguradora_cnpj_ativo",
            ),
        ]

    def __str__(self):
        return f"{self.razao_social} ({self.cnpj})"
