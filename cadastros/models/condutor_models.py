from django.core.validators import MinLengthValidator
from django.db import models
from django.db.models import Q

from commons.models.base_models import RegistroAtivoModel


class Condutor(RegistroAtivoModel):
    nome = models.CharField(max_length=60)
    cpf = models.CharField(max_length=11, validators=[MinLengthValidator(11)])
    telefone = models.CharField(max_length=20, blank=True, default="")

    class Meta:
        db_table = "cadastro_condutor"
        verbose_name = "Condutor"
        verbose_name_plural = "Condutores"
        ordering = ["nome"]
        constraints = [
            models.UniqueConstraint(
                fields=["cpf"],
                condition=Q(ativo=True),
                name="uniq_condutor_cpf_ativo",
            ),
        ]

    def __str__(self):
        return f"{self.nome} ({self.cpf})"
