from django.db import models
from django.db.models import Q

from commons.models.base_models import RegistroAtivoModel


class Contratante(RegistroAtivoModel):
    """
    Contratante do serviço de transporte (grupo infContratante).
    """

    cnpj = models.CharField(max_length=14, null=True, blank=True)
    cpf = models.CharField(max_length=11, null=True, blank=True)
    razao_social = models.CharField(max_length=120)
    nome_fantasia = models.CharField(max_length=120, blank=True, default="")

    endereco = models.CharField(max_length=120, blank=True, default="")
    numero = models.CharField(max_length=20, blank=True, default="")
    complemento = models.CharField(max_length=60, blank=True, default="")
    bairro = models.CharField(max_length=60, blank=True, default="")
    codigo_municipio = models.CharField(max_length=7, blank=True, default="")
    municipio = models.CharField(max_length=60, blank=True, default="")
    cep = models.CharField(max_length=8, blank=True, default="")
    uf = models.CharField(max_length=2, blank=True, default="")
    telefone = models.CharField(max_length=20, blank=True, default="")
    email = models.EmailField(max_length=120, blank=True, default="")

    class Meta:
        db_table = "cadastro_contratante"
        verbose_name = "Contratante"
        verbose_name_plural = "Contratantes"
        ordering = ["razao_social"]
        constraints = [
            models.UniqueConstraint(
                fields=["cnpj"],
                condition=Q(ativo=True, cnpj__isnull=False),
                name="uniq_contratante_cnpj_ativo",
            ),
            models.UniqueConstraint(
                fields=["cpf"],
                condition=Q(ativo=True, cpf__isnull=False),
                name="uniq_contratante_cpf_ativo",
            ),
        ]

    def __str__(self):
        return self.razao_social

    @property
    def documento(self) -> str:
        return self.cnpj or self.cpf or ""
