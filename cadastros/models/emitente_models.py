from django.core.validators import MinLengthValidator, MinValueValidator
from django.db import models
from django.db.models import Q

from commons.models.base_models import RegistroAtivoModel


class TipoEmitente(models.IntegerChoices):
    PRESTADOR_SERVICO = 1, "Prestador de serviço de transporte"
    CARGA_PROPRIA = 2, "Transportador de carga própria"


class AmbienteSefaz(models.IntegerChoices):
    PRODUCAO = 1, "Produção"
    HOMOLOGACAO = 2, "Homologação"


class Emitente(RegistroAtivoModel):
    """
    Empresa (CNPJ) ou pessoa (CPF) que emite o MDF-e (grupo emit).
    """

    cnpj = models.CharField(
        max_length=14,
        null=True,
        blank=True,
        validators=[MinLengthValidator(14)],
        help_text="CNPJ do emitente (somente números).",
    )
    cpf = models.CharField(
        max_length=11,
        null=True,
        blank=True,
        validators=[MinLengthValidator(11)],
        help_text="CPF do emitente pessoa física (somente números).",
    )
    ie = models.CharField(
        max_length=14,
        blank=True,
        default="",
        help_text="Inscrição Estadual (IE).",
    )
    razao_social = models.CharField(max_length=120, help_text="Razão social (xNome).")
    nome_fantasia = models.CharField(max_length=120, blank=True, default="")

    endereco = models.CharField(max_length=120, blank=True, default="", help_text="Logradouro (xLgr).")
    numero = models.CharField(max_length=20, blank=True, default="")
    complemento = models.CharField(max_length=60, blank=True, default="")
    bairro = models.CharField(max_length=60, blank=True, default="")
    codigo_municipio = models.CharField(
        max_length=7,
        blank=True,
        default="",
        help_text="Código IBGE do município do emitente (cMun).",
    )
    municipio = models.CharField(max_length=60, blank=True, default="")
    cep = models.CharField(max_length=8, blank=True, default="")
    uf = models.CharField(max_length=2, help_text="UF do emitente.")
    telefone = models.CharField(max_length=20, blank=True, default="")
    email = models.EmailField(max_length=120, blank=True, default="")

    tipo_emitente = models.PositiveSmallIntegerField(
        choices=TipoEmitente.choices,
        default=TipoEmitente.PRESTADOR_SERVICO,
        help_text="tpEmit do MDF-e.",
    )
    rntrc = models.CharField(
        max_length=8,
        blank=True,
        default="",
        help_text="Registro Nacional de Transportadores Rodoviários de Carga.",
    )
    ambiente_sefaz = models.PositiveSmallIntegerField(
        choices=AmbienteSefaz.choices,
        default=AmbienteSefaz.HOMOLOGACAO,
    )
    serie_mdfe = models.PositiveIntegerField(
        default=1,
        validators=[MinValueValidator(1)],
        help_text="Série padrão usada na numeração de MDF-e deste emitente.",
    )

    class Meta:
        db_table = "cadastro_emitente"
        verbose_name = "Emitente"
        verbose_name_plural = "Emitentes"
        ordering = ["razao_social"]
        constraints = [
            models.UniqueConstraint(
                fields=["cnpj"],
                condition=Q(ativo=True, cnpj__isnull=False),
                name="uniq_emitente_cnpj_ativo",
            ),
            models.UniqueConstraint(
                fields=["cpf"],
                condition=Q(ativo=True, cpf__isnull=False),
                name="uniq_emitente_cpf_ativo",
            ),
        ]
        indexes = [
            models.Index(fields=["cnpj"], name="idx_emitente_cnpj"),
        ]

    def __str__(self):
        return f"{self.razao_social} ({self.documento})"

    @property
    def documento(self) -> str:
        return self.cnpj or self.cpf or ""
