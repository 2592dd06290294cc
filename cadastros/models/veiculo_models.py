from django.core.validators import MinValueValidator
from django.db import models
from django.db.models import Q

from commons.models.base_models import RegistroAtivoModel


class TipoRodado(models.TextChoices):
    TRUCK = "01", "Truck"
    TOCO = "02", "Toco"
    CAVALO_MECANICO = "03", "Cavalo mecânico"
    VAN = "04", "VAN"
    UTILITARIO = "05", "Utilitário"
    OUTROS = "06", "Outros"


class TipoCarroceria(models.TextChoices):
    NAO_APLICAVEL = "00", "Não aplicável"
    ABERTA = "01", "Aberta"
    FECHADA_BAU = "02", "Fechada/Baú"
    GRANELERA = "03", "Granelera"
    PORTA_CONTAINER = "04", "Porta container"
    SIDER = "05", "Sider"


class Veiculo(RegistroAtivoModel):
    """
    Veículo de tração (grupo veicTracao).
    """

    placa = models.CharField(max_length=7, help_text="Placa sem hífen, maiúscula.")
    renavam = models.CharField(max_length=11, blank=True, default="")
    marca = models.CharField(max_length=60, blank=True, default="")
    tara = models.PositiveIntegerField(help_text="Tara em KG.")
    capacidade_kg = models.PositiveIntegerField(
        null=True,
        blank=True,
        validators=[MinValueValidator(0)],
    )
    tipo_rodado = models.CharField(
        max_length=2,
        choices=TipoRodado.choices,
        default=TipoRodado.TRUCK,
    )
    tipo_carroceria = models.CharField(
        max_length=2,
        choices=TipoCarroceria.choices,
        default=TipoCarroceria.FECHADA_BAU,
    )
    uf = models.CharField(max_length=2, help_text="UF de licenciamento.")

    class Meta:
        db_table = "cadastro_veiculo"
        verbose_name = "Veículo"
        verbose_name_plural = "Veículos"
        ordering = ["placa"]
        constraints = [
            models.UniqueConstraint(
                fields=["placa"],
                condition=Q(ativo=True),
                name="uniq_veiculo_placa_ativo",
            ),
        ]

    def __str__(self):
        return self.placa
