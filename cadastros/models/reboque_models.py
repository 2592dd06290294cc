from django.db import models
from django.db.models import Q

from cadastros.models.veiculo_models import TipoCarroceria
from commons.models.base_models import RegistroAtivoModel


class Reboque(RegistroAtivoModel):
    """
    Reboque/semirreboque (grupo veicReboque, até 3 por MDF-e).
    """

    placa = models.CharField(max_length=7)
    renavam = models.CharField(max_length=11, blank=True, default="")
    tara = models.PositiveIntegerField(help_text="Tara em KG.")
    capacidade_kg = models.PositiveIntegerField(null=True, blank=True)
    tipo_carroceria = models.CharField(
        max_length=2,
        choices=TipoCarroceria.choices,
        default=TipoCarroceria.ABERTA,
    )
    uf = models.CharField(max_length=2)
    rntrc = models.CharField(max_length=8, blank=True, default="")

    class Meta:
        db_table = "cadastro_reboque"
        verbose_name = "Reboque"
        verbose_name_plural = "Reboques"
        ordering = ["placa"]
        constraints = [
            models.UniqueConstraint(
                fields=["placa"],
                condition=Q(ativo=True),
                name="uniq_reboque_placa_ativo",
            ),
        ]

    def __str__(self):
        return self.placa
