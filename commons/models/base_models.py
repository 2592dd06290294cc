# commons/models/base_models.py

import uuid

from django.db import models


class BaseModel(models.Model):
    """
    Base abstrata com timestamps de auditoria.
    """

    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        abstract = True


class RegistroAtivoModel(BaseModel):
    """
    Contrato explícito dos cadastros de referência.

    Todo cadastro usado por um MDF-e tem id UUID, flag `ativo` (soft-delete)
    e timestamps. Os serviços genéricos de cadastro conversam apenas com
    esta interface.
    """

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)

    ativo = models.BooleanField(
        default=True,
        db_index=True,
        help_text="Registro disponível para uso em novos manifestos.",
    )

    class Meta:
        abstract = True

    def esta_ativo(self) -> bool:
        return bool(self.ativo)

    def definir_ativo(self, ativo: bool, *, save: bool = True) -> None:
        self.ativo = bool(ativo)
        if save:
            self.save(update_fields=["ativo", "updated_at"])
