import uuid

from django.db import models
from django.utils import timezone


class TipoEventoMdfe(models.TextChoices):
    GERACAO = "GERACAO", "Geração/assinatura"
    TRANSMISSAO = "TRANSMISSAO", "Transmissão"
    CONSULTA = "CONSULTA", "Consulta de situação"
    CANCELAMENTO = "CANCELAMENTO", "Cancelamento"
    ENCERRAMENTO = "ENCERRAMENTO", "Encerramento"
    EXCLUSAO = "EXCLUSAO", "Exclusão lógica"
    FALHA_MOTOR = "FALHA_MOTOR", "Falha no motor fiscal"


class MdfeEvento(models.Model):
    """
    Trilha de auditoria das operações fiscais do MDF-e.

    Falhas do motor também são registradas (FALHA_MOTOR), fora da transação
    que falhou, para que o texto original do motor não se perca.
    """

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    mdfe = models.ForeignKey("mdfe.Mdfe", on_delete=models.CASCADE, related_name="eventos")

    tipo_evento = models.CharField(max_length=20, choices=TipoEventoMdfe.choices)
    status_anterior = models.CharField(max_length=12, blank=True, default="")
    status_novo = models.CharField(max_length=12, blank=True, default="")

    codigo_retorno = models.CharField(max_length=32, blank=True, default="")
    mensagem_retorno = models.TextField(blank=True, default="")
    protocolo = models.CharField(max_length=20, blank=True, default="")
    justificativa = models.TextField(blank=True, default="")

    raw = models.JSONField(blank=True, null=True)
    usuario = models.CharField(max_length=150, blank=True, default="")

    created_at = models.DateTimeField(default=timezone.now)

    class Meta:
        db_table = "mdfe_evento"
        ordering = ["created_at"]
        indexes = [
            models.Index(fields=["mdfe", "tipo_evento"], name="idx_mdfe_evento_tipo"),
        ]

    def __str__(self):
        return f"[{self.tipo_evento}] mdfe={self.mdfe_id} codigo={self.codigo_retorno}"
