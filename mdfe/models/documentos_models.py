import uuid

from django.db import models
from django.db.models import F, Q


class TipoDocumentoFiscal(models.TextChoices):
    CTE = "CTE", "CT-e"
    NFE = "NFE", "NF-e"
    MDFE = "MDFE", "MDF-e (transporte)"


class TipoUnidadeTransporte(models.TextChoices):
    RODOVIARIO_TRACAO = "1", "Rodoviário tração"
    RODOVIARIO_REBOQUE = "2", "Rodoviário reboque"
    NAVIO = "3", "Navio"
    BALSA = "4", "Balsa"
    AERONAVE = "5", "Aeronave"
    VAGAO = "6", "Vagão"
    OUTROS = "7", "Outros"


class TipoUnidadeCarga(models.TextChoices):
    CONTAINER = "1", "Container"
    ULD = "2", "ULD"
    PALLET = "3", "Pallet"
    OUTROS = "4", "Outros"


class MdfeMunicipioDescarga(models.Model):
    """
    Agrupador infMunDescarga: documentos entregues em um município.
    """

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    mdfe = models.ForeignKey("mdfe.Mdfe", on_delete=models.CASCADE, related_name="municipios_descarga")
    municipio = models.ForeignKey(
        "enderecos.Municipio",
        on_delete=models.PROTECT,
        related_name="mdfe_descargas",
    )
    codigo_ibge = models.CharField(max_length=7)
    nome = models.CharField(max_length=60)
    ordem = models.PositiveSmallIntegerField()

    class Meta:
        db_table = "mdfe_municipio_descarga"
        ordering = ["ordem"]
        constraints = [
            models.UniqueConstraint(fields=["mdfe", "ordem"], name="uniq_mdfe_descarga_ordem"),
        ]


class MdfeDocumentoFiscal(models.Model):
    """
    Referência a CT-e, NF-e ou MDF-e de transporte carregado.

    A chave é única no sistema inteiro, não apenas dentro do manifesto.
    """

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    mdfe = models.ForeignKey("mdfe.Mdfe", on_delete=models.CASCADE, related_name="documentos")
    municipio_descarga = models.ForeignKey(
        MdfeMunicipioDescarga,
        on_delete=models.CASCADE,
        related_name="documentos",
    )
    tipo = models.CharField(max_length=4, choices=TipoDocumentoFiscal.choices)
    chave = models.CharField(max_length=44, unique=True)
    ordem = models.PositiveSmallIntegerField()

    segundo_codigo_barras = models.CharField(max_length=36, blank=True, default="")
    indicador_reentrega = models.BooleanField(default=False)
    indicador_prestacao_parcial = models.BooleanField(default=False)
    pin_suframa = models.CharField(max_length=9, blank=True, default="")
    data_prevista_entrega = models.DateField(null=True, blank=True)
    quantidade_rateada = models.DecimalField(max_digits=7, decimal_places=2, null=True, blank=True)

    # infEntregaParcial
    entrega_parcial_quantidade_total = models.DecimalField(
        max_digits=15, decimal_places=4, null=True, blank=True
    )
    entrega_parcial_quantidade_parcial = models.DecimalField(
        max_digits=15, decimal_places=4, null=True, blank=True
    )

    class Meta:
        db_table = "mdfe_documento_fiscal"
        ordering = ["ordem"]
        constraints = [
            models.CheckConstraint(
                condition=(
                    Q(entrega_parcial_quantidade_total__isnull=True)
                    | Q(entrega_parcial_quantidade_parcial__isnull=True)
                    | Q(entrega_parcial_quantidade_parcial__lte=F("entrega_parcial_quantidade_total"))
                ),
                name="ck_mdfe_documento_entrega_parcial",
            ),
        ]
        indexes = [
            models.Index(fields=["mdfe", "tipo"], name="idx_mdfe_documento_tipo"),
        ]

    def __str__(self):
        return f"{self.tipo} {self.chave}"


class MdfeUnidadeTransporte(models.Model):
    """
    Unidade de transporte (infUnidTransp). Pertence a um documento ou,
    quando documento é nulo, diretamente ao manifesto.
    """

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    mdfe = models.ForeignKey("mdfe.Mdfe", on_delete=models.CASCADE, related_name="unidades_transporte")
    documento = models.ForeignKey(
        MdfeDocumentoFiscal,
        on_delete=models.CASCADE,
        related_name="unidades_transporte",
        null=True,
        blank=True,
    )
    ordem = models.PositiveSmallIntegerField()
    tipo = models.CharField(max_length=1, choices=TipoUnidadeTransporte.choices)
    identificacao = models.CharField(max_length=20)
    quantidade_rateada = models.DecimalField(max_digits=7, decimal_places=2, null=True, blank=True)
    tara = models.PositiveIntegerField(null=True, blank=True)
    capacidade_kg = models.PositiveIntegerField(null=True, blank=True)
    lacres = models.JSONField(default=list, blank=True)

    class Meta:
        db_table = "mdfe_unidade_transporte"
        ordering = ["ordem"]


class MdfeUnidadeCarga(models.Model):
    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    unidade_transporte = models.ForeignKey(
        MdfeUnidadeTransporte,
        on_delete=models.CASCADE,
        related_name="unidades_carga",
    )
    ordem = models.PositiveSmallIntegerField()
    tipo = models.CharField(max_length=1, choices=TipoUnidadeCarga.choices)
    identificacao = models.CharField(max_length=20)
    quantidade_rateada = models.DecimalField(max_digits=7, decimal_places=2, null=True, blank=True)
    lacres = models.JSONField(default=list, blank=True)

    class Meta:
        db_table = "mdfe_unidade_carga"
        ordering = ["ordem"]


class MdfeProdutoPerigoso(models.Model):
    """
    Declaração de produto perigoso (peri). Número ONU, classe de risco e
    quantidade são preenchidos juntos ou não são preenchidos.
    """

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    documento = models.ForeignKey(
        MdfeDocumentoFiscal,
        on_delete=models.CASCADE,
        related_name="produtos_perigosos",
    )
    ordem = models.PositiveSmallIntegerField()
    numero_onu = models.CharField(max_length=4, blank=True, default="")
    nome_apropriado = models.CharField(max_length=150, blank=True, default="")
    classe_risco = models.CharField(max_length=40, blank=True, default="")
    grupo_embalagem = models.CharField(max_length=6, blank=True, default="")
    quantidade_total = models.CharField(max_length=20, blank=True, default="")
    quantidade_volume_tipo = models.CharField(max_length=60, blank=True, default="")

    class Meta:
        db_table = "mdfe_produto_perigoso"
        ordering = ["ordem"]
        constraints = [
            models.CheckConstraint(
                condition=(
                    Q(numero_onu="", classe_risco="", quantidade_total="")
                    | (~Q(numero_onu="") & ~Q(classe_risco="") & ~Q(quantidade_total=""))
                ),
                name="ck_mdfe_produto_perigoso_completo",
            ),
        ]


class MdfeLacreRodoviario(models.Model):
    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    mdfe = models.ForeignKey("mdfe.Mdfe", on_delete=models.CASCADE, related_name="lacres_rodoviarios")
    ordem = models.PositiveSmallIntegerField()
    numero = models.CharField(max_length=20)

    class Meta:
        db_table = "mdfe_lacre_rodoviario"
        ordering = ["ordem"]
