import uuid

from django.core.validators import MinValueValidator
from django.db import models
from django.utils import timezone

from commons.models.base_models import BaseModel


class MdfeStatus(models.TextChoices):
    RASCUNHO = "DRAFT", "Rascunho"
    GERADO = "GENERATED", "Gerado (assinado)"
    TRANSMITIDO = "TRANSMITTED", "Transmitido (aguardando retorno)"
    AUTORIZADO = "AUTHORIZED", "Autorizado"
    REJEITADO = "REJECTED", "Rejeitado"
    CANCELADO = "CANCELLED", "Cancelado"
    ENCERRADO = "CLOSED", "Encerrado"
    EXCLUIDO = "DELETED", "Excluído"


class UnidadeMedida(models.TextChoices):
    KG = "01", "KG"
    TON = "02", "TON"


class TipoTransportador(models.TextChoices):
    ETC = "1", "Empresa de Transporte de Cargas"
    TAC = "2", "Transportador Autônomo de Cargas"
    CTC = "3", "Cooperativa de Transporte de Cargas"


class TipoResponsavelSeguro(models.IntegerChoices):
    EMITENTE = 1, "Emitente do MDF-e"
    CONTRATANTE = 2, "Contratante do serviço de transporte"


class TipoPagamento(models.TextChoices):
    A_VISTA = "0", "Pagamento à vista"
    A_PRAZO = "1", "Pagamento a prazo"


class Mdfe(BaseModel):
    """
    Manifesto Eletrônico de Documentos Fiscais (modelo 58, modal rodoviário).

    - Um registro por (emitente, série, número).
    - Os campos emitente_*, condutor_*, veiculo_*, contratante_* e seguradora_*
      são cópias feitas na criação/edição e são a única fonte usada na
      geração do XML. Alterar o cadastro depois não altera o manifesto.
    - O status só muda via MdfeStateMachine.
    """

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)

    emitente = models.ForeignKey(
        "cadastros.Emitente",
        on_delete=models.PROTECT,
        related_name="mdfes",
    )
    veiculo = models.ForeignKey(
        "cadastros.Veiculo",
        on_delete=models.PROTECT,
        related_name="mdfes",
    )
    condutor = models.ForeignKey(
        "cadastros.Condutor",
        on_delete=models.PROTECT,
        related_name="mdfes",
    )
    contratante = models.ForeignKey(
        "cadastros.Contratante",
        on_delete=models.PROTECT,
        related_name="mdfes",
        null=True,
        blank=True,
    )
    seguradora = models.ForeignKey(
        "cadastros.Seguradora",
        on_delete=models.PROTECT,
        related_name="mdfes",
        null=True,
        blank=True,
    )

    # Identificação
    serie = models.PositiveIntegerField(validators=[MinValueValidator(1)])
    numero = models.PositiveIntegerField(validators=[MinValueValidator(1)])
    modelo = models.CharField(max_length=2, default="58", editable=False)
    modal = models.CharField(max_length=1, default="1", help_text="1 = rodoviário.")

    status = models.CharField(
        max_length=12,
        choices=MdfeStatus.choices,
        default=MdfeStatus.RASCUNHO,
        db_index=True,
    )

    # Chave definitiva (44 dígitos), atribuída somente na autorização
    chave_acesso = models.CharField(max_length=44, unique=True, null=True, blank=True)
    # Chave calculada na assinatura; vira chave_acesso quando autorizado
    chave_gerada = models.CharField(max_length=44, blank=True, default="")
    codigo_numerico = models.CharField(max_length=8, blank=True, default="")
    codigo_verificador = models.CharField(max_length=1, blank=True, default="")

    # Retorno SEFAZ
    codigo_status_sefaz = models.PositiveIntegerField(null=True, blank=True)
    motivo_sefaz = models.TextField(blank=True, default="")
    numero_recibo = models.CharField(max_length=20, blank=True, default="")
    protocolo_autorizacao = models.CharField(max_length=20, blank=True, default="")
    transmitido = models.BooleanField(default=False)

    # Viagem
    data_emissao = models.DateTimeField(default=timezone.now)
    data_inicio_viagem = models.DateTimeField(null=True, blank=True)
    uf_inicio = models.CharField(max_length=2)
    uf_fim = models.CharField(max_length=2)
    municipio_inicio = models.CharField(max_length=60, blank=True, default="")
    municipio_fim = models.CharField(max_length=60, blank=True, default="")
    ufs_percurso = models.JSONField(
        default=list,
        blank=True,
        help_text="UFs de percurso em ordem (infPercurso), sem a UF inicial/final.",
    )
    peso_bruto_total = models.DecimalField(max_digits=15, decimal_places=4, default=0)
    valor_carga = models.DecimalField(max_digits=15, decimal_places=2, default=0)
    unidade_medida = models.CharField(
        max_length=2,
        choices=UnidadeMedida.choices,
        default=UnidadeMedida.KG,
    )
    tipo_transportador = models.CharField(
        max_length=1,
        choices=TipoTransportador.choices,
        blank=True,
        default="",
    )
    info_adicional = models.TextField(blank=True, default="")
    info_fisco = models.TextField(blank=True, default="")

    # Snapshot do emitente
    emitente_cnpj = models.CharField(max_length=14, blank=True, default="")
    emitente_cpf = models.CharField(max_length=11, blank=True, default="")
    emitente_ie = models.CharField(max_length=14, blank=True, default="")
    emitente_razao_social = models.CharField(max_length=120)
    emitente_nome_fantasia = models.CharField(max_length=120, blank=True, default="")
    emitente_endereco = models.CharField(max_length=120, blank=True, default="")
    emitente_numero = models.CharField(max_length=20, blank=True, default="")
    emitente_complemento = models.CharField(max_length=60, blank=True, default="")
    emitente_bairro = models.CharField(max_length=60, blank=True, default="")
    emitente_codigo_municipio = models.CharField(max_length=7, blank=True, default="")
    emitente_municipio = models.CharField(max_length=60, blank=True, default="")
    emitente_cep = models.CharField(max_length=8, blank=True, default="")
    emitente_uf = models.CharField(max_length=2)
    emitente_telefone = models.CharField(max_length=20, blank=True, default="")
    emitente_email = models.CharField(max_length=120, blank=True, default="")
    emitente_tipo = models.PositiveSmallIntegerField(default=1)
    emitente_rntrc = models.CharField(max_length=8, blank=True, default="")
    emitente_ambiente = models.PositiveSmallIntegerField(default=2)

    # Snapshot do condutor principal
    condutor_nome = models.CharField(max_length=60)
    condutor_cpf = models.CharField(max_length=11)
    condutor_telefone = models.CharField(max_length=20, blank=True, default="")

    # Snapshot do veículo de tração
    veiculo_placa = models.CharField(max_length=7)
    veiculo_renavam = models.CharField(max_length=11, blank=True, default="")
    veiculo_tara = models.PositiveIntegerField(default=0)
    veiculo_capacidade_kg = models.PositiveIntegerField(null=True, blank=True)
    veiculo_tipo_rodado = models.CharField(max_length=2, blank=True, default="")
    veiculo_tipo_carroceria = models.CharField(max_length=2, blank=True, default="")
    veiculo_uf = models.CharField(max_length=2, blank=True, default="")
    veiculo_marca = models.CharField(max_length=60, blank=True, default="")

    # Snapshot do contratante
    contratante_cnpj = models.CharField(max_length=14, blank=True, default="")
    contratante_cpf = models.CharField(max_length=11, blank=True, default="")
    contratante_razao_social = models.CharField(max_length=120, blank=True, default="")
    contratante_nome_fantasia = models.CharField(max_length=120, blank=True, default="")
    contratante_uf = models.CharField(max_length=2, blank=True, default="")
    contratante_municipio = models.CharField(max_length=60, blank=True, default="")

    # Seguro da carga
    seguro_tipo_responsavel = models.PositiveSmallIntegerField(
        choices=TipoResponsavelSeguro.choices,
        null=True,
        blank=True,
    )
    seguro_responsavel_cnpj = models.CharField(max_length=14, blank=True, default="")
    seguro_responsavel_cpf = models.CharField(max_length=11, blank=True, default="")
    seguradora_cnpj = models.CharField(max_length=14, blank=True, default="")
    seguradora_razao_social = models.CharField(max_length=120, blank=True, default="")
    seguradora_nome_fantasia = models.CharField(max_length=120, blank=True, default="")
    seguradora_codigo_susep = models.CharField(max_length=20, blank=True, default="")
    seguro_numero_apolice = models.CharField(max_length=20, blank=True, default="")
    seguro_averbacoes = models.JSONField(default=list, blank=True)

    # Pagamento do frete (infANTT/infPag) e vale-pedágio
    componentes_pagamento = models.JSONField(default=list, blank=True)
    valor_total_contrato = models.DecimalField(max_digits=15, decimal_places=2, default=0)
    tipo_pagamento = models.CharField(
        max_length=1,
        choices=TipoPagamento.choices,
        default=TipoPagamento.A_VISTA,
    )
    vales_pedagio = models.JSONField(default=list, blank=True)
    sem_vale_pedagio = models.BooleanField(default=True)

    # Artefatos de geração/transmissão
    payload_json = models.JSONField(null=True, blank=True)
    payload_hash = models.CharField(max_length=64, blank=True, default="")
    xml_assinado = models.TextField(blank=True, default="")
    xml_autorizado = models.TextField(blank=True, default="")
    data_geracao = models.DateTimeField(null=True, blank=True)
    data_transmissao = models.DateTimeField(null=True, blank=True)
    data_autorizacao = models.DateTimeField(null=True, blank=True)
    data_cancelamento = models.DateTimeField(null=True, blank=True)
    data_encerramento = models.DateField(null=True, blank=True)
    municipio_encerramento = models.CharField(max_length=7, blank=True, default="")

    usuario_criacao = models.CharField(max_length=150, blank=True, default="")
    usuario_alteracao = models.CharField(max_length=150, blank=True, default="")

    class Meta:
        db_table = "mdfe"
        verbose_name = "MDF-e"
        verbose_name_plural = "MDF-es"
        ordering = ["-data_emissao", "-numero"]
        constraints = [
            models.UniqueConstraint(
                fields=["emitente", "serie", "numero"],
                name="uniq_mdfe_emitente_serie_numero",
            ),
        ]
        indexes = [
            models.Index(fields=["emitente", "status"], name="idx_mdfe_emitente_status"),
            models.Index(fields=["veiculo_placa"], name="idx_mdfe_veiculo_placa"),
        ]
        permissions = [
            ("gerar_mdfe", "Pode gerar e assinar MDF-e"),
            ("transmitir_mdfe", "Pode transmitir MDF-e à SEFAZ"),
            ("cancelar_mdfe", "Pode cancelar MDF-e autorizado"),
            ("encerrar_mdfe", "Pode encerrar MDF-e autorizado"),
        ]

    def __str__(self):
        return f"MDF-e {self.serie}/{self.numero} ({self.status})"

    @property
    def emitente_documento(self) -> str:
        return self.emitente_cnpj or self.emitente_cpf

    @property
    def chave_referencia(self) -> str:
        """
        Chave usada em consultas: definitiva quando autorizado, senão a gerada.
        """
        return self.chave_acesso or self.chave_gerada


class MdfeReboque(models.Model):
    """
    Reboque vinculado ao MDF-e, com snapshot dos dados do cadastro.
    """

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    mdfe = models.ForeignKey(Mdfe, on_delete=models.CASCADE, related_name="reboques")
    reboque = models.ForeignKey(
        "cadastros.Reboque",
        on_delete=models.PROTECT,
        related_name="mdfes_vinculados",
        null=True,
        blank=True,
    )
    ordem = models.PositiveSmallIntegerField()

    placa = models.CharField(max_length=7)
    renavam = models.CharField(max_length=11, blank=True, default="")
    tara = models.PositiveIntegerField(default=0)
    capacidade_kg = models.PositiveIntegerField(null=True, blank=True)
    tipo_carroceria = models.CharField(max_length=2, blank=True, default="")
    uf = models.CharField(max_length=2, blank=True, default="")
    rntrc = models.CharField(max_length=8, blank=True, default="")

    class Meta:
        db_table = "mdfe_reboque"
        ordering = ["ordem"]
        constraints = [
            models.UniqueConstraint(fields=["mdfe", "ordem"], name="uniq_mdfe_reboque_ordem"),
        ]


class MdfeCondutorAdicional(models.Model):
    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    mdfe = models.ForeignKey(Mdfe, on_delete=models.CASCADE, related_name="condutores_adicionais")
    condutor = models.ForeignKey(
        "cadastros.Condutor",
        on_delete=models.PROTECT,
        related_name="mdfes_adicionais",
        null=True,
        blank=True,
    )
    ordem = models.PositiveSmallIntegerField()
    nome = models.CharField(max_length=60)
    cpf = models.CharField(max_length=11)

    class Meta:
        db_table = "mdfe_condutor_adicional"
        ordering = ["ordem"]
        constraints = [
            models.UniqueConstraint(fields=["mdfe", "ordem"], name="uniq_mdfe_condutor_ordem"),
        ]


class TipoLocal(models.TextChoices):
    CARREGAMENTO = "CARREGAMENTO", "Carregamento"
    DESCARREGAMENTO = "DESCARREGAMENTO", "Descarregamento"


class MdfeLocal(models.Model):
    """
    Município de carregamento/descarregamento declarado na viagem.
    """

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    mdfe = models.ForeignKey(Mdfe, on_delete=models.CASCADE, related_name="locais")
    tipo = models.CharField(max_length=16, choices=TipoLocal.choices)
    municipio = models.ForeignKey(
        "enderecos.Municipio",
        on_delete=models.PROTECT,
        related_name="mdfe_locais",
    )
    codigo_ibge = models.CharField(max_length=7)
    nome = models.CharField(max_length=60)
    ordem = models.PositiveSmallIntegerField()

    class Meta:
        db_table = "mdfe_local"
        ordering = ["tipo", "ordem"]
        constraints = [
            models.UniqueConstraint(fields=["mdfe", "tipo", "ordem"], name="uniq_mdfe_local_ordem"),
        ]
