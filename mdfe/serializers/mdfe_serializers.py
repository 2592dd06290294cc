# mdfe/serializers/mdfe_serializers.py

from rest_framework import serializers

from mdfe.models import MdfeStatus, TipoLocal, TipoTransportador, UnidadeMedida


class MdfeAtualizarSerializer(serializers.Serializer):
    """
    Dados de viagem e vínculos editáveis do MDF-e (PUT).

    Todos opcionais: só os campos enviados são aplicados. Ids de veículo,
    condutor ou contratante diferentes dos atuais refazem o snapshot.
    """

    veiculoId = serializers.UUIDField(source="veiculo_id", required=False)
    condutorId = serializers.UUIDField(source="condutor_id", required=False)
    contratanteId = serializers.UUIDField(source="contratante_id", required=False, allow_null=True)
    reboquesIds = serializers.ListField(
        source="reboques_ids",
        child=serializers.UUIDField(),
        required=False,
    )
    condutoresAdicionaisIds = serializers.ListField(
        source="condutores_adicionais_ids",
        child=serializers.UUIDField(),
        required=False,
    )

    dataEmissao = serializers.DateTimeField(source="data_emissao", required=False)
    dataInicioViagem = serializers.DateTimeField(source="data_inicio_viagem", required=False, allow_null=True)
    ufIni = serializers.CharField(source="uf_inicio", required=False, max_length=2)
    ufFim = serializers.CharField(source="uf_fim", required=False, max_length=2)
    municipioIni = serializers.CharField(source="municipio_inicio", required=False, allow_blank=True, max_length=60)
    municipioFim = serializers.CharField(source="municipio_fim", required=False, allow_blank=True, max_length=60)
    ufsPercurso = serializers.ListField(
        source="ufs_percurso",
        child=serializers.CharField(max_length=2),
        required=False,
    )
    pesoBrutoTotal = serializers.DecimalField(
        source="peso_bruto_total", max_digits=15, decimal_places=4, min_value=0, required=False
    )
    valorTotal = serializers.DecimalField(
        source="valor_carga", max_digits=15, decimal_places=2, min_value=0, required=False
    )
    unidadeMedida = serializers.ChoiceField(source="unidade_medida", choices=UnidadeMedida.choices, required=False)
    tipoTransportador = serializers.ChoiceField(
        source="tipo_transportador",
        choices=TipoTransportador.choices,
        required=False,
        allow_blank=True,
    )
    infoAdicional = serializers.CharField(source="info_adicional", required=False, allow_blank=True)
    infoFisco = serializers.CharField(source="info_fisco", required=False, allow_blank=True)

    municipiosCarregamento = serializers.ListField(
        source="municipios_carregamento",
        child=serializers.CharField(max_length=7),
        required=False,
    )
    municipiosDescarregamento = serializers.ListField(
        source="municipios_descarregamento",
        child=serializers.CharField(max_length=7),
        required=False,
    )


class MdfeCriarSerializer(MdfeAtualizarSerializer):
    emitenteId = serializers.UUIDField(source="emitente_id")
    veiculoId = serializers.UUIDField(source="veiculo_id")
    condutorId = serializers.UUIDField(source="condutor_id")
    serie = serializers.IntegerField(required=False, min_value=1)
    ufIni = serializers.CharField(source="uf_inicio", max_length=2)
    ufFim = serializers.CharField(source="uf_fim", max_length=2)


class MdfeReboqueSerializer(serializers.Serializer):
    ordem = serializers.IntegerField()
    reboqueId = serializers.UUIDField(source="reboque_id", allow_null=True)
    placa = serializers.CharField()
    renavam = serializers.CharField()
    tara = serializers.IntegerField()
    capacidadeKg = serializers.IntegerField(source="capacidade_kg", allow_null=True)
    tipoCarroceria = serializers.CharField(source="tipo_carroceria")
    uf = serializers.CharField()
    rntrc = serializers.CharField()


class MdfeCondutorAdicionalSerializer(serializers.Serializer):
    ordem = serializers.IntegerField()
    condutorId = serializers.UUIDField(source="condutor_id", allow_null=True)
    nome = serializers.CharField()
    cpf = serializers.CharField()


class MdfeLocalSerializer(serializers.Serializer):
    ordem = serializers.IntegerField()
    codigoIbge = serializers.CharField(source="codigo_ibge")
    nome = serializers.CharField()


class MdfeSerializer(serializers.Serializer):
    """
    Saída completa do MDF-e, com snapshots e filhos ordenados.
    """

    id = serializers.UUIDField()
    emitenteId = serializers.UUIDField(source="emitente_id")
    veiculoId = serializers.UUIDField(source="veiculo_id")
    condutorId = serializers.UUIDField(source="condutor_id")
    contratanteId = serializers.UUIDField(source="contratante_id", allow_null=True)
    seguradoraId = serializers.UUIDField(source="seguradora_id", allow_null=True)

    serie = serializers.IntegerField()
    numeroMdfe = serializers.IntegerField(source="numero")
    modelo = serializers.CharField()
    modal = serializers.CharField()
    status = serializers.ChoiceField(choices=MdfeStatus.choices)
    statusDisplay = serializers.CharField(source="get_status_display")

    chaveAcesso = serializers.CharField(source="chave_acesso", allow_null=True)
    chaveGerada = serializers.CharField(source="chave_gerada")
    codigoVerificador = serializers.CharField(source="codigo_verificador")
    codigoStatusSefaz = serializers.IntegerField(source="codigo_status_sefaz", allow_null=True)
    motivoSefaz = serializers.CharField(source="motivo_sefaz")
    numeroRecibo = serializers.CharField(source="numero_recibo")
    protocoloAutorizacao = serializers.CharField(source="protocolo_autorizacao")
    transmitido = serializers.BooleanField()
    payloadHash = serializers.CharField(source="payload_hash")

    dataEmissao = serializers.DateTimeField(source="data_emissao")
    dataInicioViagem = serializers.DateTimeField(source="data_inicio_viagem", allow_null=True)
    ufIni = serializers.CharField(source="uf_inicio")
    ufFim = serializers.CharField(source="uf_fim")
    municipioIni = serializers.CharField(source="municipio_inicio")
    municipioFim = serializers.CharField(source="municipio_fim")
    ufsPercurso = serializers.ListField(source="ufs_percurso", child=serializers.CharField())
    pesoBrutoTotal = serializers.DecimalField(source="peso_bruto_total", max_digits=15, decimal_places=4)
    valorTotal = serializers.DecimalField(source="valor_carga", max_digits=15, decimal_places=2)
    unidadeMedida = serializers.CharField(source="unidade_medida")
    tipoTransportador = serializers.CharField(source="tipo_transportador")
    infoAdicional = serializers.CharField(source="info_adicional")
    infoFisco = serializers.CharField(source="info_fisco")

    emitente = serializers.SerializerMethodField()
    veiculo = serializers.SerializerMethodField()
    condutor = serializers.SerializerMethodField()
    contratante = serializers.SerializerMethodField()
    reboques = MdfeReboqueSerializer(many=True)
    condutoresAdicionais = MdfeCondutorAdicionalSerializer(source="condutores_adicionais", many=True)
    municipiosCarregamento = serializers.SerializerMethodField()
    municipiosDescarregamento = serializers.SerializerMethodField()

    dataGeracao = serializers.DateTimeField(source="data_geracao", allow_null=True)
    dataTransmissao = serializers.DateTimeField(source="data_transmissao", allow_null=True)
    dataAutorizacao = serializers.DateTimeField(source="data_autorizacao", allow_null=True)
    dataCancelamento = serializers.DateTimeField(source="data_cancelamento", allow_null=True)
    dataEncerramento = serializers.DateField(source="data_encerramento", allow_null=True)
    municipioEncerramento = serializers.CharField(source="municipio_encerramento")

    usuarioCriacao = serializers.CharField(source="usuario_criacao")
    usuarioAlteracao = serializers.CharField(source="usuario_alteracao")
    createdAt = serializers.DateTimeField(source="created_at")
    updatedAt = serializers.DateTimeField(source="updated_at")

    def get_emitente(self, obj):
        return {
            "cnpj": obj.emitente_cnpj,
            "cpf": obj.emitente_cpf,
            "ie": obj.emitente_ie,
            "razaoSocial": obj.emitente_razao_social,
            "nomeFantasia": obj.emitente_nome_fantasia,
            "endereco": obj.emitente_endereco,
            "numero": obj.emitente_numero,
            "complemento": obj.emitente_complemento,
            "bairro": obj.emitente_bairro,
            "codigoMunicipio": obj.emitente_codigo_municipio,
            "municipio": obj.emitente_municipio,
            "cep": obj.emitente_cep,
            "uf": obj.emitente_uf,
            "telefone": obj.emitente_telefone,
            "email": obj.emitente_email,
            "tipoEmitente": obj.emitente_tipo,
            "rntrc": obj.emitente_rntrc,
            "ambiente": obj.emitente_ambiente,
        }

    def get_veiculo(self, obj):
        return {
            "placa": obj.veiculo_placa,
            "renavam": obj.veiculo_renavam,
            "tara": obj.veiculo_tara,
            "capacidadeKg": obj.veiculo_capacidade_kg,
            "tipoRodado": obj.veiculo_tipo_rodado,
            "tipoCarroceria": obj.veiculo_tipo_carroceria,
            "uf": obj.veiculo_uf,
            "marca": obj.veiculo_marca,
        }

    def get_condutor(self, obj):
        return {
            "nome": obj.condutor_nome,
            "cpf": obj.condutor_cpf,
            "telefone": obj.condutor_telefone,
        }

    def get_contratante(self, obj):
        if not obj.contratante_id:
            return None
        return {
            "cnpj": obj.contratante_cnpj,
            "cpf": obj.contratante_cpf,
            "razaoSocial": obj.contratante_razao_social,
            "nomeFantasia": obj.contratante_nome_fantasia,
            "uf": obj.contratante_uf,
            "municipio": obj.contratante_municipio,
        }

    def _locais(self, obj, tipo):
        locais = [local for local in obj.locais.all() if local.tipo == tipo]
        return MdfeLocalSerializer(sorted(locais, key=lambda l: l.ordem), many=True).data

    def get_municipiosCarregamento(self, obj):
        return self._locais(obj, TipoLocal.CARREGAMENTO)

    def get_municipiosDescarregamento(self, obj):
        return self._locais(obj, TipoLocal.DESCARREGAMENTO)


class MdfeResumoSerializer(serializers.Serializer):
    """
    Linha da listagem paginada.
    """

    id = serializers.UUIDField()
    emitenteId = serializers.UUIDField(source="emitente_id")
    emitenteRazaoSocial = serializers.CharField(source="emitente_razao_social")
    serie = serializers.IntegerField()
    numeroMdfe = serializers.IntegerField(source="numero")
    status = serializers.CharField()
    chaveAcesso = serializers.CharField(source="chave_acesso", allow_null=True)
    veiculoPlaca = serializers.CharField(source="veiculo_placa")
    condutorNome = serializers.CharField(source="condutor_nome")
    ufIni = serializers.CharField(source="uf_inicio")
    ufFim = serializers.CharField(source="uf_fim")
    dataEmissao = serializers.DateTimeField(source="data_emissao")
    updatedAt = serializers.DateTimeField(source="updated_at")


class ProximoNumeroQuerySerializer(serializers.Serializer):
    emitenteId = serializers.UUIDField(source="emitente_id", required=False)
    emitenteCnpj = serializers.CharField(source="emitente_cnpj", required=False, allow_blank=False)
    serie = serializers.IntegerField(required=False, min_value=1)

    def validate(self, attrs):
        if not attrs.get("emitente_id") and not attrs.get("emitente_cnpj"):
            raise serializers.ValidationError("Informe emitenteId ou emitenteCnpj.")
        return attrs


class ProximoNumeroSerializer(serializers.Serializer):
    emitenteId = serializers.UUIDField(source="emitente_id")
    serie = serializers.IntegerField()
    proximoNumero = serializers.IntegerField(source="proximo_numero")


class TransmitirSerializer(serializers.Serializer):
    sincrono = serializers.BooleanField(required=False, default=True)


class CancelarSerializer(serializers.Serializer):
    """
    O tamanho mínimo da justificativa é conferido no serviço, antes de
    qualquer leitura do MDF-e.
    """

    justificativa = serializers.CharField(allow_blank=True, trim_whitespace=False)


class EncerrarSerializer(serializers.Serializer):
    municipioDescarga = serializers.CharField(source="municipio_descarga")
    dataEncerramento = serializers.DateField(source="data_encerramento", required=False, allow_null=True)


class ConsultaSerializer(serializers.Serializer):
    status = serializers.CharField(source="resultado.status")
    codigo = serializers.IntegerField(source="resultado.codigo")
    mensagem = serializers.CharField(source="resultado.mensagem")
    protocolo = serializers.CharField(source="resultado.protocolo")
    sincronizado = serializers.BooleanField()
    mdfe = MdfeSerializer()


class StatusServicoSerializer(serializers.Serializer):
    codigoUf = serializers.CharField(source="codigo_uf")
    emOperacao = serializers.BooleanField(source="em_operacao")
    codigo = serializers.IntegerField()
    mensagem = serializers.CharField()
    tempoMedio = serializers.IntegerField(source="tempo_medio", allow_null=True)


class MdfeEventoSerializer(serializers.Serializer):
    id = serializers.UUIDField()
    tipoEvento = serializers.CharField(source="tipo_evento")
    statusAnterior = serializers.CharField(source="status_anterior")
    statusNovo = serializers.CharField(source="status_novo")
    codigoRetorno = serializers.CharField(source="codigo_retorno")
    mensagemRetorno = serializers.CharField(source="mensagem_retorno")
    protocolo = serializers.CharField()
    justificativa = serializers.CharField()
    usuario = serializers.CharField()
    raw = serializers.JSONField()
    createdAt = serializers.DateTimeField(source="created_at")
