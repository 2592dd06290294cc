# conftest.py (na raiz do projeto)

import logging
import uuid

import pytest
from django.contrib.auth import get_user_model
from django.core.cache import cache
from rest_framework.test import APIClient

from cadastros.models import Condutor, Contratante, Emitente, Reboque, Seguradora, Veiculo
from commons.tests.helpers import (
    CODIGO_CAMPINAS,
    CODIGO_RIO,
    CODIGO_SAO_PAULO,
    _make_client_jwt,
    conceder_permissoes,
    gerar_chave,
    payload_documentos,
)
from enderecos.models import UF, Municipio


logger = logging.getLogger(__name__)

NUMERO_INICIAL_TESTES = 612


# =============================================================================
# AMBIENTE
# =============================================================================

@pytest.fixture(autouse=True)
def mdfe_settings(settings):
    """
    Numeração começando em 612 e motor fiscal mock em todos os testes.
    """
    settings.MDFE_NUMERO_INICIAL = NUMERO_INICIAL_TESTES
    settings.MDFE_SERIE_PADRAO = 1
    settings.MDFE_ENGINE = {"BACKEND": "mock", "URL": "", "TIMEOUT": 5, "TOKEN": ""}
    return settings


@pytest.fixture(autouse=True)
def _limpar_cache_throttle():
    # UserRateThrottle guarda o histórico no cache local
    cache.clear()
    yield
    cache.clear()


# =============================================================================
# USUÁRIOS E CLIENTS
# =============================================================================

@pytest.fixture
def usuario(db):
    User = get_user_model()
    return User.objects.create_user(username="operador", password="123456")


@pytest.fixture
def usuario_fiscal(db):
    """
    Usuário com todas as permissões de ciclo de vida do MDF-e.
    """
    User = get_user_model()
    user = User.objects.create_user(username="fiscal", password="123456")
    return conceder_permissoes(
        user, "gerar_mdfe", "transmitir_mdfe", "cancelar_mdfe", "encerrar_mdfe"
    )


@pytest.fixture
def api_client():
    return APIClient()


@pytest.fixture
def client_operador(usuario):
    return _make_client_jwt(usuario)


@pytest.fixture
def client_fiscal(usuario_fiscal):
    return _make_client_jwt(usuario_fiscal)


# =============================================================================
# ENDEREÇOS
# =============================================================================

@pytest.fixture
def uf_sp(db):
    return UF.objects.create(sigla="SP", nome="São Paulo", codigo_ibge="35")


@pytest.fixture
def uf_rj(db):
    return UF.objects.create(sigla="RJ", nome="Rio de Janeiro", codigo_ibge="33")


@pytest.fixture
def municipio_sao_paulo(uf_sp):
    return Municipio.objects.create(nome="São Paulo", uf=uf_sp, codigo_ibge=CODIGO_SAO_PAULO)


@pytest.fixture
def municipio_campinas(uf_sp):
    return Municipio.objects.create(nome="Campinas", uf=uf_sp, codigo_ibge=CODIGO_CAMPINAS)


@pytest.fixture
def municipio_rio(uf_rj):
    return Municipio.objects.create(nome="Rio de Janeiro", uf=uf_rj, codigo_ibge=CODIGO_RIO)


@pytest.fixture
def municipios(municipio_sao_paulo, municipio_campinas, municipio_rio):
    return {
        "sao_paulo": municipio_sao_paulo,
        "campinas": municipio_campinas,
        "rio": municipio_rio,
    }


# =============================================================================
# CADASTROS
# =============================================================================

@pytest.fixture
def emitente(db):
    return Emitente.objects.create(
        cnpj="11222333000181",
        ie="123456789012",
        razao_social="Transportes Paulista LTDA",
        nome_fantasia="Paulista Cargas",
        endereco="Rua das Flores",
        numero="100",
        bairro="Centro",
        codigo_municipio=CODIGO_SAO_PAULO,
        municipio="São Paulo",
        cep="01001000",
        uf="SP",
        rntrc="12345678",
    )


@pytest.fixture
def veiculo(db):
    return Veiculo.objects.create(placa="ABC1D23", renavam="12345678901", tara=8000, capacidade_kg=20000, uf="SP")


@pytest.fixture
def condutor(db):
    return Condutor.objects.create(nome="João da Silva", cpf="12345678909")


@pytest.fixture
def condutor_reserva(db):
    return Condutor.objects.create(nome="Maria Souza", cpf="98765432100")


@pytest.fixture
def reboque(db):
    return Reboque.objects.create(placa="REB1A23", tara=5000, capacidade_kg=30000, uf="SP")


@pytest.fixture
def contratante(db):
    return Contratante.objects.create(cnpj="99888777000166", razao_social="Indústria Contratante SA", uf="RJ")


@pytest.fixture
def seguradora(db):
    return Seguradora.objects.create(
        cnpj="33444555000199",
        razao_social="Seguradora Brasil SA",
        apolice="AP-2025-001",
        codigo_susep="12345",
    )


# =============================================================================
# MDF-e
# =============================================================================

@pytest.fixture
def dados_mdfe(emitente, veiculo, condutor, municipios):
    """
    Dados mínimos de criação (chaves snake_case do serviço).
    """
    return {
        "emitente_id": emitente.id,
        "veiculo_id": veiculo.id,
        "condutor_id": condutor.id,
        "uf_inicio": "SP",
        "uf_fim": "RJ",
        "peso_bruto_total": "12000.0000",
        "valor_carga": "150000.00",
        "municipios_carregamento": [CODIGO_SAO_PAULO],
    }


@pytest.fixture
def criar_mdfe(dados_mdfe, usuario):
    from mdfe.services.mdfe_service import criar_mdfe as _criar

    def _factory(**override):
        return _criar({**dados_mdfe, **override}, user=usuario)

    return _factory


@pytest.fixture
def mdfe_rascunho(criar_mdfe):
    return criar_mdfe()


@pytest.fixture
def mdfe_com_documentos(mdfe_rascunho, usuario):
    from mdfe.services.documentos_service import definir_documentos

    definir_documentos(
        mdfe_rascunho.id,
        payload_documentos(chaves_cte=[gerar_chave(1)], chaves_nfe=[gerar_chave(2, "55")]),
        user=usuario,
    )
    return mdfe_rascunho


@pytest.fixture
def mdfe_gerado(mdfe_com_documentos, usuario):
    from mdfe.services.transmissao_service import gerar_mdfe

    return gerar_mdfe(mdfe_com_documentos.id, user=usuario)


@pytest.fixture
def mdfe_autorizado(mdfe_gerado, usuario):
    from mdfe.services.transmissao_service import transmitir_mdfe

    return transmitir_mdfe(mdfe_gerado.id, sincrono=True, user=usuario)


@pytest.fixture
def id_inexistente():
    return uuid.uuid4()
