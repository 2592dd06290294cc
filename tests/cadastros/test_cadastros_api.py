import pytest

from cadastros.models import Veiculo

BASE = "/api/v1/cadastros"


@pytest.mark.django_db
def test_cria_emitente_via_api(client_operador):
    resp = client_operador.post(
        f"{BASE}/emitentes/",
        {
            "cnpj": "11.222.333/0001-81",
            "ie": "123456789012",
            "razao_social": "ACME Transportes",
            "uf": "sp",
            "rntrc": "12345678",
        },
        format="json",
    )

    assert resp.status_code == 201, resp.content
    corpo = resp.json()
    assert corpo["success"] is True
    assert corpo["data"]["cnpj"] == "11222333000181"
    assert corpo["data"]["documento"] == "11222333000181"
    assert corpo["data"]["uf"] == "SP"
    assert corpo["data"]["ativo"] is True


@pytest.mark.django_db
def test_placa_duplicada_via_api_retorna_409(client_operador, veiculo):
    resp = client_operador.post(
        f"{BASE}/veiculos/",
        {"placa": "ABC-1D23", "tara": 7000, "uf": "SP"},
        format="json",
    )

    assert resp.status_code == 409
    corpo = resp.json()
    assert corpo["success"] is False
    assert corpo["errorCode"] == "CADASTRO_CHAVE_DUPLICADA"
    assert Veiculo.objects.count() == 1


@pytest.mark.django_db
@pytest.mark.parametrize(
    "rota, corpo",
    [
        ("emitentes", {"cnpj": "11.222.333/0001-81", "razao_social": "Outra Transportadora", "uf": "SP"}),
        ("condutores", {"cpf": "123.456.789-09", "nome": "Homônimo"}),
        ("seguradoras", {"cnpj": "33444555000199", "razao_social": "Outra Seguradora"}),
    ],
)
def test_chave_natural_duplicada_retorna_409(client_operador, emitente, condutor, seguradora, rota, corpo):
    resp = client_operador.post(f"{BASE}/{rota}/", corpo, format="json")

    assert resp.status_code == 409, resp.content
    assert resp.json()["errorCode"] == "CADASTRO_CHAVE_DUPLICADA"


@pytest.mark.django_db
def test_placa_de_veiculo_inativo_pode_ser_recadastrada(client_operador, veiculo):
    veiculo.definir_ativo(False)

    resp = client_operador.post(f"{BASE}/veiculos/", {"placa": "abc1d23", "tara": 7000, "uf": "SP"}, format="json")

    assert resp.status_code == 201, resp.content
    assert Veiculo.objects.filter(placa="ABC1D23").count() == 2


@pytest.mark.django_db
def test_lista_paginada_filtrando_ativos(client_operador, condutor, condutor_reserva):
    condutor_reserva.definir_ativo(False)

    resp = client_operador.get(f"{BASE}/condutores/", {"ativo": "true"})

    assert resp.status_code == 200
    dados = resp.json()["data"]
    assert dados["count"] == 1
    assert dados["results"][0]["cpf"] == "12345678909"


@pytest.mark.django_db
def test_busca_por_placa(client_operador, veiculo):
    Veiculo.objects.create(placa="XYZ9A99", tara=6000, uf="RJ")

    resp = client_operador.get(f"{BASE}/veiculos/", {"search": "XYZ"})

    placas = [v["placa"] for v in resp.json()["data"]["results"]]
    assert placas == ["XYZ9A99"]


@pytest.mark.django_db
def test_desativar_via_patch(client_operador, reboque):
    resp = client_operador.patch(f"{BASE}/reboques/{reboque.id}/", {"ativo": False}, format="json")

    assert resp.status_code == 200, resp.content
    reboque.refresh_from_db()
    assert reboque.ativo is False


@pytest.mark.django_db
def test_excluir_veiculo_usado_em_mdfe_retorna_409(client_operador, mdfe_rascunho):
    resp = client_operador.delete(f"{BASE}/veiculos/{mdfe_rascunho.veiculo_id}/")

    assert resp.status_code == 409
    assert resp.json()["errorCode"] == "CADASTRO_REFERENCIADO"


@pytest.mark.django_db
def test_excluir_seguradora_sem_vinculo_retorna_204(client_operador, seguradora):
    resp = client_operador.delete(f"{BASE}/seguradoras/{seguradora.id}/")

    assert resp.status_code == 204
    assert resp.content == b""


@pytest.mark.django_db
def test_cadastro_exige_autenticacao(api_client):
    resp = api_client.get(f"{BASE}/emitentes/")

    assert resp.status_code == 401
    assert resp.json()["errorCode"] == "AUTH_1001"
