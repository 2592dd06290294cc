"""
Fluxos HTTP do MDF-e: envelope, permissões e ciclo de vida completo.
"""

import pytest

from commons.tests.helpers import CODIGO_RIO, CODIGO_SAO_PAULO, gerar_chave
from mdfe.models import Mdfe, MdfeStatus
from mdfe.services.mdfe_service import excluir_mdfe
from mdfe.services.transmissao_service import transmitir_mdfe

BASE = "/api/v1/mdfe"


@pytest.fixture
def corpo_criacao(emitente, veiculo, condutor, municipios):
    return {
        "emitenteId": str(emitente.id),
        "veiculoId": str(veiculo.id),
        "condutorId": str(condutor.id),
        "ufIni": "SP",
        "ufFim": "RJ",
        "ufsPercurso": [],
        "pesoBrutoTotal": "12000.0000",
        "valorTotal": "150000.00",
        "municipiosCarregamento": [CODIGO_SAO_PAULO],
    }


def _corpo_documentos():
    return {
        "municipiosDescarga": [
            {
                "codigoIbge": CODIGO_RIO,
                "documentosCte": [
                    {
                        "chave": gerar_chave(1),
                        "produtosPerigosos": [
                            {"numeroOnu": "1203", "classeRisco": "3", "quantidadeTotal": "5000 L"}
                        ],
                    }
                ],
            }
        ]
    }


@pytest.mark.django_db
def test_criar_mdfe_retorna_201_em_rascunho(client_operador, corpo_criacao):
    resp = client_operador.post(f"{BASE}/", corpo_criacao, format="json")

    assert resp.status_code == 201
    corpo = resp.json()
    assert corpo["success"] is True
    dados = corpo["data"]
    assert dados["status"] == "DRAFT"
    assert dados["numeroMdfe"] == 612
    assert dados["serie"] == 1
    assert dados["veiculo"]["placa"] == "ABC1D23"
    assert dados["condutor"]["nome"] == "João da Silva"
    assert dados["municipiosCarregamento"] == [{"ordem": 1, "codigoIbge": CODIGO_SAO_PAULO, "nome": "São Paulo"}]
    assert dados["chaveAcesso"] is None
    assert dados["usuarioCriacao"] == "operador"


@pytest.mark.django_db
def test_criar_mdfe_sem_emitente_retorna_400(client_operador, corpo_criacao):
    corpo_criacao.pop("emitenteId")

    resp = client_operador.post(f"{BASE}/", corpo_criacao, format="json")

    assert resp.status_code == 400
    corpo = resp.json()
    assert corpo["errorCode"] == "VALIDACAO"
    assert "emitenteId" in corpo["details"]
    assert Mdfe.objects.count() == 0


@pytest.mark.django_db
def test_criar_mdfe_com_veiculo_inativo(client_operador, corpo_criacao, veiculo):
    veiculo.definir_ativo(False)

    resp = client_operador.post(f"{BASE}/", corpo_criacao, format="json")

    assert resp.status_code == 400
    assert resp.json()["errorCode"] == "CADASTRO_INATIVO"


@pytest.mark.django_db
def test_detalhe_e_edicao(client_operador, mdfe_rascunho):
    resp = client_operador.put(f"{BASE}/{mdfe_rascunho.id}", {"infoAdicional": "Entrega agendada"}, format="json")

    assert resp.status_code == 200
    assert resp.json()["data"]["infoAdicional"] == "Entrega agendada"
    assert resp.json()["data"]["usuarioAlteracao"] == "operador"

    detalhe = client_operador.get(f"{BASE}/{mdfe_rascunho.id}")
    assert detalhe.status_code == 200
    assert detalhe.json()["data"]["id"] == str(mdfe_rascunho.id)


@pytest.mark.django_db
def test_cancelar_rascunho_retorna_400(client_fiscal, mdfe_rascunho):
    resp = client_fiscal.post(
        f"{BASE}/{mdfe_rascunho.id}/cancelar",
        {"justificativa": "Cancelamento solicitado pelo cliente"},
        format="json",
    )

    assert resp.status_code == 400
    corpo = resp.json()
    assert corpo["success"] is False
    assert corpo["errorCode"] == "MDFE_NAO_AUTORIZADO"
    assert corpo["details"] == {"status": "DRAFT"}


@pytest.mark.django_db
def test_documentos_fiscais_com_produto_perigoso(client_operador, mdfe_rascunho):
    resp = client_operador.post(f"{BASE}/{mdfe_rascunho.id}/documentos-fiscais", _corpo_documentos(), format="json")

    assert resp.status_code == 200
    dados = resp.json()["data"]
    assert dados["mdfeId"] == str(mdfe_rascunho.id)
    assert dados["totalDocumentosCte"] == 1
    assert dados["totalDocumentosNfe"] == 0
    descarga = dados["municipiosDescarga"][0]
    assert descarga["codigoIbge"] == CODIGO_RIO
    perigoso = descarga["documentosCte"][0]["produtosPerigosos"][0]
    assert (perigoso["numeroOnu"], perigoso["classeRisco"], perigoso["quantidadeTotal"]) == ("1203", "3", "5000 L")

    leitura = client_operador.get(f"{BASE}/{mdfe_rascunho.id}/documentos-fiscais")
    assert leitura.json()["data"]["totalDocumentosCte"] == 1


@pytest.mark.django_db
def test_documentos_com_chave_em_uso_retorna_409(client_operador, mdfe_com_documentos, criar_mdfe):
    outro = criar_mdfe()

    resp = client_operador.post(f"{BASE}/{outro.id}/documentos-fiscais", _corpo_documentos(), format="json")

    assert resp.status_code == 409
    assert resp.json()["errorCode"] == "DOCUMENTO_CHAVE_EM_USO"


@pytest.mark.django_db
def test_pagamentos_e_seguro(client_operador, mdfe_rascunho, seguradora):
    pagamentos = client_operador.put(
        f"{BASE}/{mdfe_rascunho.id}/pagamentos",
        {"componentes": [{"tipoComponente": "01", "valor": "100.00"}], "tipoPagamento": "0"},
        format="json",
    )

    assert pagamentos.status_code == 200
    dados = pagamentos.json()["data"]
    assert dados["valorTotalContrato"] == "100.00"
    assert dados["semValePedagio"] is True
    assert dados["componentes"] == [{"tipoComponente": "01", "valor": "100.00", "descricao": ""}]

    seguro = client_operador.put(
        f"{BASE}/{mdfe_rascunho.id}/seguro",
        {"tipoResponsavel": 1, "seguradoraId": str(seguradora.id), "numerosAverbacao": ["AV-1"]},
        format="json",
    )

    assert seguro.status_code == 200
    dados = seguro.json()["data"]
    assert dados["numeroApolice"] == "AP-2025-001"
    assert dados["cnpjResponsavel"] == "11222333000181"
    assert dados["seguradora"]["razaoSocial"] == "Seguradora Brasil SA"

    assert client_operador.get(f"{BASE}/{mdfe_rascunho.id}/seguro").json()["data"]["numerosAverbacao"] == ["AV-1"]


@pytest.mark.django_db
def test_pagamento_com_total_divergente(client_operador, mdfe_rascunho):
    resp = client_operador.put(
        f"{BASE}/{mdfe_rascunho.id}/pagamentos",
        {"componentes": [{"tipoComponente": "01", "valor": "100.00"}], "valorTotalContrato": "99.00"},
        format="json",
    )

    assert resp.status_code == 400
    assert resp.json()["errorCode"] == "PAGAMENTO_TOTAL_DIVERGENTE"


@pytest.mark.django_db
@pytest.mark.parametrize("acao", ["gerar", "transmitir"])
def test_acoes_fiscais_exigem_permissao(client_operador, mdfe_com_documentos, acao):
    resp = client_operador.post(f"{BASE}/{mdfe_com_documentos.id}/{acao}", {}, format="json")

    assert resp.status_code == 403
    assert resp.json()["errorCode"] == "AUTH_1006"
    assert Mdfe.objects.get(pk=mdfe_com_documentos.id).status == MdfeStatus.RASCUNHO


@pytest.mark.django_db
def test_cancelar_e_encerrar_exigem_permissao(client_operador, mdfe_autorizado):
    cancelar = client_operador.post(
        f"{BASE}/{mdfe_autorizado.id}/cancelar", {"justificativa": "x" * 20}, format="json"
    )
    encerrar = client_operador.post(
        f"{BASE}/{mdfe_autorizado.id}/encerrar", {"municipioDescarga": CODIGO_RIO}, format="json"
    )

    assert cancelar.status_code == 403
    assert encerrar.status_code == 403
    assert Mdfe.objects.get(pk=mdfe_autorizado.id).status == MdfeStatus.AUTORIZADO


@pytest.mark.django_db
def test_ciclo_completo_ate_encerramento(client_fiscal, corpo_criacao):
    """
    Cenário: criar -> documentos -> gerar -> transmitir (síncrono) ->
    imprimir -> encerrar, tudo pela API.
    Esperado: status CLOSED e trilha de eventos na ordem.
    """
    criado = client_fiscal.post(f"{BASE}/", corpo_criacao, format="json").json()["data"]
    mdfe_id = criado["id"]

    assert client_fiscal.post(f"{BASE}/{mdfe_id}/documentos-fiscais", _corpo_documentos(), format="json").status_code == 200

    gerado = client_fiscal.post(f"{BASE}/{mdfe_id}/gerar", {}, format="json")
    assert gerado.status_code == 200
    assert gerado.json()["data"]["status"] == "GENERATED"
    assert len(gerado.json()["data"]["chaveGerada"]) == 44

    transmitido = client_fiscal.post(f"{BASE}/{mdfe_id}/transmitir", {"sincrono": True}, format="json")
    assert transmitido.status_code == 200
    dados = transmitido.json()["data"]
    assert dados["status"] == "AUTHORIZED"
    assert dados["chaveAcesso"] == dados["chaveGerada"]
    assert dados["codigoStatusSefaz"] == 100

    pdf = client_fiscal.get(f"{BASE}/{mdfe_id}/imprimir")
    assert pdf.status_code == 200
    assert pdf["Content-Type"] == "application/pdf"
    assert pdf.content.startswith(b"%PDF")

    encerrado = client_fiscal.post(f"{BASE}/{mdfe_id}/encerrar", {"municipioDescarga": CODIGO_RIO}, format="json")
    assert encerrado.status_code == 200
    assert encerrado.json()["data"]["status"] == "CLOSED"
    assert encerrado.json()["data"]["municipioEncerramento"] == CODIGO_RIO

    eventos = client_fiscal.get(f"{BASE}/{mdfe_id}/eventos").json()["data"]
    assert [e["tipoEvento"] for e in eventos] == ["GERACAO", "TRANSMISSAO", "ENCERRAMENTO"]


@pytest.mark.django_db
def test_transmissao_assincrona_e_consulta_por_recibo(client_fiscal, mdfe_gerado):
    resp = client_fiscal.post(f"{BASE}/{mdfe_gerado.id}/transmitir", {"sincrono": False}, format="json")

    assert resp.status_code == 200
    assert resp.json()["data"]["status"] == "TRANSMITTED"
    assert resp.json()["data"]["numeroRecibo"]

    consulta = client_fiscal.post(f"{BASE}/{mdfe_gerado.id}/consultar-recibo", {}, format="json")

    assert consulta.status_code == 200
    dados = consulta.json()["data"]
    assert dados["sincronizado"] is True
    assert dados["codigo"] == 100
    assert dados["status"] == "AUTHORIZED"
    assert dados["mdfe"]["status"] == "AUTHORIZED"


@pytest.mark.django_db
def test_segunda_transmissao_pela_api(client_fiscal, mdfe_autorizado):
    resp = client_fiscal.post(f"{BASE}/{mdfe_autorizado.id}/transmitir", {}, format="json")

    assert resp.status_code == 400
    assert resp.json()["errorCode"] == "MDFE_JA_TRANSMITIDO"


@pytest.mark.django_db
def test_consultar_situacao(client_operador, mdfe_autorizado):
    resp = client_operador.post(f"{BASE}/{mdfe_autorizado.id}/consultar", {}, format="json")

    assert resp.status_code == 200
    assert resp.json()["data"]["sincronizado"] is False
    assert resp.json()["data"]["protocolo"] == mdfe_autorizado.protocolo_autorizacao


@pytest.mark.django_db
def test_falha_do_motor_retorna_502(client_fiscal, mdfe_com_documentos, settings):
    settings.MDFE_ENGINE = {**settings.MDFE_ENGINE, "BACKEND": "mock-falha"}

    resp = client_fiscal.post(f"{BASE}/{mdfe_com_documentos.id}/gerar", {}, format="json")

    assert resp.status_code == 502
    corpo = resp.json()
    assert corpo["errorCode"] == "MOTOR_FISCAL"
    assert corpo["details"]["codigo"] == "TECH_FAIL"


@pytest.mark.django_db
def test_timeout_do_motor_retorna_504(client_fiscal, mdfe_gerado, settings):
    settings.MDFE_ENGINE = {**settings.MDFE_ENGINE, "BACKEND": "mock-timeout"}

    resp = client_fiscal.post(f"{BASE}/{mdfe_gerado.id}/transmitir", {}, format="json")

    assert resp.status_code == 504
    assert resp.json()["errorCode"] == "MOTOR_FISCAL_TIMEOUT"


@pytest.mark.django_db
def test_cancelar_com_justificativa_curta(client_fiscal, mdfe_autorizado):
    resp = client_fiscal.post(f"{BASE}/{mdfe_autorizado.id}/cancelar", {"justificativa": "curta"}, format="json")

    assert resp.status_code == 400
    assert resp.json()["errorCode"] == "MDFE_JUSTIFICATIVA_INVALIDA"


@pytest.mark.django_db
def test_excluir_autorizado_e_recusado(client_operador, mdfe_autorizado):
    resp = client_operador.delete(f"{BASE}/{mdfe_autorizado.id}")

    assert resp.status_code == 400
    assert resp.json()["errorCode"] == "MDFE_NAO_EXCLUIVEL"
    assert Mdfe.objects.get(pk=mdfe_autorizado.id).status == MdfeStatus.AUTORIZADO


@pytest.mark.django_db
def test_excluir_rascunho_remove_o_registro(client_operador, mdfe_autorizado, criar_mdfe):
    mdfe_rascunho = criar_mdfe()

    rascunho = client_operador.delete(f"{BASE}/{mdfe_rascunho.id}")
    assert rascunho.status_code == 204
    assert rascunho.content == b""
    assert client_operador.get(f"{BASE}/{mdfe_rascunho.id}").status_code == 404


@pytest.mark.django_db
def test_listagem_esconde_excluidos(client_operador, criar_mdfe, mdfe_gerado):
    criar_mdfe()
    transmitir_mdfe(mdfe_gerado.id, sincrono=False)
    excluir_mdfe(mdfe_gerado.id)

    padrao = client_operador.get(f"{BASE}/").json()["data"]
    excluidos = client_operador.get(f"{BASE}/", {"status": "DELETED"}).json()["data"]

    assert padrao["count"] == 1
    assert all(item["status"] != "DELETED" for item in padrao["results"])
    assert excluidos["count"] == 1
    assert excluidos["results"][0]["id"] == str(mdfe_gerado.id)


@pytest.mark.django_db
def test_listagem_filtra_por_status_e_busca(client_operador, criar_mdfe, mdfe_gerado):
    criar_mdfe()

    gerados = client_operador.get(f"{BASE}/", {"status": "GENERATED"}).json()["data"]
    por_placa = client_operador.get(f"{BASE}/", {"search": "abc1d"}).json()["data"]
    invalido = client_operador.get(f"{BASE}/", {"status": "QUALQUER"})

    assert [item["numeroMdfe"] for item in gerados["results"]] == [612]
    assert por_placa["count"] == 2
    assert invalido.status_code == 400


@pytest.mark.django_db
def test_proximo_numero(client_operador, mdfe_rascunho, emitente):
    por_cnpj = client_operador.get(f"{BASE}/proximo-numero", {"emitenteCnpj": "11.222.333/0001-81"})
    por_id = client_operador.get(f"{BASE}/proximo-numero", {"emitenteId": str(emitente.id), "serie": 5})
    sem_emitente = client_operador.get(f"{BASE}/proximo-numero")

    assert por_cnpj.status_code == 200
    assert por_cnpj.json()["data"] == {"emitenteId": str(emitente.id), "serie": 1, "proximoNumero": 613}
    assert por_id.json()["data"]["proximoNumero"] == 612
    assert sem_emitente.status_code == 400


@pytest.mark.django_db
def test_encerrar_pelo_nome_do_municipio(client_fiscal, mdfe_autorizado):
    resp = client_fiscal.post(
        f"{BASE}/{mdfe_autorizado.id}/encerrar", {"municipioDescarga": "rio de janeiro"}, format="json"
    )

    assert resp.status_code == 200
    assert resp.json()["data"]["municipioEncerramento"] == CODIGO_RIO


@pytest.mark.django_db
def test_duplicar_autorizado_gera_novo_rascunho(client_operador, mdfe_autorizado):
    resp = client_operador.post(f"{BASE}/{mdfe_autorizado.id}/duplicar")

    assert resp.status_code == 201
    dados = resp.json()["data"]
    assert dados["id"] != str(mdfe_autorizado.id)
    assert dados["status"] == "DRAFT"
    assert dados["numeroMdfe"] == 613
    assert dados["chaveAcesso"] is None
    assert dados["protocoloAutorizacao"] == ""
    assert Mdfe.objects.get(pk=mdfe_autorizado.id).status == MdfeStatus.AUTORIZADO


@pytest.mark.django_db
def test_duplicar_inexistente_retorna_404(client_operador, id_inexistente):
    resp = client_operador.post(f"{BASE}/{id_inexistente}/duplicar")

    assert resp.status_code == 404
    assert resp.json()["errorCode"] == "NAO_ENCONTRADO"


@pytest.mark.django_db
def test_status_servico(client_operador):
    resp = client_operador.get(f"{BASE}/status-servico/35")

    assert resp.status_code == 200
    assert resp.json()["data"] == {
        "codigoUf": "35",
        "emOperacao": True,
        "codigo": 107,
        "mensagem": "Serviço em Operação (mock).",
        "tempoMedio": 1,
    }


@pytest.mark.django_db
def test_status_servico_uf_invalida_e_sem_token(client_operador, api_client):
    invalida = client_operador.get(f"{BASE}/status-servico/99")
    sem_token = api_client.get(f"{BASE}/status-servico/35")

    assert invalida.status_code == 400
    assert invalida.json()["errorCode"] == "UF_INVALIDA"
    assert sem_token.status_code == 401
