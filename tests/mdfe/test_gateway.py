"""
Tradução MDF-e -> requisição do motor e retorno do motor -> status.
"""

import pytest

from commons.exceptions import MotorFiscalError, MotorFiscalTimeoutError
from commons.tests.helpers import gerar_chave
from mdfe.engine_clients import (
    MockMdfeEngineClient,
    MockMdfeEngineClientAlwaysFail,
    MockMdfeEngineClientTimeout,
    MotorEventoResponse,
    digito_modulo11,
    montar_chave_acesso,
)
from mdfe.gateway import TransmissaoGateway, hash_payload, montar_payload, status_da_transmissao, status_por_codigo
from mdfe.models import MdfeStatus
from mdfe.services.documentos_service import definir_documentos
from mdfe.services.mdfe_service import obter_mdfe
from mdfe.services.pagamento_service import definir_pagamentos, definir_seguro


@pytest.mark.parametrize(
    "codigo, protocolo, esperado",
    [
        (100, None, MdfeStatus.AUTORIZADO),
        (150, None, MdfeStatus.AUTORIZADO),
        (103, None, MdfeStatus.TRANSMITIDO),
        (105, None, MdfeStatus.TRANSMITIDO),
        (104, 100, MdfeStatus.AUTORIZADO),
        (104, 204, MdfeStatus.REJEITADO),
        (101, None, MdfeStatus.CANCELADO),
        (132, None, MdfeStatus.ENCERRADO),
        (204, None, MdfeStatus.REJEITADO),
        (999, None, MdfeStatus.REJEITADO),
    ],
)
def test_status_por_codigo(codigo, protocolo, esperado):
    assert status_por_codigo(codigo, protocolo) == esperado


@pytest.mark.parametrize(
    "codigo, esperado",
    [
        (100, MdfeStatus.AUTORIZADO),
        (103, MdfeStatus.TRANSMITIDO),
        (101, MdfeStatus.REJEITADO),
        (132, MdfeStatus.REJEITADO),
        (611, MdfeStatus.REJEITADO),
    ],
)
def test_status_da_transmissao(codigo, esperado):
    assert status_da_transmissao(codigo) == esperado


def test_digito_verificador_modulo11():
    # 3*2 + 2*3 + 1*4 = 16; 16 % 11 = 5; 11 - 5 = 6
    assert digito_modulo11("123") == "6"
    # resto 0 ou 1 vira 0
    assert digito_modulo11("0") == "0"
    assert digito_modulo11("6") == "0"


def test_chave_montada_tem_44_digitos():
    chave = montar_chave_acesso(
        codigo_uf="35",
        ano_mes="2501",
        documento="11222333000181",
        serie=1,
        numero=612,
        tipo_emissao="1",
        codigo_numerico="12345678",
    )

    assert len(chave) == 44
    assert chave[:43] == "3525011122233300018158001000000612112345678"
    assert chave[-1] == digito_modulo11(chave[:43])


@pytest.mark.django_db
def test_payload_usa_somente_o_snapshot(mdfe_com_documentos, veiculo, emitente):
    """
    Cenário: cadastros de veículo e emitente alterados depois da criação.
    Esperado: a requisição do motor continua com os dados copiados.
    """
    veiculo.placa = "XYZ9999"
    veiculo.save()
    emitente.razao_social = "Outra Razão"
    emitente.save()

    payload = montar_payload(obter_mdfe(mdfe_com_documentos.id))

    assert payload["rodo"]["veicTracao"]["placa"] == "ABC1D23"
    assert payload["rodo"]["veicTracao"]["condutor"] == [{"xNome": "João da Silva", "CPF": "12345678909"}]
    assert payload["emit"]["xNome"] == "Transportes Paulista LTDA"
    assert payload["emit"]["CNPJ"] == "11222333000181"
    assert payload["ide"]["cUF"] == "35"
    assert payload["ide"]["nMDF"] == "612"
    assert payload["ide"]["infMunCarrega"] == [{"cMunCarrega": "3550308", "xMunCarrega": "São Paulo"}]
    assert payload["rodo"]["infANTT"]["RNTRC"] == "12345678"


@pytest.mark.django_db
def test_payload_documentos_e_totais(mdfe_com_documentos):
    payload = montar_payload(obter_mdfe(mdfe_com_documentos.id))

    descarga = payload["infDoc"]["infMunDescarga"]
    assert len(descarga) == 1
    assert descarga[0]["cMunDescarga"] == "3304557"
    assert descarga[0]["infCTe"] == [{"chCTe": gerar_chave(1)}]
    assert descarga[0]["infNFe"] == [{"chNFe": gerar_chave(2, "55")}]
    assert payload["tot"]["qCTe"] == "1"
    assert payload["tot"]["qNFe"] == "1"
    assert payload["tot"]["qMDFe"] == "0"
    assert payload["tot"]["vCarga"] == "150000.00"
    assert payload["tot"]["qCarga"] == "12000.0000"
    assert payload["seg"] == []


@pytest.mark.django_db
def test_payload_produto_perigoso_pagamento_e_seguro(mdfe_rascunho, seguradora, contratante):
    from mdfe.services.mdfe_service import atualizar_mdfe

    atualizar_mdfe(mdfe_rascunho.id, {"contratante_id": contratante.id})
    definir_documentos(
        mdfe_rascunho.id,
        {
            "municipios_descarga": [
                {
                    "codigo_ibge": "3304557",
                    "documentos_cte": [
                        {
                            "chave": gerar_chave(1),
                            "produtos_perigosos": [
                                {"numero_onu": "1203", "classe_risco": "3", "quantidade_total": "5000 L"}
                            ],
                        }
                    ],
                }
            ]
        },
    )
    definir_pagamentos(mdfe_rascunho.id, {"componentes": [{"tipo_componente": "01", "valor": "250"}]})
    definir_seguro(
        mdfe_rascunho.id,
        {"tipo_responsavel": 1, "seguradora_id": seguradora.id, "numeros_averbacao": ["AV-1"]},
    )

    payload = montar_payload(obter_mdfe(mdfe_rascunho.id))

    cte = payload["infDoc"]["infMunDescarga"][0]["infCTe"][0]
    assert cte["peri"] == [{"nONU": "1203", "xClaRisco": "3", "qTotProd": "5000 L"}]

    inf_pag = payload["rodo"]["infANTT"]["infPag"][0]
    assert inf_pag["CNPJ"] == "99888777000166"
    assert inf_pag["Comp"] == [{"tpComp": "01", "vComp": "250.00"}]
    assert inf_pag["vContrato"] == "250.00"
    assert "valePed" not in payload["rodo"]["infANTT"]

    assert payload["seg"] == [
        {
            "infResp": {"respSeg": "1", "CNPJ": "11222333000181"},
            "infSeg": {"xSeg": "Seguradora Brasil SA", "CNPJ": "33444555000199"},
            "nApol": "AP-2025-001",
            "nAver": ["AV-1"],
        }
    ]
    assert payload["autXML"] == [{"CNPJ": "99888777000166"}]


@pytest.mark.django_db
def test_hash_do_payload_e_estavel(mdfe_com_documentos):
    mdfe = obter_mdfe(mdfe_com_documentos.id)

    assert hash_payload(montar_payload(mdfe)) == hash_payload(montar_payload(mdfe))


@pytest.mark.django_db
def test_mock_gera_a_mesma_chave_para_o_mesmo_payload(mdfe_com_documentos):
    payload = montar_payload(obter_mdfe(mdfe_com_documentos.id))
    motor = MockMdfeEngineClient()

    primeira = motor.assinar(payload)
    segunda = motor.assinar(payload)

    assert primeira.chave_acesso == segunda.chave_acesso
    assert f'Id="MDFe{primeira.chave_acesso}"' in primeira.xml_assinado


def test_falha_tecnica_vira_motor_fiscal_error():
    gateway = TransmissaoGateway(MockMdfeEngineClientAlwaysFail())

    with pytest.raises(MotorFiscalError) as exc:
        gateway.transmitir("<MDFe/>")

    assert exc.value.code == "MOTOR_FISCAL"
    assert exc.value.details["codigo"] == "TECH_FAIL"
    assert exc.value.details["raw"]["operacao"] == "transmitir"
    assert exc.value.details["numeroRecibo"] is None


def test_timeout_vira_motor_fiscal_timeout_error():
    gateway = TransmissaoGateway(MockMdfeEngineClientTimeout())

    with pytest.raises(MotorFiscalTimeoutError):
        gateway.consultar_por_chave("3" * 44)


def test_consulta_por_recibo_usa_status_do_protocolo():
    resultado = TransmissaoGateway(MockMdfeEngineClient()).consultar_por_recibo("3" + "1" * 14)

    assert resultado.status == MdfeStatus.AUTORIZADO
    assert resultado.codigo == 100
    assert resultado.protocolo == "9" + "1" * 14


def test_evento_com_codigo_diferente_de_135_e_rejeitado():
    class Motor(MockMdfeEngineClient):
        def encerrar(self, **kwargs):
            return MotorEventoResponse(codigo=631, mensagem="Duplicidade de evento", raw={"codigo": 631})

    class MdfeFalso:
        id = None
        chave_acesso = "3" * 44
        protocolo_autorizacao = "9" * 15
        emitente_documento = "11222333000181"
        emitente_ambiente = 2

    import datetime

    with pytest.raises(MotorFiscalError) as exc:
        TransmissaoGateway(Motor()).encerrar(
            MdfeFalso(),
            codigo_uf="33",
            codigo_municipio="3304557",
            data_encerramento=datetime.date(2025, 1, 10),
        )

    assert exc.value.code == "MOTOR_FISCAL_EVENTO_REJEITADO"
    assert exc.value.details["codigo"] == 631


def test_status_servico_do_mock_em_operacao():
    resultado = TransmissaoGateway(MockMdfeEngineClient()).status_servico("35")

    assert resultado.em_operacao is True
    assert resultado.codigo == 107
    assert resultado.raw["cUF"] == "35"


def test_status_servico_com_falha_tecnica():
    with pytest.raises(MotorFiscalError) as exc:
        TransmissaoGateway(MockMdfeEngineClientAlwaysFail()).status_servico("35")

    assert exc.value.details["raw"]["operacao"] == "status_servico"
