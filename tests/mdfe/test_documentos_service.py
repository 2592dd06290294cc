"""
Vinculação de documentos fiscais: substituição atômica, unicidade global
das chaves e validações de produto perigoso e entrega parcial.
"""

import pytest

from commons.exceptions import ConflitoError, NaoEncontradoError, TransicaoInvalidaError, ValidacaoError
from commons.tests.helpers import CODIGO_CAMPINAS, CODIGO_RIO, gerar_chave, payload_documentos
from mdfe.models import Mdfe, MdfeDocumentoFiscal, MdfeStatus
from mdfe.services.documentos_service import definir_documentos, obter_documentos


def _chaves(mdfe_id):
    return sorted(MdfeDocumentoFiscal.objects.filter(mdfe_id=mdfe_id).values_list("chave", flat=True))


@pytest.mark.django_db
def test_define_documentos_agrupados_por_municipio(mdfe_rascunho):
    dados = {
        "municipios_descarga": [
            {"codigo_ibge": CODIGO_RIO, "documentos_cte": [{"chave": gerar_chave(1)}, {"chave": gerar_chave(2)}]},
            {"codigo_ibge": CODIGO_CAMPINAS, "documentos_nfe": [{"chave": gerar_chave(3, "55")}]},
        ],
    }

    resumo = definir_documentos(mdfe_rascunho.id, dados)

    assert [m.codigo_ibge for m in resumo.municipios_descarga] == [CODIGO_RIO, CODIGO_CAMPINAS]
    assert [d.ordem for d in resumo.municipios_descarga[0].documentos.all()] == [1, 2]
    assert resumo.totais == {
        "total_documentos_cte": 2,
        "total_documentos_nfe": 1,
        "total_documentos_mdfe_transp": 0,
        "total_lacres": 0,
    }


@pytest.mark.django_db
def test_chave_com_mascara_e_normalizada(mdfe_rascunho):
    chave = gerar_chave(7)
    mascarada = " ".join(chave[i:i + 4] for i in range(0, 44, 4))

    definir_documentos(mdfe_rascunho.id, payload_documentos(chaves_cte=[mascarada]))

    assert _chaves(mdfe_rascunho.id) == [chave]


@pytest.mark.django_db
def test_chave_com_tamanho_errado(mdfe_rascunho):
    with pytest.raises(ValidacaoError) as exc:
        definir_documentos(mdfe_rascunho.id, payload_documentos(chaves_cte=["123"]))

    assert exc.value.code == "DOCUMENTO_CHAVE_INVALIDA"


@pytest.mark.django_db
def test_chave_repetida_no_mesmo_envio(mdfe_rascunho):
    chave = gerar_chave(1)

    with pytest.raises(ValidacaoError) as exc:
        definir_documentos(mdfe_rascunho.id, payload_documentos(chaves_cte=[chave], chaves_nfe=[chave]))

    assert exc.value.code == "DOCUMENTO_CHAVE_REPETIDA"


@pytest.mark.django_db
def test_chave_vinculada_a_outro_mdfe(mdfe_com_documentos, criar_mdfe):
    """
    Cenário: a chave do CT-e 1 já está no MDF-e 612.
    Esperado: o MDF-e 613 não consegue vincular a mesma chave (409).
    """
    outro = criar_mdfe()

    with pytest.raises(ConflitoError) as exc:
        definir_documentos(outro.id, payload_documentos(chaves_cte=[gerar_chave(1)]))

    assert exc.value.code == "DOCUMENTO_CHAVE_EM_USO"
    assert exc.value.status_code == 409
    assert exc.value.details["chaves"] == [gerar_chave(1)]
    assert _chaves(outro.id) == []


@pytest.mark.django_db
def test_reenviar_as_mesmas_chaves_no_mesmo_mdfe(mdfe_com_documentos):
    antes = _chaves(mdfe_com_documentos.id)

    definir_documentos(
        mdfe_com_documentos.id,
        payload_documentos(chaves_cte=[gerar_chave(1)], chaves_nfe=[gerar_chave(2, "55")]),
    )

    assert _chaves(mdfe_com_documentos.id) == antes


@pytest.mark.django_db
def test_falha_nao_altera_documentos_anteriores(mdfe_com_documentos):
    """
    Cenário: substituição com município inexistente.
    Esperado: erro 404 e os documentos anteriores continuam lá.
    """
    antes = _chaves(mdfe_com_documentos.id)

    with pytest.raises(NaoEncontradoError):
        definir_documentos(
            mdfe_com_documentos.id,
            payload_documentos(codigo_ibge="9999999", chaves_cte=[gerar_chave(50)]),
        )

    assert _chaves(mdfe_com_documentos.id) == antes


@pytest.mark.django_db
def test_substituicao_remove_documentos_omitidos(mdfe_com_documentos):
    resumo = definir_documentos(mdfe_com_documentos.id, payload_documentos(chaves_nfe=[gerar_chave(9, "55")]))

    assert _chaves(mdfe_com_documentos.id) == [gerar_chave(9, "55")]
    assert resumo.totais["total_documentos_cte"] == 0


@pytest.mark.django_db
def test_envio_vazio_limpa_documentos(mdfe_com_documentos):
    resumo = definir_documentos(mdfe_com_documentos.id, {"municipios_descarga": []})

    assert resumo.municipios_descarga == []
    assert _chaves(mdfe_com_documentos.id) == []


@pytest.mark.django_db
def test_produto_perigoso_completo_e_gravado(mdfe_rascunho):
    dados = {
        "municipios_descarga": [
            {
                "codigo_ibge": CODIGO_RIO,
                "documentos_cte": [
                    {
                        "chave": gerar_chave(1),
                        "produtos_perigosos": [
                            {
                                "numero_onu": "1203",
                                "nome_apropriado": "GASOLINA",
                                "classe_risco": "3",
                                "quantidade_total": "5000 L",
                            },
                            {"numero_onu": "", "classe_risco": "", "quantidade_total": ""},
                        ],
                    }
                ],
            }
        ]
    }

    resumo = definir_documentos(mdfe_rascunho.id, dados)

    documento = resumo.municipios_descarga[0].documentos.all()[0]
    produtos = list(documento.produtos_perigosos.all())
    assert [(p.numero_onu, p.classe_risco, p.quantidade_total) for p in produtos] == [("1203", "3", "5000 L")]


@pytest.mark.django_db
def test_produto_perigoso_incompleto(mdfe_rascunho):
    dados = payload_documentos()
    dados["municipios_descarga"][0]["documentos_cte"] = [
        {"chave": gerar_chave(1), "produtos_perigosos": [{"numero_onu": "1203", "classe_risco": "3"}]}
    ]

    with pytest.raises(ValidacaoError) as exc:
        definir_documentos(mdfe_rascunho.id, dados)

    assert exc.value.code == "PRODUTO_PERIGOSO_INCOMPLETO"
    assert exc.value.details["faltando"] == ["quantidade_total"]


@pytest.mark.django_db
def test_entrega_parcial_maior_que_total(mdfe_rascunho):
    dados = payload_documentos()
    dados["municipios_descarga"][0]["documentos_nfe"] = [
        {"chave": gerar_chave(1, "55"), "entrega_parcial": {"quantidade_total": "10", "quantidade_parcial": "11"}}
    ]

    with pytest.raises(ValidacaoError) as exc:
        definir_documentos(mdfe_rascunho.id, dados)

    assert exc.value.code == "ENTREGA_PARCIAL_INVALIDA"


@pytest.mark.django_db
def test_total_de_lacres_soma_todos_os_niveis(mdfe_rascunho):
    dados = payload_documentos(lacres_rodoviarios=["L1", "L2", " "])
    dados["municipios_descarga"][0]["documentos_cte"] = [
        {
            "chave": gerar_chave(1),
            "unidades_transporte": [
                {
                    "tipo": "1",
                    "identificacao": "ABC1D23",
                    "lacres": ["T1"],
                    "unidades_carga": [{"tipo": "1", "identificacao": "CONT001", "lacres": ["C1", "C2"]}],
                }
            ],
        }
    ]
    dados["unidades_transporte"] = [{"tipo": "2", "identificacao": "REB1A23", "lacres": ["R1"]}]

    resumo = definir_documentos(mdfe_rascunho.id, dados)

    assert resumo.lacres_rodoviarios == ["L1", "L2"]
    assert resumo.totais["total_lacres"] == 6
    assert [u.identificacao for u in resumo.unidades_transporte] == ["REB1A23"]


@pytest.mark.django_db
def test_documentos_em_mdfe_gerado_voltam_para_rascunho(mdfe_gerado):
    assert mdfe_gerado.status == MdfeStatus.GERADO

    definir_documentos(mdfe_gerado.id, payload_documentos(chaves_cte=[gerar_chave(1)]))

    mdfe = Mdfe.objects.get(pk=mdfe_gerado.id)
    assert mdfe.status == MdfeStatus.RASCUNHO
    assert mdfe.xml_assinado == ""
    assert mdfe.chave_gerada == ""


@pytest.mark.django_db
def test_documentos_em_mdfe_autorizado_sao_recusados(mdfe_autorizado):
    with pytest.raises(TransicaoInvalidaError) as exc:
        definir_documentos(mdfe_autorizado.id, payload_documentos(chaves_cte=[gerar_chave(30)]))

    assert exc.value.code == "MDFE_NAO_EDITAVEL"


@pytest.mark.django_db
def test_obter_documentos_de_mdfe_inexistente(id_inexistente):
    with pytest.raises(NaoEncontradoError):
        obter_documentos(id_inexistente)
