"""
Criação e edição do MDF-e: numeração, snapshots e validações de vínculo.
"""

import pytest

from cadastros.models import Condutor, Reboque
from commons.exceptions import NaoEncontradoError, ValidacaoError
from mdfe.models import Mdfe, MdfeStatus, TipoLocal
from mdfe.services.mdfe_service import (
    MAX_CONDUTORES_ADICIONAIS,
    MAX_REBOQUES,
    atualizar_mdfe,
    obter_mdfe,
)


@pytest.mark.django_db
def test_primeiro_mdfe_recebe_numero_inicial_configurado(mdfe_rascunho):
    assert mdfe_rascunho.numero == 612
    assert mdfe_rascunho.serie == 1
    assert mdfe_rascunho.status == MdfeStatus.RASCUNHO
    assert mdfe_rascunho.usuario_criacao == "operador"


@pytest.mark.django_db
def test_numeracao_sequencial_por_serie(criar_mdfe):
    primeiro = criar_mdfe()
    segundo = criar_mdfe()
    outra_serie = criar_mdfe(serie=2)

    assert (primeiro.numero, segundo.numero) == (612, 613)
    assert outra_serie.numero == 612


@pytest.mark.django_db
def test_serie_padrao_vem_do_emitente(criar_mdfe, emitente):
    emitente.serie_mdfe = 7
    emitente.save()

    mdfe = criar_mdfe()

    assert mdfe.serie == 7


@pytest.mark.django_db
def test_snapshot_copia_cadastros_na_criacao(criar_mdfe, contratante, reboque, condutor_reserva):
    mdfe = criar_mdfe(
        contratante_id=contratante.id,
        reboques_ids=[reboque.id],
        condutores_adicionais_ids=[condutor_reserva.id],
    )

    assert mdfe.emitente_cnpj == "11222333000181"
    assert mdfe.emitente_razao_social == "Transportes Paulista LTDA"
    assert mdfe.veiculo_placa == "ABC1D23"
    assert mdfe.veiculo_tara == 8000
    assert mdfe.condutor_nome == "João da Silva"
    assert mdfe.contratante_cnpj == "99888777000166"

    reboques = list(mdfe.reboques.all())
    assert [(r.ordem, r.placa, r.tara) for r in reboques] == [(1, "REB1A23", 5000)]

    adicionais = list(mdfe.condutores_adicionais.all())
    assert [(c.ordem, c.cpf) for c in adicionais] == [(1, "98765432100")]

    carregamento = [l for l in mdfe.locais.all() if l.tipo == TipoLocal.CARREGAMENTO]
    assert [(l.codigo_ibge, l.nome) for l in carregamento] == [("3550308", "São Paulo")]


@pytest.mark.django_db
def test_snapshot_nao_muda_quando_cadastro_e_alterado(mdfe_rascunho, veiculo, condutor):
    """
    Cenário: MDF-e criado com o veículo ABC1D23; depois a placa do cadastro
    muda para XYZ9999 e o condutor é renomeado.
    Esperado: o MDF-e relido continua com os valores da criação.
    """
    veiculo.placa = "XYZ9999"
    veiculo.save()
    condutor.nome = "Outro Nome"
    condutor.save()

    relido = obter_mdfe(mdfe_rascunho.id)

    assert relido.veiculo_placa == "ABC1D23"
    assert relido.condutor_nome == "João da Silva"


@pytest.mark.django_db
def test_editar_com_mesmo_veiculo_preserva_snapshot(mdfe_rascunho, veiculo):
    veiculo.placa = "XYZ9999"
    veiculo.save()

    atualizado = atualizar_mdfe(mdfe_rascunho.id, {"veiculo_id": veiculo.id, "info_adicional": "obs"})

    assert atualizado.veiculo_placa == "ABC1D23"
    assert atualizado.info_adicional == "obs"


@pytest.mark.django_db
def test_trocar_condutor_refaz_snapshot(mdfe_rascunho, condutor_reserva):
    atualizado = atualizar_mdfe(mdfe_rascunho.id, {"condutor_id": condutor_reserva.id})

    assert atualizado.condutor_id == condutor_reserva.id
    assert atualizado.condutor_nome == "Maria Souza"
    assert atualizado.condutor_cpf == "98765432100"


@pytest.mark.django_db
def test_remover_contratante(criar_mdfe, contratante):
    mdfe = criar_mdfe(contratante_id=contratante.id)

    atualizado = atualizar_mdfe(mdfe.id, {"contratante_id": None})

    assert atualizado.contratante_id is None
    assert atualizado.contratante_cnpj == ""


@pytest.mark.django_db
def test_veiculo_inativo_e_rejeitado(criar_mdfe, veiculo):
    veiculo.definir_ativo(False)

    with pytest.raises(ValidacaoError) as exc:
        criar_mdfe()

    assert exc.value.code == "CADASTRO_INATIVO"
    assert Mdfe.objects.count() == 0


@pytest.mark.django_db
def test_limite_de_reboques(criar_mdfe):
    reboques = [
        Reboque.objects.create(placa=f"REB{i}A00", tara=4000, uf="SP") for i in range(MAX_REBOQUES + 1)
    ]

    with pytest.raises(ValidacaoError):
        criar_mdfe(reboques_ids=[r.id for r in reboques])


@pytest.mark.django_db
def test_limite_de_condutores_adicionais(criar_mdfe):
    condutores = [
        Condutor.objects.create(nome=f"Condutor {i}", cpf=f"{i:011d}") for i in range(1, MAX_CONDUTORES_ADICIONAIS + 2)
    ]

    with pytest.raises(ValidacaoError):
        criar_mdfe(condutores_adicionais_ids=[c.id for c in condutores])


@pytest.mark.django_db
def test_condutor_principal_nao_pode_ser_adicional(criar_mdfe, condutor):
    with pytest.raises(ValidacaoError):
        criar_mdfe(condutores_adicionais_ids=[condutor.id])


@pytest.mark.django_db
def test_reboque_repetido_e_rejeitado(criar_mdfe, reboque):
    with pytest.raises(ValidacaoError):
        criar_mdfe(reboques_ids=[reboque.id, reboque.id])


@pytest.mark.django_db
def test_reboque_com_placa_do_veiculo_e_rejeitado(criar_mdfe):
    clone = Reboque.objects.create(placa="ABC1D23", tara=4000, uf="SP")

    with pytest.raises(ValidacaoError):
        criar_mdfe(reboques_ids=[clone.id])


@pytest.mark.django_db
def test_placa_de_tracao_conferida_pelo_snapshot(mdfe_rascunho, veiculo):
    """
    Cenário: depois da criação a placa do veículo muda no cadastro.
    Esperado: reboque com a placa antiga (a do snapshot) é rejeitado e
    reboque com a placa nova do cadastro é aceito.
    """
    veiculo.placa = "XYZ9A99"
    veiculo.save()
    antiga = Reboque.objects.create(placa="ABC1D23", tara=4000, uf="SP")
    nova = Reboque.objects.create(placa="XYZ9A99", tara=4000, uf="SP")

    with pytest.raises(ValidacaoError):
        atualizar_mdfe(mdfe_rascunho.id, {"reboques_ids": [antiga.id]})

    atualizado = atualizar_mdfe(mdfe_rascunho.id, {"reboques_ids": [nova.id]})
    assert [r.placa for r in atualizado.reboques.all()] == ["XYZ9A99"]


@pytest.mark.django_db
def test_uf_de_percurso_invalida_ou_repetida(criar_mdfe):
    with pytest.raises(ValidacaoError):
        criar_mdfe(ufs_percurso=["MG", "ZZ"])

    with pytest.raises(ValidacaoError):
        criar_mdfe(ufs_percurso=["MG", "mg"])

    mdfe = criar_mdfe(ufs_percurso=["mg"], uf_inicio="sp", uf_fim="rj")
    assert mdfe.ufs_percurso == ["MG"]
    assert (mdfe.uf_inicio, mdfe.uf_fim) == ("SP", "RJ")


@pytest.mark.django_db
def test_municipio_de_carregamento_desconhecido(criar_mdfe):
    with pytest.raises(NaoEncontradoError):
        criar_mdfe(municipios_carregamento=["9999999"])


@pytest.mark.django_db
def test_editar_municipios_substitui_lista_em_ordem(mdfe_rascunho):
    atualizado = atualizar_mdfe(
        mdfe_rascunho.id,
        {
            "municipios_carregamento": ["3509502", "3550308"],
            "municipios_descarregamento": ["3304557"],
        },
    )

    carregamento = sorted(
        (l for l in atualizado.locais.all() if l.tipo == TipoLocal.CARREGAMENTO), key=lambda l: l.ordem
    )
    assert [l.codigo_ibge for l in carregamento] == ["3509502", "3550308"]
    descarregamento = [l for l in atualizado.locais.all() if l.tipo == TipoLocal.DESCARREGAMENTO]
    assert [l.codigo_ibge for l in descarregamento] == ["3304557"]
