from commons.documentos import (
    chave_valida,
    codigo_uf,
    normalizar_documento,
    normalizar_placa,
    normalizar_uf,
    somente_digitos,
    uf_valida,
)


def test_normalizar_documento_remove_pontuacao():
    assert normalizar_documento("11.222.333/0001-81") == "11222333000181"
    assert normalizar_documento("123.456.789-09") == "12345678909"


def test_documento_vazio_vira_none():
    # vazio não pode colidir nas constraints de unicidade
    assert normalizar_documento("") is None
    assert normalizar_documento(None) is None
    assert normalizar_documento("./-") is None


def test_normalizar_placa():
    assert normalizar_placa("abc-1d23") == "ABC1D23"
    assert normalizar_placa(" bra 2e19 ") == "BRA2E19"
    assert normalizar_placa("") is None


def test_uf_e_codigo_ibge():
    assert normalizar_uf(" sp ") == "SP"
    assert codigo_uf("sp") == "35"
    assert codigo_uf("RJ") == "33"
    assert codigo_uf("XX") is None
    assert uf_valida("MG")
    assert not uf_valida("")


def test_chave_valida_exige_44_digitos():
    assert chave_valida("3" * 44)
    assert not chave_valida("3" * 43)
    assert somente_digitos("35 2501 1122") == "3525011122"
