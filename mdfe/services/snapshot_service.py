# mdfe/services/snapshot_service.py
"""
Cópia por valor dos cadastros para as colunas do MDF-e.

Depois da cópia o manifesto não lê mais o cadastro: editar ou desativar
o veículo, condutor ou emitente não altera o MDF-e já criado.
"""

from __future__ import annotations

from cadastros.models import Condutor, Contratante, Emitente, Reboque, Seguradora, Veiculo


def snapshot_emitente(emitente: Emitente) -> dict:
    return {
        "emitente_cnpj": emitente.cnpj or "",
        "emitente_cpf": emitente.cpf or "",
        "emitente_ie": emitente.ie or "",
        "emitente_razao_social": emitente.razao_social,
        "emitente_nome_fantasia": emitente.nome_fantasia or "",
        "emitente_endereco": emitente.endereco or "",
        "emitente_numero": emitente.numero or "",
        "emitente_complemento": emitente.complemento or "",
        "emitente_bairro": emitente.bairro or "",
        "emitente_codigo_municipio": emitente.codigo_municipio or "",
        "emitente_municipio": emitente.municipio or "",
        "emitente_cep": emitente.cep or "",
        "emitente_uf": emitente.uf,
        "emitente_telefone": emitente.telefone or "",
        "emitente_email": emitente.email or "",
        "emitente_tipo": emitente.tipo_emitente,
        "emitente_rntrc": emitente.rntrc or "",
        "emitente_ambiente": emitente.ambiente_sefaz,
    }


def snapshot_condutor(condutor: Condutor) -> dict:
    return {
        "condutor_nome": condutor.nome,
        "condutor_cpf": condutor.cpf,
        "condutor_telefone": condutor.telefone or "",
    }


def snapshot_veiculo(veiculo: Veiculo) -> dict:
    return {
        "veiculo_placa": veiculo.placa,
        "veiculo_renavam": veiculo.renavam or "",
        "veiculo_tara": veiculo.tara or 0,
        "veiculo_capacidade_kg": veiculo.capacidade_kg,
        "veiculo_tipo_rodado": veiculo.tipo_rodado or "",
        "veiculo_tipo_carroceria": veiculo.tipo_carroceria or "",
        "veiculo_uf": veiculo.uf or "",
        "veiculo_marca": veiculo.marca or "",
    }


def snapshot_contratante(contratante: Contratante | None) -> dict:
    if contratante is None:
        return {
            "contratante_cnpj": "",
            "contratante_cpf": "",
            "contratante_razao_social": "",
            "contratante_nome_fantasia": "",
            "contratante_uf": "",
            "contratante_municipio": "",
        }
    return {
        "contratante_cnpj": contratante.cnpj or "",
        "contratante_cpf": contratante.cpf or "",
        "contratante_razao_social": contratante.razao_social,
        "contratante_nome_fantasia": contratante.nome_fantasia or "",
        "contratante_uf": contratante.uf or "",
        "contratante_municipio": contratante.municipio or "",
    }


def snapshot_seguradora(seguradora: Seguradora | None) -> dict:
    if seguradora is None:
        return {
            "seguradora_cnpj": "",
            "seguradora_razao_social": "",
            "seguradora_nome_fantasia": "",
            "seguradora_codigo_susep": "",
        }
    return {
        "seguradora_cnpj": seguradora.cnpj,
        "seguradora_razao_social": seguradora.razao_social,
        "seguradora_nome_fantasia": seguradora.nome_fantasia or "",
        "seguradora_codigo_susep": seguradora.codigo_susep or "",
    }


def snapshot_reboque(reboque: Reboque) -> dict:
    """Campos de MdfeReboque."""
    return {
        "reboque": reboque,
        "placa": reboque.placa,
        "renavam": reboque.renavam or "",
        "tara": reboque.tara or 0,
        "capacidade_kg": reboque.capacidade_kg,
        "tipo_carroceria": reboque.tipo_carroceria or "",
        "uf": reboque.uf or "",
        "rntrc": reboque.rntrc or "",
    }


def snapshot_condutor_adicional(condutor: Condutor) -> dict:
    return {"condutor": condutor, "nome": condutor.nome, "cpf": condutor.cpf}
