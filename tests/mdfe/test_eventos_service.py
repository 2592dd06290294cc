import datetime

import pytest
from django.utils import timezone

from commons.exceptions import MotorFiscalError, NaoEncontradoError, TransicaoInvalidaError, ValidacaoError
from mdfe.engine_clients import MockMdfeEngineClient, MotorEventoResponse
from mdfe.gateway import TransmissaoGateway
from mdfe.models import Mdfe, MdfeStatus, TipoEventoMdfe
from mdfe.services.eventos_service import cancelar_mdfe, encerrar_mdfe, listar_eventos

JUSTIFICATIVA = "Carga devolvida ao remetente antes da saída"


class MotorRecusaEvento(MockMdfeEngineClient):
    def cancelar(self, **kwargs):
        return MotorEventoResponse(codigo=218, mensagem="MDF-e já cancelado na SEFAZ", raw={"codigo": 218})


@pytest.mark.django_db
def test_cancelar_mdfe_autorizado(mdfe_autorizado, usuario_fiscal):
    cancelado = cancelar_mdfe(mdfe_autorizado.id, f"  {JUSTIFICATIVA}  ", user=usuario_fiscal)

    assert cancelado.status == MdfeStatus.CANCELADO
    assert cancelado.codigo_status_sefaz == 135
    assert cancelado.data_cancelamento is not None

    evento = cancelado.eventos.get(tipo_evento=TipoEventoMdfe.CANCELAMENTO)
    assert evento.justificativa == JUSTIFICATIVA
    assert evento.protocolo == "8" + mdfe_autorizado.chave_acesso[-14:]
    assert evento.usuario == "fiscal"
    assert (evento.status_anterior, evento.status_novo) == (MdfeStatus.AUTORIZADO, MdfeStatus.CANCELADO)


@pytest.mark.django_db
@pytest.mark.parametrize("justificativa", ["", "curta demais", "   14 caracter   ", "x" * 256])
def test_justificativa_fora_do_tamanho(mdfe_autorizado, justificativa):
    with pytest.raises(ValidacaoError) as exc:
        cancelar_mdfe(mdfe_autorizado.id, justificativa)

    assert exc.value.code == "MDFE_JUSTIFICATIVA_INVALIDA"
    assert Mdfe.objects.get(pk=mdfe_autorizado.id).status == MdfeStatus.AUTORIZADO


@pytest.mark.django_db
def test_justificativa_nos_limites(mdfe_autorizado):
    assert cancelar_mdfe(mdfe_autorizado.id, "x" * 15).status == MdfeStatus.CANCELADO


@pytest.mark.django_db
def test_cancelar_rascunho(mdfe_rascunho):
    with pytest.raises(TransicaoInvalidaError) as exc:
        cancelar_mdfe(mdfe_rascunho.id, JUSTIFICATIVA)

    assert exc.value.code == "MDFE_NAO_AUTORIZADO"
    assert exc.value.status_code == 400


@pytest.mark.django_db
def test_cancelar_duas_vezes(mdfe_autorizado):
    cancelar_mdfe(mdfe_autorizado.id, JUSTIFICATIVA)

    with pytest.raises(TransicaoInvalidaError) as exc:
        cancelar_mdfe(mdfe_autorizado.id, JUSTIFICATIVA)

    assert exc.value.code == "MDFE_NAO_AUTORIZADO"


@pytest.mark.django_db
def test_evento_recusado_pelo_motor(mdfe_autorizado):
    with pytest.raises(MotorFiscalError) as exc:
        cancelar_mdfe(mdfe_autorizado.id, JUSTIFICATIVA, gateway=TransmissaoGateway(MotorRecusaEvento()))

    assert exc.value.code == "MOTOR_FISCAL_EVENTO_REJEITADO"
    mdfe = Mdfe.objects.get(pk=mdfe_autorizado.id)
    assert mdfe.status == MdfeStatus.AUTORIZADO
    assert mdfe.eventos.filter(tipo_evento=TipoEventoMdfe.FALHA_MOTOR).count() == 1


@pytest.mark.django_db
def test_falha_do_motor_no_cancelamento(mdfe_autorizado, settings):
    settings.MDFE_ENGINE = {**settings.MDFE_ENGINE, "BACKEND": "mock-falha"}

    with pytest.raises(MotorFiscalError):
        cancelar_mdfe(mdfe_autorizado.id, JUSTIFICATIVA)

    assert Mdfe.objects.get(pk=mdfe_autorizado.id).status == MdfeStatus.AUTORIZADO


@pytest.mark.django_db
def test_encerrar_com_data_padrao_hoje(mdfe_autorizado):
    encerrado = encerrar_mdfe(mdfe_autorizado.id, "3304557")

    assert encerrado.status == MdfeStatus.ENCERRADO
    assert encerrado.data_encerramento == timezone.localdate()
    assert encerrado.municipio_encerramento == "3304557"

    evento = encerrado.eventos.get(tipo_evento=TipoEventoMdfe.ENCERRAMENTO)
    assert evento.raw["cUF"] == "33"
    assert evento.raw["cMun"] == "3304557"


@pytest.mark.django_db
def test_encerrar_com_data_futura(mdfe_autorizado):
    amanha = timezone.localdate() + datetime.timedelta(days=1)

    with pytest.raises(ValidacaoError) as exc:
        encerrar_mdfe(mdfe_autorizado.id, "3304557", amanha)

    assert exc.value.code == "MDFE_DATA_ENCERRAMENTO_INVALIDA"


@pytest.mark.django_db
def test_encerrar_antes_da_autorizacao(mdfe_autorizado):
    ontem = timezone.localdate() - datetime.timedelta(days=1)

    with pytest.raises(ValidacaoError) as exc:
        encerrar_mdfe(mdfe_autorizado.id, "3304557", ontem)

    assert exc.value.code == "MDFE_DATA_ENCERRAMENTO_INVALIDA"


@pytest.mark.django_db
def test_encerrar_em_municipio_desconhecido(mdfe_autorizado):
    with pytest.raises(NaoEncontradoError) as exc:
        encerrar_mdfe(mdfe_autorizado.id, "9999999")

    assert exc.value.code == "MUNICIPIO_NAO_ENCONTRADO"


@pytest.mark.django_db
def test_encerrar_mdfe_gerado(mdfe_gerado):
    with pytest.raises(TransicaoInvalidaError) as exc:
        encerrar_mdfe(mdfe_gerado.id, "3304557")

    assert exc.value.code == "MDFE_NAO_AUTORIZADO"


@pytest.mark.django_db
def test_encerrado_nao_pode_ser_cancelado(mdfe_autorizado):
    encerrar_mdfe(mdfe_autorizado.id, "3304557")

    with pytest.raises(TransicaoInvalidaError):
        cancelar_mdfe(mdfe_autorizado.id, JUSTIFICATIVA)


@pytest.mark.django_db
def test_listar_eventos_em_ordem(mdfe_autorizado):
    cancelar_mdfe(mdfe_autorizado.id, JUSTIFICATIVA)

    tipos = [e.tipo_evento for e in listar_eventos(mdfe_autorizado.id)]

    assert tipos == [TipoEventoMdfe.GERACAO, TipoEventoMdfe.TRANSMISSAO, TipoEventoMdfe.CANCELAMENTO]
