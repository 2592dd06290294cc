# mdfe/urls.py

from django.urls import path

from mdfe.views import (
    mdfe_documentos_views,
    mdfe_eventos_views,
    mdfe_transmissao_views,
    mdfe_views,
)

app_name = "mdfe"

urlpatterns = [
    path("", mdfe_views.mdfe_list_create, name="mdfe-list"),
    path("proximo-numero", mdfe_views.proximo_numero, name="mdfe-proximo-numero"),
    path(
        "status-servico/<str:codigo_uf>",
        mdfe_transmissao_views.status_servico,
        name="mdfe-status-servico",
    ),
    path("<uuid:mdfe_id>", mdfe_views.mdfe_detail, name="mdfe-detail"),
    path("<uuid:mdfe_id>/", mdfe_views.mdfe_detail),
    path("<uuid:mdfe_id>/duplicar", mdfe_views.duplicar, name="mdfe-duplicar"),

    # ciclo de vida
    path("<uuid:mdfe_id>/gerar", mdfe_transmissao_views.gerar, name="mdfe-gerar"),
    path("<uuid:mdfe_id>/transmitir", mdfe_transmissao_views.transmitir, name="mdfe-transmitir"),
    path(
        "<uuid:mdfe_id>/consultar-recibo",
        mdfe_transmissao_views.consultar_por_recibo,
        name="mdfe-consultar-recibo",
    ),
    path("<uuid:mdfe_id>/consultar", mdfe_transmissao_views.consultar, name="mdfe-consultar"),
    path("<uuid:mdfe_id>/imprimir", mdfe_transmissao_views.imprimir, name="mdfe-imprimir"),
    path("<uuid:mdfe_id>/cancelar", mdfe_eventos_views.cancelar, name="mdfe-cancelar"),
    path("<uuid:mdfe_id>/encerrar", mdfe_eventos_views.encerrar, name="mdfe-encerrar"),
    path("<uuid:mdfe_id>/eventos", mdfe_eventos_views.eventos, name="mdfe-eventos"),

    # composição
    path(
        "<uuid:mdfe_id>/documentos-fiscais",
        mdfe_documentos_views.documentos_fiscais,
        name="mdfe-documentos-fiscais",
    ),
    path("<uuid:mdfe_id>/pagamentos", mdfe_documentos_views.pagamentos, name="mdfe-pagamentos"),
    path("<uuid:mdfe_id>/seguro", mdfe_documentos_views.seguro, name="mdfe-seguro"),
]
