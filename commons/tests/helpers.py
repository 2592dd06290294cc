# commons/tests/helpers.py
from django.contrib.auth.models import Permission
from rest_framework.test import APIClient
from rest_framework_simplejwt.tokens import RefreshToken

CODIGO_SAO_PAULO = "3550308"
CODIGO_CAMPINAS = "3509502"
CODIGO_RIO = "3304557"

CNPJ_EMITENTE = "11222333000181"


def gerar_chave(sequencial: int, modelo: str = "57") -> str:
    """
    Chave de acesso de 44 dígitos para documentos vinculados
    (57 = CT-e, 55 = NF-e, 58 = MDF-e). O DV não é conferido na vinculação.
    """
    return f"352501{CNPJ_EMITENTE}{modelo}001{sequencial:09d}1{sequencial:08d}0"


def payload_documentos(codigo_ibge: str = CODIGO_RIO, chaves_cte=(), chaves_nfe=(), **extra) -> dict:
    """
    Payload de definir_documentos (chaves snake_case do serviço) com um
    único município de descarga.
    """
    return {
        "municipios_descarga": [
            {
                "codigo_ibge": codigo_ibge,
                "documentos_cte": [{"chave": c} for c in chaves_cte],
                "documentos_nfe": [{"chave": c} for c in chaves_nfe],
            }
        ],
        **extra,
    }


def conceder_permissoes(user, *codenames):
    perms = Permission.objects.filter(content_type__app_label="mdfe", codename__in=codenames)
    user.user_permissions.add(*perms)
    # has_perm guarda cache na instância
    for attr in ("_perm_cache", "_user_perm_cache"):
        if hasattr(user, attr):
            delattr(user, attr)
    return user


def _make_client_jwt(user) -> APIClient:
    client = APIClient()
    token = RefreshToken.for_user(user).access_token
    client.credentials(HTTP_AUTHORIZATION=f"Bearer {token}")
    return client
