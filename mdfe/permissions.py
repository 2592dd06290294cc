# mdfe/permissions.py
from rest_framework.exceptions import PermissionDenied
from rest_framework.permissions import BasePermission


def requer_permissao(codename: str):
    """
    Gera uma permission class que exige `mdfe.<codename>` do usuário.

    Sem a permissão, responde 403 com code AUTH_1006. Usuário anônimo
    fica a cargo do IsAuthenticated (401).
    """

    class _PermissaoMdfe(BasePermission):
        message = f"Usuário sem permissão para {codename.replace('_', ' ')}."

        def has_permission(self, request, view):
            user = getattr(request, "user", None)
            if not user or not user.is_authenticated:
                return False
            if not user.has_perm(f"mdfe.{codename}"):
                raise PermissionDenied({"code": "AUTH_1006", "message": self.message})
            return True

    _PermissaoMdfe.__name__ = f"Pode{codename.title().replace('_', '')}"
    return _PermissaoMdfe


PodeGerarMdfe = requer_permissao("gerar_mdfe")
PodeTransmitirMdfe = requer_permissao("transmitir_mdfe")
PodeCancelarMdfe = requer_permissao("cancelar_mdfe")
PodeEncerrarMdfe = requer_permissao("encerrar_mdfe")
