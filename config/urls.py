# config/urls.py
from django.urls import path, include
from drf_spectacular.views import SpectacularAPIView, SpectacularSwaggerView
from rest_framework_simplejwt.views import TokenObtainPairView, TokenRefreshView

urlpatterns = [
    path("", include("commons.urls")),

    path("api/v1/auth/token/", TokenObtainPairView.as_view(), name="token_obtain_pair"),
    path("api/v1/auth/token/refresh/", TokenRefreshView.as_view(), name="token_refresh"),

    path("api/schema/", SpectacularAPIView.as_view(), name="schema"),
    path("api/docs/", SpectacularSwaggerView.as_view(url_name="schema"), name="swagger-ui"),

    path("api/v1/cadastros/", include(("cadastros.urls", "cadastros"), namespace="cadastros")),
    path("api/v1/endereco/", include(("enderecos.urls", "enderecos"), namespace="enderecos")),
    path("api/v1/mdfe/", include(("mdfe.urls", "mdfe"), namespace="mdfe")),
]
