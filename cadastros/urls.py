# cadastros/urls.py
from django.urls import path, include
from rest_framework.routers import DefaultRouter

from cadastros.views.views import (
    CondutorViewSet,
    ContratanteViewSet,
    EmitenteViewSet,
    ReboqueViewSet,
    SeguradoraViewSet,
    VeiculoViewSet,
)

router = DefaultRouter()
router.register(r'emitentes', EmitenteViewSet, basename='emitente')
router.register(r'veiculos', VeiculoViewSet, basename='veiculo')
router.register(r'condutores', CondutorViewSet, basename='condutor')
router.register(r'reboques', ReboqueViewSet, basename='reboque')
router.register(r'contratantes', ContratanteViewSet, basename='contratante')
router.register(r'seguradoras', SeguradoraViewSet, basename='seguradora')

urlpatterns = [
    path('', include(router.urls)),
]
