# enderecos/urls.py
from django.urls import path, include
from rest_framework.routers import DefaultRouter

from enderecos.views.views import MunicipioViewSet, UFViewSet

router = DefaultRouter()
router.register(r'uf', UFViewSet, basename='uf')
router.register(r'municipio', MunicipioViewSet, basename='municipio')

urlpatterns = [
    path('', include(router.urls)),
]
