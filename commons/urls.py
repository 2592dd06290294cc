# commons/urls.py
# Rotas públicas de infraestrutura, fora do envelope da API.

from django.urls import path

from commons.views import commons_views

urlpatterns = [
    path("health/liveness", commons_views.liveness, name="health-liveness"),
    path("health/readiness", commons_views.readiness, name="health-readiness"),
    path("time/now", commons_views.time_now, name="time-now"),
]
