from pathlib import Path
import os
import sentry_sdk
from sentry_sdk.integrations.django import DjangoIntegration

BASE_DIR = Path(__file__).resolve().parent.parent

SECRET_KEY = os.getenv("DJANGO_SECRET_KEY", "dev-only")
DEBUG = os.getenv("DJANGO_DEBUG", "true").lower() in ("1", "true", "yes")
APPEND_SLASH = True

ALLOWED_HOSTS = os.getenv("DJANGO_ALLOWED_HOSTS", "*,localhost,127.0.0.1").split(",")


INSTALLED_APPS = [
    "django.contrib.contenttypes",
    "django.contrib.auth",
    "django.contrib.sessions",

    "rest_framework",
    "drf_spectacular",
    "corsheaders",
    "django_filters",

    "commons",    # health/time endpoints, erros, envelope
    "enderecos",  # UF e municípios
    "cadastros",  # emitente, veículo, condutor, reboque, contratante, seguradora
    "mdfe",
]


MIDDLEWARE = [
    "django.middleware.security.SecurityMiddleware",
    "commons.middleware.RequestLogMiddleware",
    "django.contrib.sessions.middleware.SessionMiddleware",
    "corsheaders.middleware.CorsMiddleware",
    "django.middleware.common.CommonMiddleware",
    "django.contrib.auth.middleware.AuthenticationMiddleware",
    "django.middleware.clickjacking.XFrameOptionsMiddleware",
]


ROOT_URLCONF = "config.urls"

CORS_ALLOW_ALL_ORIGINS = True

# PostgreSQL quando PGDATABASE estiver definido; SQLite para dev/testes locais
if os.getenv("PGDATABASE"):
    DATABASES = {
        "default": {
            "ENGINE": "django.db.backends.postgresql",
            "NAME": os.getenv("PGDATABASE"),
            "USER": os.getenv("PGUSER", "postgres"),
            "PASSWORD": os.getenv("PGPASSWORD", ""),
            "HOST": os.getenv("PGHOST", "127.0.0.1"),
            "PORT": os.getenv("PGPORT", "5432"),
            "CONN_MAX_AGE": int(os.getenv("DB_CONN_MAX_AGE", "60")),
            "TEST": {
                "NAME": "test_" + os.getenv("PGDATABASE"),
            },
        }
    }
else:
    DATABASES = {
        "default": {
            "ENGINE": "django.db.backends.sqlite3",
            "NAME": BASE_DIR / "db.sqlite3",
        }
    }

DEFAULT_AUTO_FIELD = "django.db.models.BigAutoField"

# schema vem direto dos models (migrate --run-syncdb)
MIGRATION_MODULES = {
    "commons": None,
    "enderecos": None,
    "cadastros": None,
    "mdfe": None,
}

REST_FRAMEWORK = {
    "DEFAULT_AUTHENTICATION_CLASSES": (
        "rest_framework_simplejwt.authentication.JWTAuthentication",
    ),
    "DEFAULT_PERMISSION_CLASSES": (
        "rest_framework.permissions.IsAuthenticated",
    ),
    "DEFAULT_RENDERER_CLASSES": (
        "commons.renderers.EnvelopeJSONRenderer",
    ),
    "DEFAULT_FILTER_BACKENDS": (
        "django_filters.rest_framework.DjangoFilterBackend",
    ),
    "DEFAULT_PAGINATION_CLASS": "commons.pagination.PaginacaoPadrao",
    "PAGE_SIZE": int(os.getenv("API_PAGE_SIZE", "20")),
    "EXCEPTION_HANDLER": "commons.exceptions.envelope_exception_handler",
    "DEFAULT_SCHEMA_CLASS": "drf_spectacular.openapi.AutoSchema",
    "DEFAULT_THROTTLE_CLASSES": ["rest_framework.throttling.UserRateThrottle"],
    "DEFAULT_THROTTLE_RATES": {
        "user": os.getenv("API_THROTTLE_USER", "60/min"),
    },
}

from datetime import timedelta
SIMPLE_JWT = {
    "ACCESS_TOKEN_LIFETIME": timedelta(minutes=30),
    "REFRESH_TOKEN_LIFETIME": timedelta(days=7),
    "SIGNING_KEY": SECRET_KEY,
    "AUTH_HEADER_TYPES": ("Bearer",),
}

LANGUAGE_CODE = "pt-br"
TIME_ZONE = "America/Sao_Paulo"
USE_I18N = True
USE_TZ = True

STATIC_URL = "/static/"

SPECTACULAR_SETTINGS = {
    "TITLE": "MDF-e API",
    "DESCRIPTION": "Manifesto Eletrônico de Documentos Fiscais (modal rodoviário).",
    "VERSION": "1.0",
    "SERVE_INCLUDE_SCHEMA": False,
}

sentry_sdk.init(
    dsn=os.getenv("SENTRY_DSN", ""),
    integrations=[DjangoIntegration()],
    traces_sample_rate=0.1,
    send_default_pii=False,
)

# =============================
# MDF-e
# =============================
MDFE_NUMERO_INICIAL = int(os.getenv("MDFE_NUMERO_INICIAL", "1"))
MDFE_SERIE_PADRAO = int(os.getenv("MDFE_SERIE_PADRAO", "1"))
MDFE_NUMERO_TENTATIVAS = 5

MDFE_ENGINE = {
    "BACKEND": os.getenv("MDFE_ENGINE_BACKEND", "mock"),
    "URL": os.getenv("MDFE_ENGINE_URL", ""),
    "TIMEOUT": float(os.getenv("MDFE_ENGINE_TIMEOUT", "30")),
    "TOKEN": os.getenv("MDFE_ENGINE_TOKEN", ""),
}

# =============================
# 🧱 Templates
# =============================
TEMPLATES = [
    {
        "BACKEND": "django.template.backends.django.DjangoTemplates",
        "DIRS": [],
        "APP_DIRS": True,
        "OPTIONS": {
            "context_processors": [
                "django.template.context_processors.debug",
                "django.template.context_processors.request",
                "django.contrib.auth.context_processors.auth",
            ],
        },
    },
]

CACHES = {
    "default": {
        "BACKEND": "django.core.cache.backends.locmem.LocMemCache",
        "LOCATION": "mdfe-default",
    }
}

LOGGING = {
    "version": 1,
    "disable_existing_loggers": False,
    "formatters": {
        "json": {
            "class": "pythonjsonlogger.json.JsonFormatter",
        },
        "simple": {
            "format": "{levelname} {asctime} {name} {message}",
            "style": "{",
        },
    },
    "handlers": {
        "console": {
            "class": "logging.StreamHandler",
            "formatter": "json",
            "level": "INFO",
        },
    },
    "loggers": {
        "django": {
            "handlers": ["console"],
            "level": "INFO",
            "propagate": True,
        },
        # propagate=True: caplog (pytest) captura pelo root
        "mdfe": {
            "handlers": ["console"],
            "level": "DEBUG",
            "propagate": True,
        },
    },
}

if not DEBUG:
    SESSION_COOKIE_SECURE = True
    CSRF_COOKIE_SECURE = True
    SECURE_HSTS_SECONDS = 63072000
    SECURE_CONTENT_TYPE_NOSNIFF = True
