"""
Django settings for Config project.

启动依赖（密钥、数据库、Redis）从环境变量读取；竞赛规则参数的默认值在本文件末尾，
migrate 后同步到 SystemConfig，管理员可在后台覆盖。
"""

import os
from datetime import timedelta
from pathlib import Path

BASE_DIR = Path(__file__).resolve().parent.parent


def _env_bool(name: str, default: str = "False") -> bool:
    return os.getenv(name, default).strip().lower() in {"1", "true", "yes", "on"}


SECRET_KEY = os.getenv("DJANGO_SECRET_KEY", "django-insecure-dev-only-change-me")
DEBUG = _env_bool("DEBUG")
ALLOWED_HOSTS = [h.strip() for h in os.getenv("ALLOWED_HOSTS", "*").split(",") if h.strip()]

INSTALLED_APPS = [
    "django.contrib.admin",
    "django.contrib.auth",
    "django.contrib.contenttypes",
    "django.contrib.sessions",
    "django.contrib.messages",
    "django.contrib.staticfiles",
    "rest_framework",
    "rest_framework_simplejwt",
    "drf_spectacular",
    "channels",
    "apps.system",
    "apps.accounts",
    "apps.teams",
    "apps.ledger",
    "apps.missions",
    "apps.auctions",
    "apps.challenges",
    "apps.leaderboards",
]

MIDDLEWARE = [
    "django.middleware.security.SecurityMiddleware",
    "django.contrib.sessions.middleware.SessionMiddleware",
    "django.middleware.common.CommonMiddleware",
    "django.middleware.csrf.CsrfViewMiddleware",
    "django.contrib.auth.middleware.AuthenticationMiddleware",
    "apps.common.middleware.RequestContextMiddleware",
    "django.contrib.messages.middleware.MessageMiddleware",
    "django.middleware.clickjacking.XFrameOptionsMiddleware",
]

ROOT_URLCONF = "Config.urls"

TEMPLATES = [
    {
        "BACKEND": "django.template.backends.django.DjangoTemplates",
        "DIRS": [],
        "APP_DIRS": True,
        "OPTIONS": {
            "context_processors": [
                "django.template.context_processors.request",
                "django.contrib.auth.context_processors.auth",
                "django.contrib.messages.context_processors.messages",
            ],
        },
    },
]

ASGI_APPLICATION = "Config.asgi.application"

# 数据库：默认 SQLite，部署时通过 DB_ENGINE 等变量切换到 PostgreSQL
if os.getenv("DB_ENGINE", "sqlite") == "postgresql":
    DATABASES = {
        "default": {
            "ENGINE": "django.db.backends.postgresql",
            "NAME": os.getenv("DB_NAME", "ledger"),
            "USER": os.getenv("DB_USER", "ledger"),
            "PASSWORD": os.getenv("DB_PASSWORD", ""),
            "HOST": os.getenv("DB_HOST", "127.0.0.1"),
            "PORT": os.getenv("DB_PORT", "5432"),
            "ATOMIC_REQUESTS": False,
        }
    }
else:
    DATABASES = {
        "default": {
            "ENGINE": "django.db.backends.sqlite3",
            "NAME": BASE_DIR / "db.sqlite3",
        }
    }

AUTH_USER_MODEL = "accounts.User"
AUTH_PASSWORD_VALIDATORS = [
    {"NAME": "django.contrib.auth.password_validation.MinimumLengthValidator"},
]

LANGUAGE_CODE = "zh-hans"
TIME_ZONE = os.getenv("TIME_ZONE", "Asia/Shanghai")
USE_I18N = True
USE_TZ = True

STATIC_URL = "static/"
STATIC_ROOT = BASE_DIR / "staticfiles"
DEFAULT_AUTO_FIELD = "django.db.models.BigAutoField"

# ======================
# Redis / 缓存 / Channels / Celery
# ======================

REDIS_ENABLED = _env_bool("REDIS_ENABLED")
REDIS_HOST = os.getenv("REDIS_HOST", "127.0.0.1")
REDIS_PORT = int(os.getenv("REDIS_PORT", "6379"))
REDIS_DB_CACHE = int(os.getenv("REDIS_DB_CACHE", "1"))
REDIS_DB_BROKER = int(os.getenv("REDIS_DB_BROKER", "0"))
_redis_base = f"redis://{REDIS_HOST}:{REDIS_PORT}"

if REDIS_ENABLED:
    CACHES = {
        "default": {
            "BACKEND": "django.core.cache.backends.redis.RedisCache",
            "LOCATION": f"{_redis_base}/{REDIS_DB_CACHE}",
        }
    }
    CHANNEL_LAYERS = {
        "default": {
            "BACKEND": "channels_redis.core.RedisChannelLayer",
            "CONFIG": {"hosts": [(REDIS_HOST, REDIS_PORT)]},
        }
    }
else:
    CACHES = {"default": {"BACKEND": "django.core.cache.backends.locmem.LocMemCache"}}
    CHANNEL_LAYERS = {"default": {"BACKEND": "channels.layers.InMemoryChannelLayer"}}

CELERY_BROKER_URL = os.getenv("CELERY_BROKER_URL", f"{_redis_base}/{REDIS_DB_BROKER}")
CELERY_RESULT_BACKEND = os.getenv("CELERY_RESULT_BACKEND", CELERY_BROKER_URL)
CELERY_TASK_ALWAYS_EAGER = _env_bool("CELERY_TASK_ALWAYS_EAGER")
CELERY_BEAT_SCHEDULE = {
    "push-leaderboard-snapshot": {
        "task": "leaderboards.push_snapshot",
        "schedule": int(os.getenv("LEADERBOARD_BEAT_SECONDS", "30")),
    },
}

# ======================
# DRF / JWT / OpenAPI
# ======================

REST_FRAMEWORK = {
    "DEFAULT_AUTHENTICATION_CLASSES": [
        "apps.common.authentication.JWTAuthentication",
        "rest_framework.authentication.SessionAuthentication",
    ],
    "DEFAULT_PERMISSION_CLASSES": ["apps.common.permissions.IsAuthenticated"],
    "DEFAULT_SCHEMA_CLASS": "apps.common.openapi.ShortDescriptionAutoSchema",
    "EXCEPTION_HANDLER": "apps.common.exception_handler.custom_exception_handler",
    "DEFAULT_THROTTLE_RATES": {
        "bid": os.getenv("THROTTLE_BID", "120/min"),
        "mission_submit": os.getenv("THROTTLE_MISSION_SUBMIT", "60/min"),
    },
}

SIMPLE_JWT = {
    "ACCESS_TOKEN_LIFETIME": timedelta(minutes=int(os.getenv("JWT_ACCESS_MINUTES", "120"))),
    "REFRESH_TOKEN_LIFETIME": timedelta(days=int(os.getenv("JWT_REFRESH_DAYS", "7"))),
    "AUTH_HEADER_TYPES": ("Bearer",),
}

SPECTACULAR_SETTINGS = {
    "TITLE": "Contest Ledger API",
    "DESCRIPTION": "任务、竞速、拍卖、挑战与积分账本接口",
    "VERSION": "1.0.0",
    "SERVE_INCLUDE_SCHEMA": False,
}

# ======================
# 日志
# ======================

LOG_PATH = os.getenv("LOG_PATH", str(BASE_DIR / "logs"))
LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO")
LOG_FORMAT = os.getenv("LOG_FORMAT", "plain")

SITE_BRAND = os.getenv("SITE_BRAND", "Contest Ledger")

# ======================
# 竞赛规则默认值（可在后台 SystemConfig 覆盖）
# ======================

LEVEL_THRESHOLDS = [0, 100, 250, 500, 1000, 2000, 3500, 5000]
DEFAULT_GPS_RADIUS_METERS = 50
DEFAULT_AUCTION_MIN_INCREMENT = 10
DEFAULT_AUCTION_POINTS_FOR_WIN = 100
DEFAULT_POINTS_DISTRIBUTION = {"1": 100, "2": 75, "3": 50, "4": 25, "5": 10}
DEFAULT_CHALLENGE_FIXED_POINTS = 50
LEADERBOARD_CACHE_TTL = 30
LEADERBOARD_PUSH_TOP = 10
LEADERBOARD_PUSH_INTERVAL_SECONDS = 15
