from .base import *  # noqa
from .base import BASE_DIR
from .base import REST_FRAMEWORK as BASE_REST_FRAMEWORK

# Test settings: force SQLite for reliability and speed in CI/pytest
DEBUG = False

DATABASES = {
    "default": {
        "ENGINE": "django.db.backends.sqlite3",
        "NAME": BASE_DIR / "test_db.sqlite3",
    }
}

# Keep console email backend in tests (pytest-django swaps in locmem)
EMAIL_BACKEND = "django.core.mail.backends.console.EmailBackend"

STORAGES = {
    "staticfiles": {
        "BACKEND": "django.contrib.staticfiles.storage.StaticFilesStorage",
    },
}

# Tests run against a single connection inside a transaction; keep cycles inline
REPLENISHMENT_MAX_WORKERS = 1
REPLENISHMENT_GATEWAY_TIMEOUT_SECONDS = 2.0
REPLENISHMENT_GATEWAY_BACKEND = "replenishment.gateways.SimulatedGateway"
REPLENISHMENT_SIMULATED_SUCCESS_RATE = 1.0
STRIPE_SECRET_KEY = "sk_test_dummy"

# Relax throttling for tests to reduce flakiness
REST_FRAMEWORK = {**BASE_REST_FRAMEWORK}
REST_FRAMEWORK["DEFAULT_THROTTLE_RATES"] = {
    **BASE_REST_FRAMEWORK.get("DEFAULT_THROTTLE_RATES", {}),
    "orders": "1000/min",
    "replenishment": "1000/min",
    "replenishment_write": "1000/min",
}
