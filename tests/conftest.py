import pytest

from locformat.format_handlers import build_default_registry
from locformat.recovery import RecoveryEngine
from locformat.validation import ValidationService, build_default_engine


@pytest.fixture
def registry():
    """Registry holding one instance of every handler."""
    return build_default_registry()


@pytest.fixture
def engine():
    """Validation engine with the global and per-format rules."""
    return build_default_engine()


@pytest.fixture
def recovery(registry):
    return RecoveryEngine(registry)


@pytest.fixture
def service(registry, engine, recovery):
    return ValidationService(registry=registry, engine=engine, recovery=recovery)
