"""Smoke test to verify the project scaffolding works."""

from __future__ import annotations

import pytest


def test_import() -> None:
    import toolgate

    assert toolgate.__version__ == "0.1.0"


def test_cli_entrypoint() -> None:
    from toolgate.cli import main

    assert callable(main)


def test_lazy_import_from_toolgate() -> None:
    import toolgate

    assert toolgate.PolicyEngine is not None
    assert toolgate.PolicyGate is not None
    assert toolgate.RateLimiter is not None


def test_unknown_attribute() -> None:
    import toolgate

    with pytest.raises(AttributeError, match="no attribute"):
        toolgate.DoesNotExist  # noqa: B018
