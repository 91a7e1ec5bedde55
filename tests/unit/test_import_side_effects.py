"""Guard test to ensure no import-time side effects.

This test verifies that importing watcher modules does not trigger:
- get_settings() calls
- Wallet file reads
- HTTP client creation
- Scheduler startup

If this test fails, it means someone introduced import-time side effects
that need to be moved into the application lifespan.
"""

import sys
from unittest.mock import patch

import pytest


def _clear_watcher_modules():
    for key in list(sys.modules):
        if key == "wallet_watcher" or key.startswith("wallet_watcher."):
            del sys.modules[key]


class TestNoImportSideEffects:
    """Verify that importing modules does not trigger side effects."""

    def test_no_get_settings_on_import(self):
        """Ensure get_settings() is not called during import.

        We patch get_settings to raise an error, then import every module.
        If get_settings is called at import time, this test will fail.
        """
        call_tracker = {"called": False}

        def mock_get_settings():
            call_tracker["called"] = True
            raise RuntimeError("get_settings() was called during import!")

        with patch.dict(sys.modules):
            _clear_watcher_modules()
            with patch("wallet_watcher.core.config.get_settings", mock_get_settings):
                try:
                    from wallet_watcher.services.explorers import registry  # noqa: F401
                    from wallet_watcher.services.monitoring import evaluator  # noqa: F401
                    from wallet_watcher.core import context, scheduler  # noqa: F401
                    from wallet_watcher.api.v1 import alerts, health, wallets  # noqa: F401
                    from wallet_watcher import main  # noqa: F401
                except RuntimeError as e:
                    if "get_settings() was called during import" in str(e):
                        pytest.fail(f"Module import caused side effect: {e}")
                    raise

        assert not call_tracker["called"], "get_settings was called during import"

    def test_app_has_no_context_until_startup(self):
        """The module-level app is created without wiring any components."""
        with patch.dict(sys.modules):
            _clear_watcher_modules()
            with patch("wallet_watcher.core.context.create_http_client") as mock_client:
                from wallet_watcher.main import app

                assert app.state.context is None
                mock_client.assert_not_called()
