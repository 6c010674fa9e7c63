"""
Tests for logging setup and module logger naming.
"""

import logging

import pytest

from switchboard.chat import adapter, history
from switchboard.config.logging import ROOT_LOGGER, get_logger, setup_logging
from switchboard.config.settings import Settings
from switchboard.llm import cache, clients, registry
from switchboard.storage import cache_backends
from switchboard.tools import base, routing


@pytest.fixture
def reset_root_logger():
    yield
    root = logging.getLogger(ROOT_LOGGER)
    for handler in root.handlers:
        handler.close()
    root.handlers.clear()


class TestGetLogger:

    def test_package_module_name_kept(self):
        assert get_logger("switchboard.llm.cache").name == "switchboard.llm.cache"

    def test_foreign_name_nested_under_package(self):
        assert get_logger("plugins.reports").name == "switchboard.plugins.reports"

    @pytest.mark.parametrize("module", [adapter, history, cache, clients, registry, cache_backends, base, routing])
    def test_module_loggers_share_package_hierarchy(self, module):
        assert module.logger.name == module.__name__
        assert module.logger.name.startswith(f"{ROOT_LOGGER}.")


class TestSetupLogging:

    def test_module_records_reach_log_file_uncoloured(self, tmp_path, reset_root_logger):
        log_file = tmp_path / "logs" / "switchboard.log"
        setup_logging(Settings(log_level="DEBUG", log_file=log_file))

        cache.logger.warning("Cache write failed for llm_response_openai:abc")
        for handler in logging.getLogger(ROOT_LOGGER).handlers:
            handler.flush()

        text = log_file.read_text()
        assert "switchboard.llm.cache - WARNING" in text
        assert "\033[" not in text
