import logging

import pytest

from kb_retrieval.config.logging_setup import LOG_FORMAT, PACKAGE_LOGGER, configure_logging


@pytest.fixture(autouse=True)
def restore_package_logger():
    logger = logging.getLogger(PACKAGE_LOGGER)
    handlers, level = list(logger.handlers), logger.level
    yield
    logger.handlers[:] = handlers
    logger.setLevel(level)


def test_configure_logging_is_idempotent() -> None:
    configure_logging("INFO")
    logger = configure_logging("DEBUG")

    ours = [h for h in logger.handlers if getattr(h, "_kb_retrieval", False)]
    assert len(ours) == 1
    assert ours[0].formatter._fmt == LOG_FORMAT
    assert logger.level == logging.DEBUG


def test_module_loggers_inherit_package_level() -> None:
    configure_logging(logging.WARNING)

    child = logging.getLogger("kb_retrieval.application.use_cases.search_knowledge_base")
    assert child.getEffectiveLevel() == logging.WARNING
