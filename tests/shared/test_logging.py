from __future__ import annotations

import logging

from grid_cli.shared.logging import LIBRARY_LOGGER, get_logger


def test_logger_info_routes_to_stderr(capfd) -> None:
    logger = get_logger()

    logger.info("structured log to stderr")

    captured = capfd.readouterr()
    assert "structured log to stderr" in captured.err
    assert "structured log to stderr" not in captured.out


def test_logger_debug_is_silent_unless_verbose(capfd) -> None:
    get_logger(verbose=False).debug("hidden detail")
    get_logger(verbose=True).debug("visible detail")

    captured = capfd.readouterr()
    assert "hidden detail" not in captured.err
    assert "visible detail" in captured.err


def test_library_logger_gets_single_handler() -> None:
    get_logger()
    get_logger(verbose=True)

    library_logger = logging.getLogger(LIBRARY_LOGGER)
    assert len(library_logger.handlers) == 1
    assert library_logger.level == logging.DEBUG

    get_logger()
    assert library_logger.level == logging.WARNING
