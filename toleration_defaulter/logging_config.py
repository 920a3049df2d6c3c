"""Logging configuration for the toleration defaulter."""

import logging
import sys
from pathlib import Path

PACKAGE_LOGGER = "toleration_defaulter"

# Loggers of the kubernetes client stack, chatty at INFO and DEBUG
KUBERNETES_CLIENT_LOGGERS = ("kubernetes", "kubernetes.client.rest", "urllib3")


def setup_logging(log_file: Path | None = None, verbose: bool = False) -> logging.Logger:
    """Configure the package logger.

    Only the ``toleration_defaulter`` logger is configured, so embedding the
    admission plugin in another process leaves its root logger alone.

    Args:
        log_file: Optional path to a log file that receives DEBUG records
        verbose: If True, DEBUG records are also written to stderr

    Returns:
        The configured package logger
    """
    formatter = logging.Formatter(
        "%(asctime)s - %(name)s - %(levelname)s - %(message)s", datefmt="%Y-%m-%d %H:%M:%S"
    )

    package_logger = logging.getLogger(PACKAGE_LOGGER)
    package_logger.setLevel(logging.DEBUG if verbose or log_file else logging.INFO)
    package_logger.handlers.clear()
    package_logger.propagate = False

    # stdout carries command output, so diagnostics go to stderr
    console_handler = logging.StreamHandler(sys.stderr)
    console_handler.setLevel(logging.DEBUG if verbose else logging.WARNING)
    console_handler.setFormatter(formatter)
    package_logger.addHandler(console_handler)

    if log_file:
        try:
            log_file.parent.mkdir(parents=True, exist_ok=True)
            file_handler = logging.FileHandler(log_file)
            file_handler.setLevel(logging.DEBUG)
            file_handler.setFormatter(formatter)
            package_logger.addHandler(file_handler)
        except OSError as e:
            package_logger.warning(f"Failed to create log file handler: {e}")

    return package_logger


def quiet_kubernetes_client() -> None:
    """Hold the kubernetes client loggers at WARNING.

    Left alone when the package logger is at DEBUG, so ``--verbose`` also
    shows the API traffic.
    """
    if logging.getLogger(PACKAGE_LOGGER).isEnabledFor(logging.DEBUG):
        return
    for name in KUBERNETES_CLIENT_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)


def get_logger(name: str) -> logging.Logger:
    """Get a logger under the package logger.

    Args:
        name: Logger name (typically __name__)

    Returns:
        Logger instance
    """
    if name != PACKAGE_LOGGER and not name.startswith(f"{PACKAGE_LOGGER}."):
        name = f"{PACKAGE_LOGGER}.{name}"
    return logging.getLogger(name)
