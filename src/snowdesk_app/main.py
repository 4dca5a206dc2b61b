"""Application entry point."""

from __future__ import annotations

import logging
import sys

from PySide6.QtWidgets import QApplication

from snowdesk_app.core.config import load_config
from snowdesk_app.core.container import build_container
from snowdesk_app.core.logging import configure_logging
from snowdesk_app.ui.main_window import MainWindow

logger = logging.getLogger(__name__)


def run() -> None:
    """Launch the GUI application."""
    config = load_config()
    configure_logging(config.logging.level)
    container = build_container(config)

    app = QApplication(sys.argv)
    window = MainWindow(container)
    window.show()
    exit_code = app.exec()
    container.close()
    logger.info("Exiting with code %s", exit_code)
    sys.exit(exit_code)


if __name__ == "__main__":
    run()
