"""
Logging setup shared by the HTTP app and the CLI.

Console output keeps ANSI colors; the log file gets them stripped.
"""

import logging
import re

from api.config import Settings


class ColorStripFormatter(logging.Formatter):
    """Formatter that strips ANSI color codes from log messages."""
    ansi_escape = re.compile(r'\x1B(?:[@-Z\\-_]|\[[0-?]*[ -/]*[@-~])')

    def format(self, record):
        message = super().format(record)
        return self.ansi_escape.sub('', message)


def configure_logging(settings: Settings, level: str = None):
    """
    Configure root logging with a file handler and a console handler.

    Args:
        settings: Application settings (log paths, level, format)
        level: Optional level overriding settings.log_level
    """
    settings.log_dir.mkdir(parents=True, exist_ok=True)

    file_handler = logging.FileHandler(settings.log_file, encoding='utf-8')
    file_handler.setFormatter(ColorStripFormatter(settings.log_format))

    console_handler = logging.StreamHandler()
    console_handler.setFormatter(logging.Formatter(settings.log_format))

    logging.basicConfig(
        level=getattr(logging, (level or settings.log_level).upper()),
        handlers=[file_handler, console_handler],
        force=True  # Override any existing configuration
    )

    # httpx logs every request at INFO
    logging.getLogger('httpx').setLevel(logging.WARNING)
    logging.getLogger('httpcore').setLevel(logging.WARNING)
