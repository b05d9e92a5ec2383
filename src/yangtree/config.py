"""Runtime settings for yangtree."""

import os
import sys
import logging
from dataclasses import dataclass


class _BelowLevel(logging.Filter):
    """Lets through records under a level; the rest belong on stderr."""

    def __init__(self, level: int) -> None:
        super().__init__()
        self.level = level

    def filter(self, record: logging.LogRecord) -> bool:
        return record.levelno < self.level


@dataclass
class Settings:
    """Tunable knobs shared by the builder, serializer and registry."""
    indent: int = 2
    context_window: int = 30
    allow_override: bool = False
    log_level: str = "WARNING"
    print_level: str = "ERROR"

    @classmethod
    def from_env(cls) -> 'Settings':
        """Create settings from environment variables."""
        return cls(
            indent=int(os.getenv('YANGTREE_INDENT', '2')),
            context_window=int(os.getenv('YANGTREE_CONTEXT_WINDOW', '30')),
            allow_override=os.getenv('YANGTREE_ALLOW_OVERRIDE', 'false').lower() == 'true',
            log_level=os.getenv('YANGTREE_LOG_LEVEL', 'WARNING'),
            print_level=os.getenv('YANGTREE_PRINT_LEVEL', 'ERROR'),
        )

    def set_logging(self) -> logging.Logger:
        """
        Send package log records to the terminal.

        Records at print_level and above are written to stderr, quieter
        ones to stdout. Only the "yangtree" logger is configured; the root
        logger stays with the host application.
        """
        level = getattr(logging, self.log_level.upper(), logging.WARNING)
        stderr_level = max(getattr(logging, self.print_level.upper(), logging.ERROR), logging.DEBUG)
        formatter = logging.Formatter('%(name)s - %(levelname)s - %(message)s')

        quiet = logging.StreamHandler(sys.stdout)
        quiet.addFilter(_BelowLevel(stderr_level))
        loud = logging.StreamHandler(sys.stderr)
        loud.setLevel(stderr_level)

        logger = logging.getLogger('yangtree')
        for handler in list(logger.handlers):
            logger.removeHandler(handler)
        for handler in (quiet, loud):
            handler.setFormatter(formatter)
            logger.addHandler(handler)
        logger.setLevel(level)
        logger.propagate = False
        return logger


# Global settings instance
settings = Settings.from_env()
