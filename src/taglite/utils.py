"""
Utility functions and configuration for taglite.
"""

import os
import sys
import logging
from pathlib import Path
from typing import List
from logging.handlers import RotatingFileHandler

# ---------- Constants ----------
EXIT_CODE_SUCCESS = 0
EXIT_CODE_ERROR = 1
EXIT_CODE_USAGE = 2
EXIT_CODE_NO_FILES = 3
EXIT_CODE_INTERRUPTED = 130

READ_STYLES = ('fast', 'average', 'accurate')
OUTPUT_FORMATS = ('json', 'pretty', 'yaml', 'pp')

# ---------- Configuration ----------
class Config:
    """Configuration management with validation."""
    DEFAULT_READ_STYLE = 'average'
    DEFAULT_NAMESPACE = 'com.apple.iTunes'
    TAG_VALUE_SEPARATOR = ' / '
    DEFAULT_PATTERNS = ['**/*.mp3', '**/*.m4a', '**/*.flac', '**/*.ogg', '**/*.wma']
    DEFAULT_FORMAT = 'pp'
    LOG_FILE = None

    @classmethod
    def validate(cls) -> None:
        """Validate configuration values."""
        if cls.DEFAULT_READ_STYLE not in READ_STYLES:
            raise ValueError(f"Invalid DEFAULT_READ_STYLE: {cls.DEFAULT_READ_STYLE}")
        if not cls.DEFAULT_NAMESPACE:
            raise ValueError("DEFAULT_NAMESPACE cannot be empty")
        if not cls.TAG_VALUE_SEPARATOR:
            raise ValueError("TAG_VALUE_SEPARATOR cannot be empty")
        if not cls.DEFAULT_PATTERNS:
            raise ValueError("DEFAULT_PATTERNS cannot be empty")
        if cls.DEFAULT_FORMAT not in OUTPUT_FORMATS:
            raise ValueError(f"Invalid DEFAULT_FORMAT: {cls.DEFAULT_FORMAT}")

    @classmethod
    def load_from_env(cls) -> None:
        """Load configuration from environment variables, updating class attributes."""
        if os.getenv('TAGLITE_READ_STYLE'):
            cls.DEFAULT_READ_STYLE = os.getenv('TAGLITE_READ_STYLE').lower()
        if os.getenv('TAGLITE_NAMESPACE'):
            cls.DEFAULT_NAMESPACE = os.getenv('TAGLITE_NAMESPACE')
        if os.getenv('TAGLITE_SEPARATOR'):
            cls.TAG_VALUE_SEPARATOR = os.getenv('TAGLITE_SEPARATOR')
        if os.getenv('TAGLITE_PATTERNS'):
            cls.DEFAULT_PATTERNS = split_list(os.getenv('TAGLITE_PATTERNS'))
        if os.getenv('TAGLITE_FORMAT'):
            cls.DEFAULT_FORMAT = os.getenv('TAGLITE_FORMAT').lower()
        if os.getenv('TAGLITE_LOG_FILE'):
            cls.LOG_FILE = os.getenv('TAGLITE_LOG_FILE')
        cls.validate()

# ---------- Logging Setup ----------
def setup_logging(verbose: bool = False) -> None:
    """Configure logging to stderr, plus a rotating log file when Config.LOG_FILE is set."""
    log_level = logging.DEBUG if verbose else logging.WARNING

    handlers = [logging.StreamHandler(sys.stderr)]
    if Config.LOG_FILE:
        log_path = Path(Config.LOG_FILE)
        log_path.parent.mkdir(parents=True, exist_ok=True)
        handlers.append(RotatingFileHandler(
            log_path,
            maxBytes=10*1024*1024,  # 10MB
            backupCount=5,
            encoding='utf-8'
        ))

    logging.basicConfig(
        level=log_level,
        format='%(asctime)s - %(name)s - %(levelname)s - %(message)s',
        handlers=handlers,
        force=True
    )

# ---------- Small Helpers ----------
def split_list(s: str, delimiter: str = ',') -> List[str]:
    """Split a delimited string, stripping whitespace and dropping empties."""
    return [p.strip() for p in s.split(delimiter) if p.strip()]
