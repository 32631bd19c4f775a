"""
FILE DESCRIPTION: Foundational module for global configuration and logging.
KEY FUNCTIONS/CLASSES: setup_logger, CrawlLogFormatter, configuration constants
"""

import logging
import sys
import os
from datetime import datetime
from pathlib import Path
from dotenv import load_dotenv

# === CONFIGURATION SECTION ===

# Load .env from the repository root
load_dotenv(Path(__file__).resolve().parents[1] / '.env')

APP_NAME = "StaticMirror"
APP_VERSION = "0.1.0"
USER_AGENT = f"{APP_NAME}/{APP_VERSION}"


def _env_bool(name, default=False):
    value = os.getenv(name)
    if value is None:
        return default
    return value.strip().lower() in ("1", "true", "yes", "on")


def _env_list(name, default):
    value = os.getenv(name)
    if not value:
        return list(default)
    return [item.strip() for item in value.split(",") if item.strip()]


# The dynamic site being mirrored, and where the static copy will be served from
SITE_URL = os.getenv("SITE_URL", "http://localhost/")
STATIC_URL = os.getenv("STATIC_URL", "/static/")

# canonical data directory for the crawler
DATA_DIR = Path(__file__).resolve().parents[1] / 'data'

DUMP_DIRECTORY = Path(os.getenv("DUMP_DIRECTORY", str(DATA_DIR / "static")))

# Document root of the host application; static files are copied from here
DOCUMENT_ROOT = os.getenv("DOCUMENT_ROOT") or None

# System files seeded next to the front page
SEO_FILES = _env_list("SEO_FILES", ["/sitemap.xml", "/sitemap_index.xml", "/robots.txt"])

# Network timeout for HTTP requests (seconds)
REQUEST_TIMEOUT = int(os.getenv("REQUEST_TIMEOUT", 30))
VERIFY_SSL_CERTIFICATE = _env_bool("VERIFY_SSL_CERTIFICATE", True)

# Frontier / bookkeeping persistence
STORE_BACKEND = os.getenv("STORE_BACKEND", "sqlite")
SQLITE_PATH = os.getenv("SQLITE_PATH", str(DATA_DIR / "frontier.db"))
DB_CONFIG = {
    "host": os.getenv("MYSQL_HOST", "localhost"),
    "port": int(os.getenv("MYSQL_PORT", 3306)),
    "user": os.getenv("MYSQL_USER"),
    "password": os.getenv("MYSQL_PASSWORD"),
    "database": os.getenv("MYSQL_DATABASE"),
    "charset": "utf8mb4",
}

# Lifetime of the crawl-session bookkeeping entry (seconds)
SESSION_TTL = int(os.getenv("SESSION_TTL", 3600))

# Worker scaling parameters
MAX_WORKERS = int(os.getenv("MAX_WORKERS", 1))

# Optional content passes
STAMP_LAST_MODIFIED = _env_bool("STAMP_LAST_MODIFIED")
STRIP_DYNAMIC_LINKS = _env_bool("STRIP_DYNAMIC_LINKS")

LOG_FILE = os.getenv("LOG_FILE") or None


# === LOGGING SECTION ===

class CrawlLogFormatter(logging.Formatter):
    """
    FLOW: Receives a log record -> Extracts timestamp -> Formats it as
    [ Tue Jan 06 05:32:41 AM UTC 2026 ] -> Prepends level and context -> Returns final string.
    """
    def format(self, record):
        dt = datetime.fromtimestamp(record.created)
        timestamp = dt.strftime("%a %b %d %I:%M:%S %p UTC %Y")
        context = getattr(record, 'context', record.name)
        message = f"[ {timestamp} ] : {record.levelname} : {context} : {record.getMessage()}"
        if record.exc_info:
            message = f"{message}\n{self.formatException(record.exc_info)}"
        return message


def setup_logger(name="crawler", log_file=None, level=logging.INFO):
    """
    FLOW: Initializes/Retrieves logger -> Checks for existing handlers to prevent duplicates ->
    Sets propagation for child loggers -> Attaches Console and optional File handlers.
    """
    logger = logging.getLogger(name)
    logger.setLevel(level)

    if logger.handlers:
        return logger

    if name != "crawler":
        logger.propagate = True
        setup_logger("crawler", log_file=log_file, level=level)
        return logger

    formatter = CrawlLogFormatter()

    # Console handler
    console_handler = logging.StreamHandler(sys.stdout)
    console_handler.setFormatter(formatter)
    logger.addHandler(console_handler)

    # File handler (optional)
    if log_file:
        file_handler = logging.FileHandler(log_file)
        file_handler.setFormatter(formatter)
        logger.addHandler(file_handler)

    return logger


# Global logger instance
logger = setup_logger(log_file=LOG_FILE)
