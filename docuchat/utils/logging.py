# docuchat/utils/logging.py

import logging
from logging.handlers import RotatingFileHandler
import os

LOG_DIR = os.getenv("DOCUCHAT_LOG_DIR", "logs")
LOG_LEVEL = os.getenv("DOCUCHAT_LOG_LEVEL", "INFO").upper()
os.makedirs(LOG_DIR, exist_ok=True)

# API and worker processes write to the same file; the pid tells them apart
LOG_FORMAT = "%(asctime)s - %(levelname)s - %(name)s - %(process)d - %(message)s"

# Chatty third-party loggers kept at WARNING (rq logs every job pickup at INFO)
QUIET_LOGGERS = ("rq.worker", "httpx", "openai", "urllib3", "sentence_transformers")


def _build_handlers():
    formatter = logging.Formatter(LOG_FORMAT)

    console = logging.StreamHandler()
    console.setFormatter(formatter)

    rotating = RotatingFileHandler(
        os.path.join(LOG_DIR, "docuchat.log"),
        maxBytes=5 * 1024 * 1024,   # 5MB
        backupCount=5,
        encoding="utf-8",
    )
    rotating.setFormatter(formatter)
    return console, rotating


logger = logging.getLogger("docuchat")
logger.setLevel(LOG_LEVEL)

# Importing twice (uvicorn reload, rq work horse fork) must not double the output
if not logger.handlers:
    for handler in _build_handlers():
        logger.addHandler(handler)

logger.propagate = False

for name in QUIET_LOGGERS:
    logging.getLogger(name).setLevel(logging.WARNING)
