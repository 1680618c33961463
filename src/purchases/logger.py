"""
Process-wide logging setup.

Output depends on the environment name:

- ``local``: plain text, DEBUG
- ``dev``: JSON lines, DEBUG
- ``prod``: JSON lines, INFO

Anything else falls back to ``local``. Structured context is passed with
``extra={...}`` and ends up as top-level keys in the JSON output.
"""

import logging
import sys

from pythonjsonlogger.json import JsonFormatter

ENV_LOCAL = "local"
ENV_DEV = "dev"
ENV_PROD = "prod"

_TEXT_FORMAT = "%(asctime)s %(levelname)-7s %(name)s: %(message)s"
_JSON_FORMAT = "%(asctime)s %(levelname)s %(name)s %(message)s"


def setup_logger(env: str = ENV_LOCAL) -> logging.Logger:
    """Configure the root logger for ``env`` and return it. Calling again replaces the handler."""
    handler = logging.StreamHandler(sys.stdout)

    if env in (ENV_DEV, ENV_PROD):
        handler.setFormatter(
            JsonFormatter(_JSON_FORMAT, rename_fields={"levelname": "level", "name": "logger"})
        )
    else:
        handler.setFormatter(logging.Formatter(_TEXT_FORMAT))

    root = logging.getLogger()
    for old in list(root.handlers):
        root.removeHandler(old)
    root.addHandler(handler)
    root.setLevel(logging.INFO if env == ENV_PROD else logging.DEBUG)

    # kafka-python is chatty at DEBUG
    logging.getLogger("kafka").setLevel(logging.WARNING)
    return root
