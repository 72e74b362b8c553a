from __future__ import annotations

import logging
import sys

from . import config

LOG_FORMAT = "%(asctime)s %(levelname)s [%(name)s] %(message)s"

_configured = False


def configure_logging() -> None:
    """Install the console handler and, when configured, CloudWatch shipping.

    Safe to call more than once; only the first call changes handlers.
    """
    global _configured
    if _configured:
        return

    root = logging.getLogger()
    root.setLevel(config.log_level())

    console = logging.StreamHandler(sys.stdout)
    console.setFormatter(logging.Formatter(LOG_FORMAT))
    root.addHandler(console)

    log_group = config.cloudwatch_log_group()
    if log_group:
        import watchtower

        cloudwatch = watchtower.CloudWatchLogHandler(log_group_name=log_group)
        cloudwatch.setFormatter(logging.Formatter(LOG_FORMAT))
        root.addHandler(cloudwatch)
        logging.getLogger(__name__).info(f"CloudWatch logging enabled: {log_group}")

    _configured = True
