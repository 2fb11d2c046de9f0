import logging

from jobpulse.core.interfaces.logging import LoggingPort
from jobpulse.core.logging_config import coerce_level


class LoggingAdapter(LoggingPort):
    """LoggingPort backed by a stdlib logger.

    Adds no handlers of its own; records propagate to the sinks installed by
    `configure_logging`, which also stamps the correlation id.
    """

    def __init__(self, name: str = "jobpulse", log_level: int | str = logging.INFO):
        self.logger = logging.getLogger(name)
        self.logger.setLevel(coerce_level(log_level))
        self.logger.propagate = True

    def log(self, level: int, msg: str, *args) -> None:
        # stacklevel=3 reports the manager's call site instead of this adapter
        self.logger.log(level, msg, *args, stacklevel=3)
