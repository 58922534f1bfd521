import logging
import sys
from datetime import datetime, timezone

from shotcache.config import LOG_FILE, LOG_LEVEL, LOG_LEVELS

ROOT_LOGGER = "shotcache"


class ServiceFormatter(logging.Formatter):
    """
    [ Tue Jan 06 05:32:41 AM UTC 2026 ] : INFO : rendering : Message
    The context column is the component name, or extra={"context": ...} if given.
    """
    def format(self, record):
        dt = datetime.fromtimestamp(record.created, tz=timezone.utc)
        timestamp = dt.strftime("%a %b %d %I:%M:%S %p UTC %Y")
        context = getattr(record, 'context', None) or component_name(record.name)

        message = f"[ {timestamp} ] : {record.levelname} : {context} : {record.getMessage()}"
        if record.exc_info:
            message = f"{message}\n{self.formatException(record.exc_info)}"
        return message


def component_name(logger_name: str) -> str:
    """'shotcache.rendering' -> 'rendering', 'shotcache' -> 'root'."""
    if logger_name == ROOT_LOGGER:
        return "root"
    return logger_name[len(ROOT_LOGGER) + 1:] if logger_name.startswith(ROOT_LOGGER + ".") else logger_name


def _install_handlers(logger, log_file):
    formatter = ServiceFormatter()
    handlers = [logging.StreamHandler(sys.stdout)]
    if log_file:
        handlers.append(logging.FileHandler(log_file))
    for handler in handlers:
        handler.setFormatter(formatter)
        logger.addHandler(handler)


def setup_logger(name=ROOT_LOGGER, log_file=LOG_FILE, level=None, overrides=None):
    """
    Handlers live on the 'shotcache' logger only; component loggers propagate to it.
    A component level comes from `overrides` (LOG_LEVELS by default) and otherwise
    follows the root's LOG_LEVEL.
    """
    overrides = LOG_LEVELS if overrides is None else overrides
    root = logging.getLogger(ROOT_LOGGER)
    if not root.handlers:
        root.setLevel(level or LOG_LEVEL)
        _install_handlers(root, log_file)

    if name == ROOT_LOGGER:
        return root

    logger = logging.getLogger(name)
    logger.propagate = True
    component_level = overrides.get(component_name(name))
    if component_level:
        logger.setLevel(component_level)
    return logger


logger = setup_logger()
