import logging

from rastuci import config

_FORMAT = "%(asctime)s %(levelname)s [%(name)s] %(message)s"
_configured = False


def setup_logging(level: str = None) -> None:
    global _configured
    if _configured:
        return
    logging.basicConfig(level=(level or config.LOG_LEVEL).upper(), format=_FORMAT)
    # requests/urllib3 are chatty at INFO
    logging.getLogger("urllib3").setLevel(logging.WARNING)
    _configured = True


def get_logger(name: str) -> logging.Logger:
    return logging.getLogger(name)
