import logging
import os

_HANDLER_ATTACHED = False
_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"


def _resolve_level() -> int:
    level_name = os.getenv("VOICECANVAS_LOG_LEVEL", "INFO").upper()
    return getattr(logging, level_name, logging.INFO)


def get_logger(name: str) -> logging.Logger:
    """Return a module logger; the shared stream handler is attached once."""
    global _HANDLER_ATTACHED

    level = _resolve_level()

    if not _HANDLER_ATTACHED:
        handler = logging.StreamHandler()
        handler.setFormatter(logging.Formatter(_FORMAT, datefmt="%Y-%m-%d %H:%M:%S"))
        root = logging.getLogger("voicecanvas")
        root.addHandler(handler)
        root.setLevel(level)
        _HANDLER_ATTACHED = True

    return logging.getLogger(name)
