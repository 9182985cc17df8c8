from __future__ import annotations

import logging

LOG_FORMAT = '%(asctime)s %(levelname)s %(name)s - %(message)s'
_HANDLER_NAME = 'prworkflow'


def setup_logging(level: str = 'INFO') -> None:
    """Attach one stream handler to the root logger and wire uvicorn's loggers into it."""
    resolved = logging.getLevelName(level.strip().upper())
    if not isinstance(resolved, int):
        resolved = logging.INFO

    root = logging.getLogger()
    root.setLevel(resolved)
    if not any(handler.get_name() == _HANDLER_NAME for handler in root.handlers):
        handler = logging.StreamHandler()
        handler.set_name(_HANDLER_NAME)
        handler.setFormatter(logging.Formatter(LOG_FORMAT))
        root.addHandler(handler)

    for name in ('uvicorn', 'uvicorn.error', 'uvicorn.access', 'fastapi'):
        logging.getLogger(name).setLevel(resolved)
