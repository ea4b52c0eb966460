# src/local_path_provisioner/logging_setup.py

import logging
import logging.config
import os
from typing import Optional


def setup_logging(level: int = logging.INFO, log_directory: Optional[str] = None, log_file_name: str = 'local-path-provisioner.log', console_output: bool = True):
    """
    Configure logging declaratively with dictConfig.

    Logs go to the console (what the container runtime collects). A rotating
    file handler is added only when a log directory is given.
    """
    handlers = {}
    if console_output:
        handlers['console'] = {
            'class': 'logging.StreamHandler',
            'formatter': 'standard',
            'stream': 'ext://sys.stderr',
        }
    if log_directory:
        os.makedirs(log_directory, exist_ok=True)
        handlers['file'] = {
            'class': 'logging.handlers.RotatingFileHandler',
            'formatter': 'standard',
            'filename': os.path.join(log_directory, log_file_name),
            'maxBytes': 10485760, # 10 MB
            'backupCount': 5,
            'encoding': 'utf8'
        }
    base_handlers = list(handlers)

    LOGGING_CONFIG = {
        'version': 1,
        'disable_existing_loggers': False,
        'formatters': {
            'standard': {
                'format': '%(asctime)s %(levelname)s [%(name)s] %(message)s',
                'datefmt': '%Y-%m-%dT%H:%M:%S%z',
            },
        },
        'handlers': handlers,
        'loggers': {
            'local_path_provisioner': {
                'handlers': base_handlers,
                'level': level,
                'propagate': False
            },
        },
        'root': {
            'handlers': base_handlers,
            'level': logging.ERROR, # Keep root at ERROR to avoid noise
        },
    }

    logging.config.dictConfig(LOGGING_CONFIG)

    # The kubernetes client logs every request at DEBUG through urllib3
    for logger_name in ("kubernetes", "urllib3"):
        logging.getLogger(logger_name).setLevel(logging.DEBUG if level <= logging.DEBUG else logging.WARNING)
