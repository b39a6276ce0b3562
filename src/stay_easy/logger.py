import logging
from typing import Optional

from stay_easy.config import Config

LOG_FORMAT = '%(asctime)s | %(name)s | %(levelname)s | %(message)s'


#-- function to initialize a logger that writes to stderr and, optionally, a file
def setup_logger(name: str, log_file: Optional[str] = Config.LOG_FILE, level=Config.LOG_LEVEL):
    formatter = logging.Formatter(LOG_FORMAT)

    logger = logging.getLogger(name)
    logger.setLevel(level)

    if not logger.hasHandlers():
        stream = logging.StreamHandler()
        stream.setFormatter(formatter)
        logger.addHandler(stream)
        if log_file:
            handler = logging.FileHandler(log_file)
            handler.setFormatter(formatter)
            logger.addHandler(handler)

    return logger
