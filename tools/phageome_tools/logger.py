"""
Logging setup shared by the phageome_tools modules and scripts.
"""

import logging

LOGGER_NAME = 'phageome_tools'
LOG_FORMAT = '%(asctime)s - %(name)s - %(levelname)s - %(message)s'


def setup_logger(log_file=None, log_level=logging.INFO):
    """
    Set up the package logger.

    Library modules log through ``logging.getLogger(__name__)`` and therefore
    propagate to the logger configured here.

    Parameters:
    -----------
    log_file : str or Path, optional
        Path to a log file; console only when None
    log_level : int
        Logging level

    Returns:
    --------
    logging.Logger
        Configured package logger
    """
    logger = logging.getLogger(LOGGER_NAME)
    logger.setLevel(log_level)

    # Avoid duplicated output when called more than once
    for handler in list(logger.handlers):
        logger.removeHandler(handler)
        handler.close()

    formatter = logging.Formatter(LOG_FORMAT)

    console_handler = logging.StreamHandler()
    console_handler.setLevel(log_level)
    console_handler.setFormatter(formatter)
    logger.addHandler(console_handler)

    if log_file:
        file_handler = logging.FileHandler(log_file)
        file_handler.setLevel(log_level)
        file_handler.setFormatter(formatter)
        logger.addHandler(file_handler)

    return logger
