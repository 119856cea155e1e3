"""Logging setup for FuelTracker.

The root logger feeds three sinks: stdout, an optional log file in the application
data folder and :class:`TankHandler`, an in-memory buffer holding the full record of
a run. Import failures beyond the few shown to the user can be read back from it.
"""
import collections
import logging
import os
import pathlib
import sys

from PySide6.QtCore import QtMsgType, qInstallMessageHandler

from ..actions import signals

LOG_LEVEL = logging.DEBUG
LOG_FORMAT = '[%(asctime)s] <%(module)s> %(levelname)s:  %(message)s'
LOG_DATEFMT = '%Y-%m-%d %H:%M:%S'
LOG_FILE_NAME = 'fueltracker.log'

#: Maximum number of records kept by the tank; the oldest are dropped first.
TANK_SIZE = 50_000

LEVELS = {
    'DEBUG': logging.DEBUG,
    'INFO': logging.INFO,
    'WARNING': logging.WARNING,
    'ERROR': logging.ERROR,
    'CRITICAL': logging.CRITICAL,
}


def set_logging_level(level):
    """
    Sets the logging level for the root logger and its handlers.

    Args:
        level (int | str): A standard logging level, or its name, e.g. ``'INFO'``.

    Raises:
        ValueError: If the level is not one of the standard levels.
    """
    if isinstance(level, str):
        if level.upper() not in LEVELS:
            raise ValueError(f'Invalid logging level "{level}", must be one of {list(LEVELS)}.')
        level = LEVELS[level.upper()]
    if isinstance(level, bool) or not isinstance(level, int) or level not in LEVELS.values():
        raise ValueError('Invalid logging level. Use one of the standard logging levels, e.g., logging.DEBUG.')

    logging.getLogger().setLevel(level)
    for handler in logging.getLogger().handlers:
        handler.setLevel(level)


def qt_message_handler(mode, context, message):
    """
    Converts Qt messages to standard Python logging.
    """
    logger = logging.getLogger('Qt')
    message = message.strip()

    if mode == QtMsgType.QtDebugMsg:
        logger.debug(message)
    elif mode == QtMsgType.QtInfoMsg:
        logger.info(message)
    elif mode == QtMsgType.QtWarningMsg:
        logger.warning(message)
    elif mode == QtMsgType.QtCriticalMsg:
        logger.error(message)
    elif mode == QtMsgType.QtFatalMsg:
        logger.critical(message)
        sys.exit(1)


def _formatter():
    return logging.Formatter(fmt=LOG_FORMAT, datefmt=LOG_DATEFMT)


def setup_logging(enable_stream_handler=True, enable_qt_handler=True, log_level=LOG_LEVEL):
    """
    Configures the root logger and optionally installs the Qt message handler.

    Args:
        enable_stream_handler (bool): Attach a stdout stream handler.
        enable_qt_handler (bool): Route Qt's own messages through Python logging.
        log_level (int): Level applied to the root logger and every handler.
    """
    root_logger = logging.getLogger()
    root_logger.setLevel(log_level)

    # Clear all handlers to avoid formatting conflicts
    root_logger.handlers.clear()

    if enable_stream_handler:
        stream_handler = logging.StreamHandler(sys.stdout)
        stream_handler.setFormatter(_formatter())
        stream_handler.setLevel(log_level)
        root_logger.addHandler(stream_handler)

    tank_handler = TankHandler()
    tank_handler.setFormatter(_formatter())
    tank_handler.setLevel(log_level)
    root_logger.addHandler(tank_handler)

    if enable_qt_handler:
        qInstallMessageHandler(qt_message_handler)


def add_file_handler(directory, level=None):
    """
    Writes log records to ``fueltracker.log`` in the given directory.

    Calling it again for the same file is a no-op.

    Args:
        directory (str | pathlib.Path): Folder of the log file. Created if missing.
        level (int, optional): Minimum level written to the file. Defaults to the root logger level.

    Returns:
        logging.FileHandler: The attached handler.
    """
    path = pathlib.Path(directory) / LOG_FILE_NAME
    root_logger = logging.getLogger()
    for handler in root_logger.handlers:
        if isinstance(handler, logging.FileHandler) and handler.baseFilename == os.path.abspath(path):
            return handler

    path.parent.mkdir(parents=True, exist_ok=True)
    file_handler = logging.FileHandler(path, encoding='utf-8')
    file_handler.setFormatter(_formatter())
    file_handler.setLevel(logging.getLogger().level if level is None else level)
    root_logger.addHandler(file_handler)
    return file_handler


def get_tank_handler():
    """
    Returns the TankHandler attached to the root logger, if any.

    Returns:
        TankHandler | None: The in-memory log handler.
    """
    return next(
        (h for h in logging.getLogger().handlers if isinstance(h, TankHandler)),
        None
    )


class TankHandler(logging.Handler):
    """
    Logging handler that keeps formatted records in a bounded in-memory tank.

    Records at ERROR or above emit ``signals.showLogs`` so a front end can surface
    the log.

    Attributes:
        tank (collections.deque[tuple[int, str]]): Pairs of log level and formatted message.
    """

    def __init__(self, size=TANK_SIZE):
        super().__init__()
        self.tank = collections.deque(maxlen=size)

    def emit(self, record):
        try:
            message = self.format(record)
            self.tank.append((record.levelno, message))
            if record.levelno >= logging.ERROR:
                signals.showLogs.emit()
        except (Exception, KeyboardInterrupt):
            self.handleError(record)

    def get_logs(self, level=logging.NOTSET):
        """
        Returns the stored messages at or above a minimum level.

        Args:
            level (int, optional): The minimum logging level. Defaults to logging.NOTSET.

        Returns:
            list[str]: Formatted log messages, oldest first.
        """
        return [msg for lvl, msg in self.tank if lvl >= level]

    def clear_logs(self):
        self.tank.clear()
