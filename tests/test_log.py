# tests/test_log.py
"""
Tests for FuelTracker.log.log
(covers TankHandler, the log file, the Qt bridge and the setup helpers).

Run:
    python -m unittest tests.test_log
"""
import logging
import tempfile
from pathlib import Path
from typing import List

from PySide6.QtCore import QtMsgType

from FuelTracker.actions import signals
from FuelTracker.log.log import (
    LOG_FILE_NAME,
    TankHandler,
    add_file_handler,
    get_tank_handler,
    qt_message_handler,
    set_logging_level,
    setup_logging,
)
from tests.base import BaseTestCase


class LogModuleTests(BaseTestCase):
    """
    Each test starts with a fresh root logger configured by
    setup_logging(enable_stream_handler=False).
    """

    def setUp(self) -> None:
        super().setUp()

        # enable logging
        logging.disable(logging.NOTSET)

        setup_logging(enable_stream_handler=False,
                      enable_qt_handler=False,
                      log_level=logging.DEBUG)

        self.root_logger = logging.getLogger()
        self.tank: TankHandler = get_tank_handler()

    def tearDown(self) -> None:
        for handler in list(self.root_logger.handlers):
            if isinstance(handler, logging.FileHandler):
                self.root_logger.removeHandler(handler)
                handler.close()
        super().tearDown()

    def test_setup_logging_installs_tank_handler_only(self):
        self.assertEqual(
            [type(h) for h in self.root_logger.handlers],
            [TankHandler],
        )

    def test_tank_handler_stores_and_filters(self):
        logging.debug('dbg message')
        logging.error('err message')
        self.assertEqual(len(self.tank.tank), 2)
        errs: List[str] = self.tank.get_logs(logging.ERROR)
        self.assertEqual(len(errs), 1)
        self.assertIn('err message', errs[0])
        self.tank.clear_logs()
        self.assertEqual(len(self.tank.tank), 0)

    def test_tank_is_bounded(self):
        tank = TankHandler(size=3)
        logger = logging.getLogger('FuelTracker.tests.bounded')
        logger.addHandler(tank)
        logger.propagate = False
        try:
            for i in range(5):
                logger.warning(f'row {i}')
        finally:
            logger.removeHandler(tank)
            logger.propagate = True
        logs = tank.get_logs()
        self.assertEqual(len(logs), 3)
        self.assertEqual(logs[0], 'row 2')
        self.assertEqual(logs[-1], 'row 4')

    def test_emit_triggers_showLogs_on_error(self):
        triggered: list[bool] = []

        def _slot() -> None:
            triggered.append(True)

        signals.showLogs.connect(_slot)
        try:
            logging.warning('should not emit')
            self.assertFalse(triggered)
            logging.error('should emit signal')
            self.assertTrue(triggered)
        finally:
            signals.showLogs.disconnect(_slot)

    def test_set_logging_level_accepts_valid_levels(self):
        set_logging_level(logging.ERROR)
        self.assertEqual(self.root_logger.level, logging.ERROR)
        for h in self.root_logger.handlers:
            self.assertEqual(h.level, logging.ERROR)

    def test_set_logging_level_accepts_names(self):
        set_logging_level('info')
        self.assertEqual(self.root_logger.level, logging.INFO)

    def test_set_logging_level_rejects_unknown(self):
        for level in (1234, 'LOUD', None, True):
            with self.subTest(level=level):
                with self.assertRaises(ValueError):
                    set_logging_level(level)

    def test_file_handler_writes_records(self):
        with tempfile.TemporaryDirectory() as tmp:
            handler = add_file_handler(Path(tmp) / 'logs')
            try:
                self.assertIs(add_file_handler(Path(tmp) / 'logs'), handler)
                logging.info('written to file')
                handler.flush()
                text = (Path(tmp) / 'logs' / LOG_FILE_NAME).read_text(encoding='utf-8')
                self.assertIn('written to file', text)
            finally:
                self.root_logger.removeHandler(handler)
                handler.close()

    def test_qt_message_handler_maps_to_logging(self):
        qt_message_handler(QtMsgType.QtInfoMsg, None, 'Qt info')
        qt_message_handler(QtMsgType.QtWarningMsg, None, 'Qt warn')
        msgs = self.tank.get_logs()
        self.assertTrue(any('Qt info' in m for m in msgs))
        self.assertTrue(any('Qt warn' in m for m in msgs))

    def test_qt_message_handler_fatal_exits(self):
        with self.assertRaises(SystemExit):
            qt_message_handler(QtMsgType.QtFatalMsg, None, 'fatal')
