# -*- coding: utf-8 -*-

import pathlib

DEFAULT_HOST_ADDR = "127.0.0.1"
DEFAULT_UDP_PORT = 20001  # telemetry, peripheral -> controller
DEFAULT_TCP_PORT = 20002  # commands, controller -> peripheral
DEFAULT_DISPLAY_PORT = 8850  # PUB socket for render notifications
DEFAULT_CONNECT_TIMEOUT = 1.0  # seconds
DEFAULT_RECEIVER_GRACE = 1.0  # seconds allowed for the receive loop to exit
DEFAULT_LOG_CLOSE_GRACE = 2.0  # seconds allowed for a block log to drain on stop
DEFAULT_LOGLEVEL = "INFO"
TEST_LOGLEVEL = "TRACE"
SINGLE_LINE_ERR_LOG = False  # reformat tracebacks into a single line for notices

USER_DIR = pathlib.Path.home() / ".handlab"
DEFAULT_LOG_DIR = USER_DIR / "Logs"  # block CSV files
