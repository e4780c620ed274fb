# -*- coding: utf-8 -*-
"""
Application log (loguru) setup for the controller and the CLI tools.

This is the *diagnostic* log. Telemetry goes to the per-block CSV files written
by `handlab.recording.EventLogger`, never through here.
"""

import os
import pathlib
import sys
import traceback

from loguru import logger

from .defaults import DEFAULT_LOGLEVEL, SINGLE_LINE_ERR_LOG

_LOG_PATH = ""


def format_error_response():
    err_str = traceback.format_exc()
    if SINGLE_LINE_ERR_LOG:
        return "\t".join(line.strip() for line in err_str.splitlines())
    else:
        return err_str


def start_log(
    log_to_file=True,
    log_to_stdout=False,
    log_path=None,
    clear_prev=True,
    log_level=DEFAULT_LOGLEVEL,
):
    global _LOG_PATH
    if log_path is None or log_path == "":
        log_path = log_default_path()
    else:
        log_path = os.path.abspath(log_path)

    if clear_prev:
        clear_log(log_path)

    # first remove (default) stderr output
    logger.remove()
    _LOG_PATH = ""

    # enqueue: the receive and drain threads log too.
    if log_to_file:
        logger.add(log_path, level=log_level, enqueue=True, colorize=False)
        _LOG_PATH = log_path
    if log_to_stdout:
        logger.add(sys.stderr, level=log_level, enqueue=True, colorize=True)
    if log_to_file:
        logger.info("Controller log started at {}", log_path)
    else:
        logger.info("Controller log started.")


def log_default_path() -> str:
    return str(pathlib.Path.home().joinpath(".handlab/controller.log"))


def clear_log(log_path: str):
    """
    Clear the log file at the given path, if it exists.

    Arguments
    ---------
    log_path : str
        The path to the log file. The default is given by log_default_path().
    """
    if os.path.exists(log_path):
        try:
            os.remove(log_path)
        except PermissionError:
            logger.error(
                f"Could not clear log file {log_path}. Permission denied. Continuing."
            )


def shutdown_log():
    global _LOG_PATH
    try:
        logger.info("Closing down controller log.")
        logger.complete()
        logger.remove()
    except Exception:
        logger.exception("Error shutting down controller log - skipping.")
    _LOG_PATH = ""


def get_log_filename() -> str:
    """Finds the log filename, empty if not logging to file."""
    return _LOG_PATH
