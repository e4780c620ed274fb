# -*- coding: utf-8 -*-
"""
Utility functions and constants for handlab.

- Default addresses, ports and timeouts
- Logging configuration and management (loguru)
- Block log file naming and CSV row formatting

Examples
--------
Where a block log goes:
```python
from handlab.util import block_log_path
block_log_path("./logs", "S01", 2)  # -> logs/S01_Block2.csv
```

See Also
--------
handlab.util.logging : Logging configuration
handlab.util.save : Block log conventions
"""

from .defaults import (
    DEFAULT_CONNECT_TIMEOUT,
    DEFAULT_DISPLAY_PORT,
    DEFAULT_HOST_ADDR,
    DEFAULT_LOG_CLOSE_GRACE,
    DEFAULT_LOG_DIR,
    DEFAULT_LOGLEVEL,
    DEFAULT_RECEIVER_GRACE,
    DEFAULT_TCP_PORT,
    DEFAULT_UDP_PORT,
    SINGLE_LINE_ERR_LOG,
    TEST_LOGLEVEL,
    USER_DIR,
)
from .logging import (
    clear_log,
    format_error_response,
    get_log_filename,
    log_default_path,
    shutdown_log,
    start_log,
)
from .save import (
    CSV_COLUMNS,
    CSV_HEADER,
    block_log_path,
    fmt_float,
    format_record_line,
)

__all__ = [
    "DEFAULT_CONNECT_TIMEOUT",
    "DEFAULT_DISPLAY_PORT",
    "DEFAULT_HOST_ADDR",
    "DEFAULT_LOG_CLOSE_GRACE",
    "DEFAULT_LOG_DIR",
    "DEFAULT_LOGLEVEL",
    "DEFAULT_RECEIVER_GRACE",
    "DEFAULT_TCP_PORT",
    "DEFAULT_UDP_PORT",
    "SINGLE_LINE_ERR_LOG",
    "TEST_LOGLEVEL",
    "USER_DIR",
    "clear_log",
    "format_error_response",
    "get_log_filename",
    "log_default_path",
    "shutdown_log",
    "start_log",
    "CSV_COLUMNS",
    "CSV_HEADER",
    "block_log_path",
    "fmt_float",
    "format_record_line",
]
