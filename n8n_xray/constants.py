"""Named defaults used while walking compressed execution data."""

from __future__ import annotations

import re

POINTER_PATTERN = re.compile(r"^[0-9]+$")

RUN_DATA_KEY = "runData"
HEADERS_SEGMENT = "headers"

DEFAULT_EXECUTION_STATUS = "success"
DEFAULT_OUTPUT_INDEX = 0
UNKNOWN_STATUS = "unknown"

# Only the first run of every node is analyzed; loops and retries are not expanded.
FIRST_RUN_INDEX = 0

END_SENTINEL = "END (final workflow output)"

MAX_RESOLVE_DEPTH = 200
