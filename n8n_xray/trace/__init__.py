"""Pure reconstruction of execution flows from compressed execution data."""

from .extractor import extract_node
from .reconstructor import RunDataView, locate_run_data, reconstruct
from .resolver import deref, is_pointer, resolve

__all__ = [
    "RunDataView",
    "deref",
    "extract_node",
    "is_pointer",
    "locate_run_data",
    "reconstruct",
    "resolve",
]
