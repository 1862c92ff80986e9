"""
DPSK manager utilities
Record schema, filtering, controller transport and logging
"""

from .logger import get_logger, setup_logging
from .client import ControllerClient, ControllerSession, DpskService
from .filters import apply_filters, build_filter_set, build_update_set
from .schema import DpskRecord, FIELDS, resolve

__all__ = [
    "get_logger",
    "setup_logging",
    "ControllerClient",
    "ControllerSession",
    "DpskService",
    "apply_filters",
    "build_filter_set",
    "build_update_set",
    "DpskRecord",
    "FIELDS",
    "resolve",
]
