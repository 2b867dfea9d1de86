"""Utilities for the voting coordinator."""

from .utils import (
    setup_logging,
    save_results,
    PerformanceMonitor,
    create_performance_report,
    format_duration,
    get_system_info,
    to_serializable
)

__all__ = [
    'setup_logging',
    'save_results',
    'PerformanceMonitor',
    'create_performance_report',
    'format_duration',
    'get_system_info',
    'to_serializable'
]
