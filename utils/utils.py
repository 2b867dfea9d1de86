"""
Utilities Module for the Voting Coordinator
Logging setup, batch timing and round result persistence
"""

import logging
import json
import time
from datetime import datetime
from pathlib import Path
from typing import Dict, Any, List, Optional
import platform
from dataclasses import dataclass, asdict

import numpy as np
import psutil


@dataclass
class PerformanceMetrics:
    operation: str
    duration_seconds: float
    memory_mb: float
    failed: bool = False


def setup_logging(log_level: str = "INFO", log_file: Optional[Path] = None):
    """Configure the root logger with a file and a console handler"""
    if log_file is None:
        log_dir = Path("logs")
        log_dir.mkdir(parents=True, exist_ok=True)
        log_file = log_dir / \
            f"coordinator_{datetime.now().strftime('%Y%m%d_%H%M%S')}.log"

    log_file = Path(log_file)
    log_file.parent.mkdir(parents=True, exist_ok=True)

    # Clear existing handlers to avoid duplicates
    root_logger = logging.getLogger()
    for handler in root_logger.handlers[:]:
        root_logger.removeHandler(handler)

    logging.basicConfig(
        level=getattr(logging, log_level.upper()),
        format='%(asctime)s - %(name)s - %(levelname)s - [%(filename)s:%(lineno)d] - %(message)s',
        handlers=[
            logging.FileHandler(log_file),
            logging.StreamHandler()
        ]
    )

    logger = logging.getLogger(__name__)
    logger.info(f"Logging initialized. Log file: {log_file}")

    return logger


class PerformanceMonitor:
    """Wall-clock time and resident memory per coordinator operation"""

    def __init__(self):
        self.metrics: List[PerformanceMetrics] = []
        self.process = psutil.Process()

    def start_operation(self, operation_name: str) -> 'OperationContext':
        return OperationContext(self, operation_name)

    def _rss_mb(self) -> float:
        try:
            return self.process.memory_info().rss / 1024 / 1024
        except psutil.Error as e:
            logging.debug(f"Memory sampling failed: {e}")
            return 0.0

    def get_summary(self) -> Dict[str, Any]:
        """Count, timing and peak memory for each operation name"""
        grouped: Dict[str, List[PerformanceMetrics]] = {}
        for metric in self.metrics:
            grouped.setdefault(metric.operation, []).append(metric)

        operations = {}
        for name, metrics in grouped.items():
            durations = np.array([m.duration_seconds for m in metrics])
            operations[name] = {
                'count': len(metrics),
                'failed': sum(1 for m in metrics if m.failed),
                'total_duration': float(durations.sum()),
                'avg_duration': float(durations.mean()),
                'max_duration': float(durations.max()),
                'peak_memory_mb': max(m.memory_mb for m in metrics),
            }

        return {
            'total_operations': len(self.metrics),
            'total_duration': sum(op['total_duration'] for op in operations.values()),
            'operations': operations,
        }


class OperationContext:
    """Times one operation and records it on exit, failed or not"""

    def __init__(self, monitor: PerformanceMonitor, operation_name: str):
        self.monitor = monitor
        self.operation_name = operation_name
        self.start_time = None

    def __enter__(self):
        self.start_time = time.time()
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.monitor.metrics.append(PerformanceMetrics(
            operation=self.operation_name,
            duration_seconds=time.time() - self.start_time,
            memory_mb=self.monitor._rss_mb(),
            failed=exc_type is not None,
        ))


def get_system_info() -> Dict[str, Any]:
    info = {
        'platform': platform.platform(),
        'python_version': platform.python_version(),
    }
    try:
        info['cpu_count'] = psutil.cpu_count(logical=True)
        info['total_memory_gb'] = round(psutil.virtual_memory().total / 1024 ** 3, 2)
    except psutil.Error as e:
        logging.debug(f"System info error: {e}")
    return info


def to_serializable(obj):
    """JSON-friendly view of result dataclasses, tuples and numpy values"""
    if hasattr(obj, '__dataclass_fields__'):
        return to_serializable(asdict(obj))
    elif isinstance(obj, dict):
        return {str(k): to_serializable(v) for k, v in obj.items()}
    elif isinstance(obj, (list, tuple)):
        return [to_serializable(item) for item in obj]
    elif isinstance(obj, (np.integer, np.floating)):
        return obj.item()
    elif isinstance(obj, np.ndarray):
        return obj.tolist()
    elif isinstance(obj, bool) or obj is None or isinstance(obj, float):
        return obj
    elif isinstance(obj, int):
        # Field elements exceed the double range of most JSON readers
        return str(obj) if obj.bit_length() > 53 else obj
    elif isinstance(obj, bytes):
        return obj.hex()
    elif isinstance(obj, Path):
        return str(obj)
    return str(obj)


def save_results(results: Dict[str, Any], filepath: Path):
    """Save results as JSON plus a plain-text summary beside it"""
    filepath = Path(filepath)
    filepath.parent.mkdir(parents=True, exist_ok=True)

    document = {
        'metadata': {
            'generated_at': datetime.now().isoformat(),
            'system_info': get_system_info(),
        },
        'data': to_serializable(results)
    }
    with open(filepath, 'w') as f:
        json.dump(document, f, indent=2)

    summary_path = filepath.parent / f"{filepath.stem}_summary.txt"
    with open(summary_path, 'w') as f:
        f.write(create_results_summary(results))

    logging.info(f"Results saved to {filepath}")


def _section(title: str, rows) -> List[str]:
    return [f"{title}:"] + [f"  {row}" for row in rows] + [""]


def create_results_summary(results: Dict[str, Any]) -> str:
    lines = ["=" * 80, "QUADRATIC VOTING ROUND - RESULTS SUMMARY", "=" * 80, ""]
    if 'round' in results:
        lines += _section("ROUND PARAMETERS", (f"{k}: {v}" for k, v in results['round'].items()))
    if 'tally' in results:
        lines += _section("TALLY", (
            f"Option {o['option']}: {o['votes']} votes ({o['voice_credits']} credits)"
            for o in results['tally']))
    if 'commitments' in results:
        lines += _section("COMMITMENTS", (f"{k}: {v}" for k, v in results['commitments'].items()))
    if 'verdicts' in results:
        lines += _section("MESSAGE VERDICTS", (f"{k}: {v}" for k, v in results['verdicts'].items()))
    lines.append("=" * 80)
    return "\n".join(lines)


def create_performance_report(monitor: PerformanceMonitor) -> str:
    """Plain-text breakdown of the monitor's operations"""
    summary = monitor.get_summary()
    lines = [
        "=" * 80,
        "VOTING COORDINATOR - PERFORMANCE REPORT",
        "=" * 80,
        f"Total Operations: {summary['total_operations']}",
        f"Total Duration: {format_duration(summary['total_duration'])}",
    ]
    if not summary['operations']:
        lines.append("No performance data available.")
    for name, op in summary['operations'].items():
        lines.append(f"\n{name.upper()}:")
        lines.append(f"  Executions: {op['count']} ({op['failed']} failed)")
        lines.append(f"  Total / Avg / Max: {format_duration(op['total_duration'])} / "
                     f"{format_duration(op['avg_duration'])} / {format_duration(op['max_duration'])}")
        lines.append(f"  Peak Memory: {op['peak_memory_mb']:.1f} MB")
    lines.append("=" * 80)
    return "\n".join(lines)


def format_duration(seconds: float) -> str:
    """Format duration in human-readable format"""
    if seconds < 1:
        return f"{seconds*1000:.1f}ms"
    elif seconds < 60:
        return f"{seconds:.2f}s"
    elif seconds < 3600:
        minutes = int(seconds // 60)
        secs = seconds % 60
        return f"{minutes}m {secs:.1f}s"
    else:
        hours = int(seconds // 3600)
        minutes = int((seconds % 3600) // 60)
        secs = seconds % 60
        return f"{hours}h {minutes}m {secs:.1f}s"


__all__ = [
    'PerformanceMetrics',
    'PerformanceMonitor',
    'OperationContext',
    'setup_logging',
    'get_system_info',
    'to_serializable',
    'save_results',
    'create_results_summary',
    'create_performance_report',
    'format_duration',
]
