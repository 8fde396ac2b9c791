"""
Per-trial console report
"""
from dataclasses import dataclass
from typing import Optional

from quicmeter.host_stats import HostStatsDelta

KIB = 1024
MIB = 1048576


def size_string(size: int) -> str:
    """Human size with integer rounding: 512 b, 2 kib, 3 mib."""
    value = float(size)
    unit = "b"
    if size >= MIB:
        unit = "mib"
        value /= MIB
    elif size >= KIB:
        unit = "kib"
        value /= KIB
    return f"{value:.0f} {unit}"


def goodput(size: int, duration: float, files: int = 1) -> float:
    """Payload bytes per second, multiplied by the number of duplicate files."""
    if duration <= 0:
        return 0.0
    return (size / duration) * files


def format_duration(seconds: float) -> str:
    if seconds < 0.001:
        return f"{seconds * 1e6:.0f}µs"
    if seconds < 1:
        return f"{seconds * 1e3:.3f}ms"
    return f"{seconds:.3f}s"


@dataclass
class TrialReport:
    protocol: str
    environment: str
    kind: str
    files: int
    setup_duration: float
    first_byte_duration: float
    size: int
    duration: float
    host_stats: Optional[HostStatsDelta] = None

    @property
    def goodput(self) -> float:
        return goodput(self.size, self.duration, self.files)


def format_report(report: TrialReport) -> str:
    return (
        f"[{report.protocol} - {report.environment}] [{report.files} files] "
        f"setup: {format_duration(report.setup_duration)}, "
        f"firstbyte: {format_duration(report.first_byte_duration)}, "
        f"sent: {size_string(report.size)}, "
        f"duration: {format_duration(report.duration)} "
        f"(goodput: {report.goodput / 1024.0:.0f} kbps)"
    )


def print_report(report: TrialReport):
    print(format_report(report), flush=True)
