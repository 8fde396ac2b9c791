"""
Point-in-time CPU and memory snapshots of the local host
"""
from dataclasses import dataclass

import psutil


@dataclass(frozen=True)
class HostStats:
    cpu_user: float
    cpu_system: float
    cpu_total: float
    memory_used: int


@dataclass(frozen=True)
class HostStatsDelta:
    cpu_user: float
    cpu_system: float
    cpu_total: float
    memory_diff: int
    memory_used: int

    @classmethod
    def between(cls, before: HostStats, after: HostStats) -> "HostStatsDelta":
        return cls(
            cpu_user=after.cpu_user - before.cpu_user,
            cpu_system=after.cpu_system - before.cpu_system,
            cpu_total=after.cpu_total - before.cpu_total,
            memory_diff=after.memory_used - before.memory_used,
            memory_used=after.memory_used,
        )

    def __str__(self):
        return (f"cpu user {self.cpu_user:.2f}s, system {self.cpu_system:.2f}s, total {self.cpu_total:.2f}s; "
                f"memory {self.memory_diff // 1048576:+d} mib ({self.memory_used // 1048576} mib used)")


class PsutilStatSource:
    def snapshot(self) -> HostStats:
        cpu = psutil.cpu_times()
        memory = psutil.virtual_memory()
        return HostStats(
            cpu_user=cpu.user,
            cpu_system=cpu.system,
            cpu_total=sum(cpu),
            memory_used=memory.used,
        )
