from __future__ import annotations

import asyncio
import logging
from collections.abc import Callable, Iterable, Sequence
from dataclasses import dataclass, field

from lanfuse.exceptions import ProbeError
from lanfuse.models import PortDescriptor, PortState

from .collaborators import PortProber
from .fusion import canonical_ip, ip_sort_key

logger = logging.getLogger(__name__)

ResultCallback = Callable[["HostScanResult"], None]
ProgressCallback = Callable[[int, int], None]


@dataclass(frozen=True)
class HostScanResult:
    host: str
    ports: list[PortDescriptor] = field(default_factory=list)
    error: str | None = None

    @property
    def port_numbers(self) -> list[int]:
        return [descriptor.port for descriptor in self.ports]


class PortScanCoordinator:
    """Probe hosts with at most ``max_concurrent`` probes in flight.

    A dispatcher feeds a queue of hosts to a fixed pool of workers, so a new
    probe starts as soon as one finishes. Workers hand results to a single
    collector, which is the only place callbacks run.
    """

    def __init__(
        self,
        prober: PortProber,
        max_concurrent: int = 10,
        host_timeout: float | None = None,
    ) -> None:
        if max_concurrent < 1:
            raise ValueError(f"max_concurrent must be at least 1, got {max_concurrent}")
        self._prober = prober
        self._max_concurrent = max_concurrent
        self._host_timeout = host_timeout

    @property
    def max_concurrent(self) -> int:
        return self._max_concurrent

    async def _probe_host(self, host: str, ports: list[int]) -> HostScanResult:
        try:
            probe = self._prober.probe_ports(host, ports)
            if self._host_timeout is not None:
                found = await asyncio.wait_for(probe, timeout=self._host_timeout)
            else:
                found = await probe
        except (asyncio.TimeoutError, TimeoutError):
            logger.debug("Port probe of %s timed out", host)
            return HostScanResult(host=host, error="timeout")
        except (ProbeError, OSError) as exc:
            logger.debug("Port probe of %s failed: %s", host, exc)
            return HostScanResult(host=host, error=str(exc) or type(exc).__name__)
        except Exception as exc:
            logger.warning(
                "Port probe of %s raised %s: %s", host, type(exc).__name__, exc
            )
            return HostScanResult(host=host, error=str(exc) or type(exc).__name__)

        open_ports = [d for d in found if d.state is PortState.OPEN]
        return HostScanResult(host=host, ports=open_ports)

    async def scan(
        self,
        hosts: Iterable[str],
        ports: Sequence[int],
        on_result: ResultCallback | None = None,
        on_progress: ProgressCallback | None = None,
    ) -> list[HostScanResult]:
        pending_hosts = list(dict.fromkeys(canonical_ip(host) for host in hosts))
        port_list = list(ports)
        total = len(pending_hosts)
        if total == 0:
            return []

        worker_count = min(self._max_concurrent, total)
        logger.debug(
            "Probing %d ports on %d hosts (%d workers)",
            len(port_list),
            total,
            worker_count,
        )

        queue: asyncio.Queue[str | None] = asyncio.Queue(maxsize=worker_count * 4)
        results: asyncio.Queue[HostScanResult] = asyncio.Queue()
        collected: list[HostScanResult] = []

        async def _dispatcher() -> None:
            for host in pending_hosts:
                await queue.put(host)
            for _ in range(worker_count):
                await queue.put(None)

        async def _worker() -> None:
            while True:
                host = await queue.get()
                try:
                    if host is None:
                        return
                    await results.put(await self._probe_host(host, port_list))
                finally:
                    queue.task_done()

        async def _collector() -> None:
            while len(collected) < total:
                result = await results.get()
                collected.append(result)
                if on_result is not None:
                    on_result(result)
                if on_progress is not None:
                    on_progress(len(collected), total)

        workers = [asyncio.create_task(_worker()) for _ in range(worker_count)]
        collector = asyncio.create_task(_collector())
        completed = False
        try:
            await _dispatcher()
            await queue.join()
            await asyncio.gather(*workers)
            await collector
            completed = True
        finally:
            if not completed:
                for task in (*workers, collector):
                    if not task.done():
                        task.cancel()
                await asyncio.gather(*workers, collector, return_exceptions=True)

        responsive = sum(1 for result in collected if result.ports)
        logger.debug(
            "Port scan complete: %d/%d hosts with open ports", responsive, total
        )
        return sorted(collected, key=lambda result: ip_sort_key(result.host))
