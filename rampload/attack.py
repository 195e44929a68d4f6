"""Fixed-rate HTTP attacker backed by httpx and a bounded worker pool."""

import queue
import threading
import time
from concurrent.futures import ThreadPoolExecutor
from typing import Callable, Iterator, Optional

import httpx

from rampload.models import Result, Target
from rampload.targets import NoTargetsError

DEFAULT_WORKERS = 10
DEFAULT_TIMEOUT = 30.0

_DONE = object()


class Attacker:
    """Issue requests at a fixed rate and stream back one Result per hit.

    Hits are paced at ``1 / frequency`` second intervals. At most
    ``max_workers`` hits are in flight; when all workers are busy the pacer
    waits for a free slot, so a slow target lowers the achieved rate instead
    of piling up requests.
    """

    def __init__(
        self,
        max_workers: int = DEFAULT_WORKERS,
        timeout: float = DEFAULT_TIMEOUT,
        client: Optional[httpx.Client] = None,
    ):
        if max_workers < 1:
            raise ValueError(f"max_workers must be >= 1, got {max_workers}")
        self.max_workers = max_workers
        self.timeout = timeout
        self._owns_client = client is None
        self.client = client or httpx.Client(timeout=timeout, follow_redirects=True)
        self._stopped = threading.Event()

    def attack(
        self,
        targeter: Callable[[], Target],
        frequency: int,
        duration: float,
        name: str = "",
    ) -> Iterator[Result]:
        """Attack for ``duration`` seconds, yielding results as they complete.

        Exactly ``round(frequency * duration)`` hits are scheduled. A
        frequency of zero or less sends nothing but still waits out the
        duration. Closing the iterator early stops the attack.
        """
        stopped = threading.Event()
        self._stopped = stopped
        results: "queue.Queue" = queue.Queue()
        pacer = threading.Thread(
            target=self._pace,
            args=(targeter, frequency, duration, name, stopped, results),
            name="attack-pacer",
            daemon=True,
        )
        pacer.start()
        try:
            while True:
                result = results.get()
                if result is _DONE:
                    break
                yield result
        finally:
            stopped.set()
            pacer.join()

    def stop(self) -> None:
        """Stop the running attack. In-flight hits still complete."""
        self._stopped.set()

    def close(self) -> None:
        self.stop()
        if self._owns_client:
            self.client.close()

    def __enter__(self) -> "Attacker":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()

    def _pace(self, targeter, frequency, duration, name, stopped, results) -> None:
        began = time.monotonic()
        try:
            if frequency > 0:
                hits = int(round(frequency * duration))
                interval = 1.0 / frequency
                slots = threading.BoundedSemaphore(self.max_workers)
                with ThreadPoolExecutor(
                    max_workers=self.max_workers, thread_name_prefix="attacker"
                ) as pool:
                    for seq in range(hits):
                        delay = began + seq * interval - time.monotonic()
                        if delay > 0 and stopped.wait(delay):
                            break
                        if not _acquire(slots, stopped):
                            break
                        pool.submit(self._hit, targeter, name, seq, slots, results)
            remaining = began + duration - time.monotonic()
            if remaining > 0:
                stopped.wait(remaining)
        finally:
            results.put(_DONE)

    def _hit(self, targeter, name, seq, slots, results) -> None:
        result = Result(attack=name, seq=seq, timestamp=time.time())
        began = time.perf_counter()
        try:
            target = targeter()
            result.method = target.method
            result.url = target.url
            result.bytes_out = len(target.body)
            response = self.client.request(
                target.method,
                target.url,
                content=target.body or None,
                headers=[(k, v) for k, values in target.header.items() for v in values],
                timeout=self.timeout,
            )
            result.status_code = response.status_code
            result.bytes_in = len(response.content)
            if not 200 <= response.status_code < 400:
                result.error = f"{response.status_code} {response.reason_phrase}".strip()
        except NoTargetsError as exc:
            result.error = str(exc)
        except (httpx.HTTPError, httpx.InvalidURL) as exc:
            result.error = str(exc) or type(exc).__name__
        except Exception as exc:
            result.error = str(exc) or type(exc).__name__
        finally:
            result.latency = time.perf_counter() - began
            results.put(result)
            slots.release()


def _acquire(slots: threading.BoundedSemaphore, stopped: threading.Event) -> bool:
    while not slots.acquire(timeout=0.05):
        if stopped.is_set():
            return False
    if stopped.is_set():
        slots.release()
        return False
    return True
