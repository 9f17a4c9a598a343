import time
from abc import ABC, abstractmethod
from typing import Callable, Optional, TypeVar

from .errors import ReceiptTimeoutError
from .order import ExecutionBatch, ExecutionReceipt, SubmissionHandle

T = TypeVar("T")


class TransactionDispatcher(ABC):
    strategy: str = ""
    authorization: str = "permit"  # permit | approve
    default_timeout_ms: int = 60_000

    def __init__(
        self,
        poll_interval_ms: int = 1000,
        sleep: Callable[[float], None] = time.sleep,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.poll_interval_ms = poll_interval_ms
        self._sleep = sleep
        self._clock = clock

    @property
    @abstractmethod
    def owner_address(self) -> str:
        """Account whose tokens the batch spends."""
        raise NotImplementedError

    @abstractmethod
    def submit(self, batch: ExecutionBatch) -> SubmissionHandle:
        raise NotImplementedError

    @abstractmethod
    def wait_for_receipt(self, handle: SubmissionHandle, timeout_ms: Optional[int] = None) -> ExecutionReceipt:
        raise NotImplementedError

    def _poll(self, handle: SubmissionHandle, fetch: Callable[[], Optional[T]], timeout_ms: Optional[int]) -> T:
        """Call ``fetch`` until it returns a value or the bound elapses."""
        timeout_ms = self.default_timeout_ms if timeout_ms is None else timeout_ms
        deadline = self._clock() + timeout_ms / 1000.0
        while True:
            result = fetch()
            if result is not None:
                return result
            remaining = deadline - self._clock()
            if remaining <= 0:
                raise ReceiptTimeoutError(handle.hash, timeout_ms)
            # last sleep is cut short so the wait never overshoots the bound
            self._sleep(min(self.poll_interval_ms / 1000.0, remaining))
