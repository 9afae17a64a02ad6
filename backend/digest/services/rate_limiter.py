import asyncio
import time


class RateLimiter:
    """Keeps successive outbound calls at least ``min_interval`` seconds apart.

    Only dispatch timing is serialized: a caller holds the lock while it
    sleeps out the remaining interval and stamps its dispatch time, then the
    actual request runs concurrently with everything else.
    """

    def __init__(self, min_interval: float) -> None:
        self.min_interval = min_interval
        self.last_dispatch = float("-inf")
        self._lock = asyncio.Lock()

    async def wait(self) -> float:
        async with self._lock:
            while True:
                elapsed = time.monotonic() - self.last_dispatch
                if elapsed >= self.min_interval:
                    break
                await asyncio.sleep(self.min_interval - elapsed)
            self.last_dispatch = time.monotonic()
            return self.last_dispatch
