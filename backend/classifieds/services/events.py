import asyncio
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Dict, List, Optional, Type


@dataclass(frozen=True)
class AuthStateChanged:
    user_id: Optional[str]


@dataclass(frozen=True)
class ListingsChanged:
    # Full record set for backends that push snapshots, None otherwise.
    records: Optional[List[Dict[str, Any]]] = None


@dataclass(frozen=True)
class SubscriptionFailed:
    error: Exception


Handler = Callable[[Any], Awaitable[None]]


class EventDispatcher:
    """Single consumer queue for auth and realtime callbacks.

    Vendor SDKs call back from their own threads or tasks; everything they
    report is funnelled through here and handled one event at a time on the
    app's event loop. Bursts are not coalesced.
    """

    def __init__(self):
        self.queue: asyncio.Queue = asyncio.Queue()
        self.handlers: Dict[Type, Handler] = {}
        self._loop: Optional[asyncio.AbstractEventLoop] = None
        self._task: Optional[asyncio.Task] = None

    def register(self, event_type: Type, handler: Handler):
        self.handlers[event_type] = handler

    def post(self, event) -> None:
        try:
            running = asyncio.get_running_loop()
        except RuntimeError:
            running = None
        if self._loop is not None and running is not self._loop:
            self._loop.call_soon_threadsafe(self.queue.put_nowait, event)
        else:
            self.queue.put_nowait(event)

    def start(self):
        if self._task is None:
            self._loop = asyncio.get_running_loop()
            self._task = self._loop.create_task(self._run())

    async def stop(self):
        if self._task is not None:
            self._task.cancel()
            try:
                await self._task
            except asyncio.CancelledError:
                pass
            self._task = None

    async def drain(self):
        await self.queue.join()

    async def _run(self):
        while True:
            event = await self.queue.get()
            try:
                handler = self.handlers.get(type(event))
                if handler is None:
                    print(f"[events] No handler for {type(event).__name__}")
                else:
                    await handler(event)
            except Exception as e:
                print(f"[events] Handler for {type(event).__name__} failed: {e}")
            finally:
                self.queue.task_done()
