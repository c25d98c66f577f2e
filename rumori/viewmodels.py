"""
List screen state: loading, loaded, empty and error with retry.
"""
from enum import Enum
from typing import Awaitable, Callable, Generic, List, Optional, TypeVar

from rumori.exceptions import RumoriError
from rumori.logger import get_logger

logger = get_logger("viewmodels")

T = TypeVar("T")


class LoadState(str, Enum):
    IDLE = "idle"
    LOADING = "loading"
    LOADED = "loaded"
    EMPTY = "empty"
    ERROR = "error"


class ListViewModel(Generic[T]):
    """
    Holds the items of one list screen and the state of their last load.

    A failed load clears previously loaded items so stale data is never
    shown next to an error.
    """

    def __init__(self, loader: Callable[[], Awaitable[List[T]]], name: str = "list"):
        self.loader = loader
        self.name = name
        self.items: List[T] = []
        self.state = LoadState.IDLE
        self.error: Optional[RumoriError] = None
        self._listeners: List[Callable[["ListViewModel[T]"], None]] = []

    @property
    def error_message(self) -> Optional[str]:
        return self.error.message if self.error else None

    @property
    def is_loading(self) -> bool:
        return self.state == LoadState.LOADING

    def subscribe(self, listener: Callable[["ListViewModel[T]"], None]) -> Callable[[], None]:
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)
        return unsubscribe

    def _transition(self, state: LoadState) -> None:
        self.state = state
        for listener in list(self._listeners):
            try:
                listener(self)
            except Exception as e:
                logger.error(f"Listener for '{self.name}' failed: {e}")

    async def load(self) -> List[T]:
        self.error = None
        self._transition(LoadState.LOADING)
        try:
            items = await self.loader()
        except RumoriError as e:
            logger.warning(f"Loading '{self.name}' failed: {e.message}")
            self.items = []
            self.error = e
            self._transition(LoadState.ERROR)
            return self.items

        self.items = list(items)
        self._transition(LoadState.LOADED if self.items else LoadState.EMPTY)
        return self.items

    async def retry(self) -> List[T]:
        logger.info(f"Retrying '{self.name}'")
        return await self.load()
