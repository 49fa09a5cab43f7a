"""In-memory scene store shared by the API routers."""

import threading
import uuid
from collections import OrderedDict
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Optional

import structlog

from ..config import settings
from ..scene import Scene

logger = structlog.get_logger()


@dataclass
class StoredScene:
    """A scene plus the lock that serialises edits and regeneration on it."""

    town_id: str
    scene: Scene
    created_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
    generation_time_seconds: Optional[float] = None
    lock: threading.Lock = field(default_factory=threading.Lock, repr=False)


class SceneStore:
    """Bounded mapping of town id to scene; the oldest entry is evicted when full."""

    def __init__(self, capacity: int):
        if capacity < 1:
            raise ValueError(f"capacity must be positive, got {capacity}")
        self.capacity = capacity
        self._items: "OrderedDict[str, StoredScene]" = OrderedDict()
        self._lock = threading.Lock()

    def add(self, scene: Scene, generation_time_seconds: Optional[float] = None) -> StoredScene:
        stored = StoredScene(
            town_id=str(uuid.uuid4()),
            scene=scene,
            generation_time_seconds=generation_time_seconds,
        )
        with self._lock:
            self._items[stored.town_id] = stored
            while len(self._items) > self.capacity:
                evicted, _ = self._items.popitem(last=False)
                logger.info("Scene evicted", town_id=evicted)
        return stored

    def get(self, town_id: str) -> StoredScene:
        """Raises KeyError for unknown ids."""
        with self._lock:
            return self._items[town_id]

    def remove(self, town_id: str) -> StoredScene:
        with self._lock:
            return self._items.pop(town_id)

    def clear(self) -> None:
        with self._lock:
            self._items.clear()

    def __len__(self) -> int:
        return len(self._items)


store = SceneStore(settings.max_stored_scenes)
