from __future__ import annotations
from dataclasses import dataclass, field
from datetime import datetime
from typing import Callable, Optional

from aftersales.config.settings import Settings
from aftersales.models.types import utcnow
from aftersales.services.store import Store


@dataclass
class Principal:
    """Authenticated caller as seen by the core: id, role and home department."""
    id: int
    role: str
    department_id: Optional[int] = None
    name: str = ''

    @property
    def display_name(self) -> str:
        return self.name or f'user {self.id}'


@dataclass
class ServiceContext:
    """Explicit collaborators for every core operation (store, settings, clock)."""
    store: Store
    settings: Settings = field(default_factory=Settings)
    clock: Callable[[], datetime] = utcnow
    dispatcher: 'NotificationDispatcher' = field(init=False, repr=False)

    def __post_init__(self):
        from aftersales.services.notifications import NotificationDispatcher
        self.dispatcher = NotificationDispatcher(self.store, self.clock)

    def now(self) -> datetime:
        return self.clock()


__all__ = ['Principal', 'ServiceContext']
