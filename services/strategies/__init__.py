"""Reply strategies consulted by the decision engine."""

from .base import ReplyStrategy
from .not_from_self import NotFromSelfStrategy
from .unreplied_thread import UnrepliedThreadStrategy

__all__ = [
    "ReplyStrategy",
    "UnrepliedThreadStrategy",
    "NotFromSelfStrategy",
]
