"""Remote flashcard service (AnkiConnect)."""

from .connect import (
    AnkiConnectClient,
    AnkiConnectConfig,
    AnkiConnectError,
    CardInfo,
    RemoteNote,
    RemoteService,
)

__all__ = [
    "AnkiConnectClient",
    "AnkiConnectConfig",
    "AnkiConnectError",
    "CardInfo",
    "RemoteNote",
    "RemoteService",
]
