from privault.journal.journal import (
    GENESIS_HASH,
    EventJournal,
    JournalEntry,
    read_entries,
    verify_entries,
)

__all__ = [
    "GENESIS_HASH",
    "EventJournal",
    "JournalEntry",
    "read_entries",
    "verify_entries",
]
