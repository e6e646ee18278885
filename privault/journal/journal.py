"""
Signed, hash-chained event journal.

ALIGNED TO: privault/core/canonical.py (RFC 8785 hashing)

Each completed vault operation and commitment transition becomes one
entry:

    index          position in the chain, from 0
    previous_hash  entry_hash of the previous entry (genesis: 64 zeros)
    timestamp      ledger_timestamp()
    event          "deposit", "commitment_opened", ...
    data           the operation's receipt or commitment dict
    data_hash      canonical_hash(data)
    signer         Ed25519 public key hex of the journal key
    signature      Ed25519 over bytes.fromhex(entry_hash)

entry_hash covers every field except data (bound through data_hash)
and the signature itself. Persistence is JSON Lines, one entry per line.
"""

import json
import logging
import os
import threading
from dataclasses import dataclass, asdict
from pathlib import Path
from typing import Any, Dict, List, Optional, Tuple

from privault.core.canonical import canonical_hash
from privault.core.crypto import Ed25519KeyManager
from privault.core.exceptions import JournalError
from privault.core.time import ledger_timestamp, parse_ledger_timestamp

logger = logging.getLogger(__name__)

GENESIS_HASH = "0" * 64


@dataclass(frozen=True)
class JournalEntry:
    """A single entry in the journal"""

    index:         int
    previous_hash: str
    timestamp:     str
    event:         str
    data:          Dict[str, Any]
    data_hash:     str
    signer:        str
    signature:     str = ""

    def to_dict(self) -> dict:
        return asdict(self)

    @staticmethod
    def from_dict(data: dict) -> "JournalEntry":
        try:
            return JournalEntry(
                index=         data["index"],
                previous_hash= data["previous_hash"],
                timestamp=     data["timestamp"],
                event=         data["event"],
                data=          data["data"],
                data_hash=     data["data_hash"],
                signer=        data["signer"],
                signature=     data["signature"],
            )
        except (KeyError, TypeError) as exc:
            raise JournalError(f"Malformed journal entry: {exc}") from exc

    def compute_hash(self) -> str:
        """Hash of this entry for chaining and signing."""
        return canonical_hash({
            "index":         self.index,
            "previous_hash": self.previous_hash,
            "timestamp":     self.timestamp,
            "event":         self.event,
            "data_hash":     self.data_hash,
            "signer":        self.signer,
        })


def verify_entries(entries: List[JournalEntry], public_key_hex: Optional[str] = None) -> None:
    """
    Check linkage, data hashes and signatures of a whole chain.

    With ``public_key_hex`` every entry must be signed by that key;
    without it every entry must be signed by the first entry's signer.

    Raises:
        JournalError: on the first break found
    """
    if not entries:
        return
    expected_signer = public_key_hex or entries[0].signer
    previous_hash   = GENESIS_HASH

    for position, entry in enumerate(entries):
        if entry.index != position:
            raise JournalError(
                "Index out of sequence", {"position": position, "index": entry.index}
            )
        if entry.previous_hash != previous_hash:
            raise JournalError(
                f"Chain break at index {position}",
                {"expected": previous_hash, "found": entry.previous_hash},
            )
        try:
            parse_ledger_timestamp(entry.timestamp)
        except ValueError as exc:
            raise JournalError("Malformed timestamp", {"index": position}) from exc
        if canonical_hash(entry.data) != entry.data_hash:
            raise JournalError("Data hash mismatch", {"index": position})
        if entry.signer != expected_signer:
            raise JournalError("Unexpected signer", {"index": position})

        entry_hash = entry.compute_hash()
        if not Ed25519KeyManager.verify_detached(
            bytes.fromhex(entry_hash), entry.signature, entry.signer
        ):
            raise JournalError("Invalid signature", {"index": position})
        previous_hash = entry_hash


def read_entries(path: Path) -> List[JournalEntry]:
    """Parse a JSONL journal file. Blank lines are skipped."""
    path = Path(path)
    entries: List[JournalEntry] = []
    try:
        with open(path, "r", encoding="utf-8") as f:
            for line_num, line in enumerate(f, 1):
                line = line.strip()
                if not line:
                    continue
                try:
                    raw = json.loads(line)
                except json.JSONDecodeError as exc:
                    raise JournalError(f"Invalid JSON at line {line_num}: {exc}") from exc
                entries.append(JournalEntry.from_dict(raw))
    except OSError as exc:
        raise JournalError(f"Failed to read journal {path}: {exc}") from exc
    return entries


class EventJournal:
    """
    Append-only journal signed by one Ed25519 key.

    In memory only when ``path`` is None. An existing file is loaded and
    verified against the key before anything is appended.
    """

    def __init__(
        self,
        path:        Optional[Path] = None,
        key_manager: Optional[Ed25519KeyManager] = None,
    ):
        self.path        = Path(path) if path is not None else None
        self.key_manager = key_manager or Ed25519KeyManager.generate()
        self.entries: List[JournalEntry] = []
        self._lock = threading.Lock()

        if self.path is not None and self.path.exists():
            self.entries = read_entries(self.path)
            self.verify_or_raise()

    @property
    def head_hash(self) -> str:
        return self.entries[-1].compute_hash() if self.entries else GENESIS_HASH

    def append(self, event: str, data: Dict[str, Any]) -> JournalEntry:
        """Sign and append one entry. Safe to call from several threads."""
        return self.append_many([(event, data)])[0]

    def append_many(self, events: List[Tuple[str, Dict[str, Any]]]) -> List[JournalEntry]:
        """
        Sign and append several entries as one unit.

        Either every entry reaches the file and the chain, or none does.
        """
        with self._lock:
            batch: List[JournalEntry] = []
            for event, data in events:
                previous = batch[-1].compute_hash() if batch else self.head_hash
                unsigned = JournalEntry(
                    index=         len(self.entries) + len(batch),
                    previous_hash= previous,
                    timestamp=     ledger_timestamp(),
                    event=         event,
                    data=          data,
                    data_hash=     canonical_hash(data),
                    signer=        self.key_manager.public_key_hex,
                )
                signature = self.key_manager.sign(bytes.fromhex(unsigned.compute_hash()))
                batch.append(JournalEntry(**dict(unsigned.to_dict(), signature=signature)))

            if self.path is not None:
                self._write_entries(batch)
            self.entries.extend(batch)
        for entry in batch:
            logger.debug("journal append index=%d event=%s", entry.index, entry.event)
        return batch

    def events(self, event: str) -> List[JournalEntry]:
        return [e for e in self.entries if e.event == event]

    def verify_or_raise(self) -> None:
        verify_entries(self.entries, self.key_manager.public_key_hex)

    def _write_entries(self, entries: List[JournalEntry]) -> None:
        try:
            text = "".join(
                json.dumps(e.to_dict(), ensure_ascii=False, sort_keys=True) + "\n"
                for e in entries
            )
            self.path.parent.mkdir(parents=True, exist_ok=True)
            with open(self.path, "a", encoding="utf-8") as f:
                start = f.tell()
                try:
                    f.write(text)
                    f.flush()
                    os.fsync(f.fileno())
                except OSError:
                    f.truncate(start)
                    raise
        except (OSError, TypeError, ValueError) as exc:
            raise JournalError(f"Failed to write journal entries: {exc}") from exc

    def __len__(self) -> int:
        return len(self.entries)
