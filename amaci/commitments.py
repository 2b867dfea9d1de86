"""
Append-only commitment log and nullifier registry.

These mirror what the on-chain collaborator persists between batches and
rounds. The coordinator must stay consistent with them: a batch whose current
commitment does not equal the last recorded new commitment is rejected.
"""

import logging
from collections import defaultdict
from dataclasses import dataclass
from typing import Dict, Iterable, List, Set

from .errors import CommitmentMismatchError

logger = logging.getLogger(__name__)

STATE = "state"
DEACTIVATE = "deactivate"
TALLY = "tally"


@dataclass(frozen=True)
class CommitmentEntry:
    kind: str
    index: int
    current: int
    new: int


class CommitmentLog:
    """Per-kind linear history of (current -> new) commitment transitions"""

    def __init__(self):
        self._entries: Dict[str, List[CommitmentEntry]] = defaultdict(list)

    def latest(self, kind: str) -> int:
        entries = self._entries.get(kind)
        return entries[-1].new if entries else 0

    def check(self, kind: str, current: int):
        expected = self.latest(kind)
        if current != expected:
            raise CommitmentMismatchError(
                f"{kind} batch starts from commitment {current}, "
                f"expected {expected}")

    def append(self, kind: str, current: int, new: int) -> CommitmentEntry:
        self.check(kind, current)
        entry = CommitmentEntry(kind=kind, index=len(self._entries[kind]), current=current, new=new)
        self._entries[kind].append(entry)
        logger.debug(f"Recorded {kind} commitment #{entry.index}: {new}")
        return entry

    def history(self, kind: str) -> List[CommitmentEntry]:
        return list(self._entries.get(kind, []))

    def __len__(self) -> int:
        return sum(len(v) for v in self._entries.values())


class NullifierSet:
    """Registry of spent nullifiers, injected into the deactivation pipeline"""

    def __init__(self, initial: Iterable[int] = ()):
        self._seen: Set[int] = set(initial)

    def __contains__(self, nullifier: int) -> bool:
        return nullifier in self._seen

    def add(self, nullifier: int) -> bool:
        """Record a nullifier; False if it was already spent"""
        if nullifier in self._seen:
            return False
        self._seen.add(nullifier)
        return True

    def __len__(self) -> int:
        return len(self._seen)

    def __iter__(self):
        return iter(self._seen)
