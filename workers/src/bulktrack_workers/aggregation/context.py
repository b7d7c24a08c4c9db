from dataclasses import dataclass, field

from ..locks import ScopeLocks
from ..ports import ReferenceReader, RollupStore, SetReader


@dataclass
class RollupContext:
    """Collaborators one rebuild reads from and writes to."""

    sets: SetReader
    reference: ReferenceReader
    rollups: RollupStore
    locks: ScopeLocks = field(default_factory=ScopeLocks)
