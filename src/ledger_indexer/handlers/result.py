from __future__ import annotations

import uuid
from dataclasses import dataclass


@dataclass(frozen=True)
class WriteResult:
    """Outcome of one committed handler write.

    ``created`` is True only when the write inserted the entity's row, so
    follow-up side effects fire once per entity.
    """

    created: bool
    row_id: uuid.UUID | None = None
    creator_id: uuid.UUID | None = None
