# docuchat/services/file_status.py

from typing import Dict, FrozenSet

from sqlalchemy import update
from sqlalchemy.orm import Session

from docuchat.models import File, FileStatus
from docuchat.utils.logging import logger

# PENDING -> PROCESSING -> {DONE | ERROR}. Rewriting the same state is allowed
# so that redelivered jobs stay idempotent; nothing leaves DONE or ERROR.
TRANSITIONS: Dict[FileStatus, FrozenSet[FileStatus]] = {
    FileStatus.PENDING: frozenset({FileStatus.PROCESSING, FileStatus.ERROR}),
    FileStatus.PROCESSING: frozenset(
        {FileStatus.PROCESSING, FileStatus.DONE, FileStatus.ERROR}
    ),
    FileStatus.DONE: frozenset({FileStatus.DONE}),
    FileStatus.ERROR: frozenset({FileStatus.ERROR}),
}


def can_transition(current: FileStatus, target: FileStatus) -> bool:
    return FileStatus(target) in TRANSITIONS[FileStatus(current)]


def allowed_sources(target: FileStatus) -> FrozenSet[FileStatus]:
    """All states from which ``target`` may be written."""
    target = FileStatus(target)
    return frozenset(src for src in TRANSITIONS if can_transition(src, target))


def set_file_status(db: Session, file_id: str, target: FileStatus) -> bool:
    """
    Conditionally move a file to ``target`` and commit.

    The WHERE clause only matches rows whose current status may legally move
    to ``target``, so a concurrent writer can never regress a terminal state.
    Returns False when the row is missing or the transition is not allowed.
    """
    target = FileStatus(target)
    sources = sorted(allowed_sources(target), key=lambda s: s.value)
    result = db.execute(
        update(File)
        .where(File.id == file_id, File.status.in_(sources))
        .values(status=target)
        .execution_options(synchronize_session=False)
    )
    db.commit()

    changed = result.rowcount == 1
    if changed:
        logger.info(f"File {file_id} status -> {target.value}")
    else:
        logger.warning(f"File {file_id} status not changed to {target.value} (missing or terminal)")
    return changed
