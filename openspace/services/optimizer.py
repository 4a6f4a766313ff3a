"""Topic scheduling optimiser: partition, rank, place, then repair conflicts."""

from __future__ import annotations

from typing import Optional

from openspace.domain.constraints import (
    OptimiseTopicsConfig,
    validate_optimise_config,
    validate_session_structure,
)
from openspace.domain.models import OptimizationResult, Session, TopicUpdated
from openspace.services.conflict_rectifier import rectify_conflicts
from openspace.services.greedy_assigner import assign_greedily
from openspace.services.schedule_grid import AssignmentBoard
from openspace.services.topic_partitioner import partition_topics, rank_by_demand
from openspace.utils.logger import get_logger


logger = get_logger(__name__)


def optimise_session(
    session: Session,
    config: Optional[OptimiseTopicsConfig] = None,
) -> OptimizationResult:
    """Return a re-scheduled copy of `session` and one event per topic change.

    The input session is never modified, so an `EntityNotFoundError` raised by
    partitioning leaves the caller with exactly what it passed in. Sessions with
    duplicate room, slot or topic ids are rejected with `ValueError` up front.
    """
    config = config or OptimiseTopicsConfig()
    validate_optimise_config(config)
    validate_session_structure(session)

    board = AssignmentBoard(session)
    partition = partition_topics(board)

    assigned_outcome = assign_greedily(board, rank_by_demand(partition.assigned, board))
    placed = len(assigned_outcome.placed)
    unassigned_ids = list(assigned_outcome.unassigned)
    if config.optimise_unassigned_topics:
        unassigned_outcome = assign_greedily(board, rank_by_demand(partition.unassigned, board))
        placed += len(unassigned_outcome.placed)
        unassigned_ids.extend(unassigned_outcome.unassigned)
    else:
        unassigned_ids.extend(topic.topic_id for topic in partition.unassigned)

    unresolved: list[tuple[str, str]] = []
    relocated = swapped = 0
    if config.rectify_conflicts:
        rectified = rectify_conflicts(board)
        relocated = len(rectified.relocated)
        swapped = len(rectified.swapped)
        unresolved = [(conflict.owner, conflict.slot_id) for conflict in rectified.unresolved]

    events = [TopicUpdated(session_id=session.session_id, topic=topic) for topic in board.mutations]
    logger.info(
        (
            "Session optimised | session_id=%s | topics=%s | placed=%s | retained=%s | "
            "relocated=%s | swapped=%s | unassigned=%s | unresolved_conflicts=%s | events=%s"
        ),
        session.session_id,
        len(session.topics),
        placed,
        len(assigned_outcome.retained),
        relocated,
        swapped,
        len(unassigned_ids),
        len(unresolved),
        len(events),
    )
    return OptimizationResult(
        session=board.to_session(),
        events=events,
        unassigned_topic_ids=unassigned_ids,
        unresolved_conflicts=unresolved,
    )
