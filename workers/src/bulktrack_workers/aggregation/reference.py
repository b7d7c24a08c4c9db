"""Join exercises to their muscles and tension factors."""

import logging
from collections import defaultdict
from collections.abc import Iterable

from ..models import ExerciseMuscle, Muscle
from ..ports import ReferenceReader

logger = logging.getLogger(__name__)

ExerciseMuscleMap = dict[str, list[tuple[ExerciseMuscle, Muscle]]]


async def load_exercise_muscles(
    reference: ReferenceReader, exercise_ids: Iterable[str]
) -> ExerciseMuscleMap:
    """exercise_id → [(mapping, muscle)], ordered by muscle_id.

    Mappings whose muscle is missing from the reference data are dropped,
    the same as an inner join on muscles.
    """
    ids = sorted(set(exercise_ids))
    if not ids:
        return {}

    mappings = await reference.list_exercise_muscles(ids)
    muscles = await reference.list_muscles({m.muscle_id for m in mappings})

    joined: ExerciseMuscleMap = defaultdict(list)
    for mapping in mappings:
        muscle = muscles.get(mapping.muscle_id)
        if muscle is None:
            logger.warning(
                "Exercise %s maps to unknown muscle %s, skipping",
                mapping.exercise_id, mapping.muscle_id,
            )
            continue
        joined[mapping.exercise_id].append((mapping, muscle))

    for pairs in joined.values():
        pairs.sort(key=lambda pair: pair[0].muscle_id)
    return dict(joined)
