import pytest

from bulktrack_workers.aggregation import RollupContext
from bulktrack_workers.models import ExerciseMuscle, Muscle

from fakes import FakeReferenceReader, FakeRollupStore, FakeSetReader

# bench → chest (600) + triceps (400); squat → glutes (300) + quads (700)
CHEST, TRICEPS, GLUTES, QUADS = 1, 2, 3, 4


@pytest.fixture
def reference() -> FakeReferenceReader:
    return FakeReferenceReader(
        mappings=[
            ExerciseMuscle("bench", CHEST, 600),
            ExerciseMuscle("bench", TRICEPS, 400),
            ExerciseMuscle("squat", GLUTES, 300),
            ExerciseMuscle("squat", QUADS, 700),
        ],
        muscles=[
            Muscle(CHEST, tension_factor=1.0, muscle_group_id=1),
            Muscle(TRICEPS, tension_factor=1.0, muscle_group_id=4),
            Muscle(GLUTES, tension_factor=1.0, muscle_group_id=6),
            Muscle(QUADS, tension_factor=1.0, muscle_group_id=7),
        ],
        group_names={1: "Chest", 4: "Arms", 6: "Hip & Glutes", 7: "Legs"},
        translations={(1, "ja"): "胸", (7, "ja"): "脚"},
    )


@pytest.fixture
def sets() -> FakeSetReader:
    return FakeSetReader()


@pytest.fixture
def rollups(reference: FakeReferenceReader) -> FakeRollupStore:
    return FakeRollupStore(reference)


@pytest.fixture
def ctx(sets: FakeSetReader, reference: FakeReferenceReader, rollups: FakeRollupStore) -> RollupContext:
    return RollupContext(sets=sets, reference=reference, rollups=rollups)
