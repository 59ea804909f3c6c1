import pytest

from factories import make_rule
from lessons.overrides import OverrideCommandHandler
from lessons.store import InMemoryScheduleStore


@pytest.fixture
def friday_rule():
    """Unbounded Friday series starting 2024-03-01."""
    return make_rule()


@pytest.fixture
def store(friday_rule):
    return InMemoryScheduleStore(rules=[friday_rule])


@pytest.fixture
def handler(store):
    return OverrideCommandHandler(store)
