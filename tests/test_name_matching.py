import pytest

from qmdash.models import Agent
from qmdash.name_matching import (
    are_nickname_variants,
    batch_match_agent_names,
    match_agent_name,
    normalize_name,
    reverse_name_format,
)

AGENTS = [
    Agent(id=1, name="Alice Smith"),
    Agent(id=2, name="Robert Jones"),
    Agent(id=3, name="Priya Patel"),
    Agent(id=4, name="Thomas O'Neill"),
]


def test_normalize_name():
    assert normalize_name("  O'Neill,   Thomas ") == "oneill thomas"


def test_reverse_name_format():
    assert reverse_name_format("Smith, Alice") == "Alice Smith"
    assert reverse_name_format("Alice Smith") == "Alice Smith"


@pytest.mark.parametrize("name", ["alice smith", "ALICE SMITH ", "Smith, Alice"])
def test_exact_match(name):
    m = match_agent_name(name, AGENTS)
    assert m.matched and m.agent_id == 1 and m.confidence == 100


def test_exact_match_ignores_punctuation():
    m = match_agent_name("Thomas ONeill", AGENTS)
    assert m.agent_id == 4 and m.confidence == 100


def test_nickname_match():
    m = match_agent_name("Bob Jones", AGENTS)
    assert m.matched and m.agent_id == 2 and m.confidence == 95


def test_nickname_match_reversed():
    m = match_agent_name("Jones, Rob", AGENTS)
    assert m.matched and m.agent_id == 2


def test_fuzzy_match_one_typo():
    m = match_agent_name("Priya Patell", AGENTS)
    assert m.matched and m.agent_id == 3 and m.confidence == 75


def test_two_typos_only_suggest():
    m = match_agent_name("Prya Patell", AGENTS)
    assert not m.matched
    assert m.confidence == 50
    assert [a.id for a in m.suggestions] == [3]


def test_no_match():
    m = match_agent_name("Zed Quinn", AGENTS)
    assert not m.matched
    assert m.confidence == 0
    assert m.suggestions == []


def test_nickname_variants():
    assert are_nickname_variants("Bill", "william")
    assert are_nickname_variants("mike", "Mikey")
    assert not are_nickname_variants("mike", "matt")


def test_batch_match():
    results = batch_match_agent_names(["Alice Smith", "Nobody Here"], AGENTS)
    assert results["Alice Smith"].agent_id == 1
    assert not results["Nobody Here"].matched
