"""Match free-text agent names from uploaded reports against the roster."""

import re
from dataclasses import dataclass, field

from rapidfuzz.distance import Levenshtein

from qmdash.models import Agent

# Edit distance beyond which two names are not considered the same person.
MAX_DISTANCE = 2
MIN_FUZZY_CONFIDENCE = 70
MAX_SUGGESTIONS = 3

NICKNAMES: dict[str, list[str]] = {
    "michael": ["mike", "mick", "mikey"],
    "robert": ["rob", "bob", "bobby", "robbie"],
    "william": ["will", "bill", "billy", "willie"],
    "richard": ["rick", "dick", "rich", "richie"],
    "james": ["jim", "jimmy", "jamie"],
    "jennifer": ["jen", "jenny", "jenn"],
    "elizabeth": ["liz", "beth", "betty", "eliza"],
    "thomas": ["tom", "tommy"],
    "christopher": ["chris"],
    "daniel": ["dan", "danny"],
    "matthew": ["matt", "matty"],
    "anthony": ["tony"],
    "joseph": ["joe", "joey"],
    "samuel": ["sam", "sammy"],
    "benjamin": ["ben", "benny"],
    "alexander": ["alex"],
    "nicholas": ["nick"],
}

_NICKNAME_GROUPS = [{formal, *nicks} for formal, nicks in NICKNAMES.items()]

_NON_LETTERS = re.compile(r"[^a-z\s]")
_WHITESPACE = re.compile(r"\s+")


@dataclass
class NameMatch:
    matched: bool
    confidence: int
    agent_id: int | None = None
    suggestions: list[Agent] = field(default_factory=list)


def normalize_name(name: str) -> str:
    name = _NON_LETTERS.sub("", name.lower().strip())
    return _WHITESPACE.sub(" ", name).strip()


def reverse_name_format(name: str) -> str:
    """Turn "Last, First" into "First Last"; other names are returned unchanged."""
    if "," not in name:
        return name
    last, _, first = name.partition(",")
    return f"{first.strip()} {last.strip()}"


def _first_last(name: str) -> tuple[str, str]:
    parts = name.split()
    if not parts:
        return "", ""
    return parts[0], parts[-1]


def are_nickname_variants(a: str, b: str) -> bool:
    a, b = a.lower(), b.lower()
    return any(a in group and b in group for group in _NICKNAME_GROUPS)


def match_agent_name(name: str, agents: list[Agent]) -> NameMatch:
    normalized = normalize_name(name)
    reversed_ = normalize_name(reverse_name_format(name))

    for agent in agents:
        agent_norm = normalize_name(agent.name)
        if agent_norm in (normalized, reversed_):
            return NameMatch(matched=True, agent_id=agent.id, confidence=100)

    candidates: list[tuple[int, Agent]] = []
    for agent in agents:
        agent_norm = normalize_name(agent.name)
        distance = min(
            Levenshtein.distance(normalized, agent_norm),
            Levenshtein.distance(reversed_, agent_norm),
        )
        if distance <= MAX_DISTANCE:
            candidates.append((distance, agent))
    candidates.sort(key=lambda c: c[0])

    in_first, in_last = _first_last(reverse_name_format(name))
    for agent in agents:
        ag_first, ag_last = _first_last(agent.name)
        if are_nickname_variants(in_first, ag_first) and normalize_name(in_last) == normalize_name(ag_last):
            return NameMatch(matched=True, agent_id=agent.id, confidence=95)

    if not candidates:
        return NameMatch(matched=False, confidence=0)

    distance, best = candidates[0]
    confidence = max(0, 100 - distance * 25)
    if confidence >= MIN_FUZZY_CONFIDENCE:
        return NameMatch(matched=True, agent_id=best.id, confidence=confidence)
    return NameMatch(
        matched=False,
        confidence=confidence,
        suggestions=[a for _, a in candidates[:MAX_SUGGESTIONS]],
    )


def batch_match_agent_names(names: list[str], agents: list[Agent]) -> dict[str, NameMatch]:
    return {n: match_agent_name(n, agents) for n in names}
