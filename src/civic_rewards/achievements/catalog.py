"""Achievement catalog: immutable, versioned, loaded once at startup.

Definitions are plain data. ``load_catalog`` validates them and freezes the
result into an ``AchievementCatalog`` that the rule engine receives
explicitly; nothing in the engine reads a module-level catalog.
"""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from typing import Any

from civic_rewards.errors import CatalogError

logger = logging.getLogger(__name__)


class MetricKind(str, Enum):
    COUNT = "count"  # cumulative, read from the user's counters
    THRESHOLD = "threshold"  # single event, read from the action payload
    FLAG = "flag"  # one-shot


class Metric(str, Enum):
    QUIZ_COUNT = "quiz_count"
    QUIZ_SCORE = "quiz_score"
    CHECKIN_COUNT = "checkin_count"
    AI_CONVERSATION_COUNT = "ai_conversation_count"
    REGISTRATION = "registration"
    LOGIN = "login"

    @property
    def kind(self) -> MetricKind:
        return METRIC_KINDS[self]


class ActionType(str, Enum):
    QUIZ_COMPLETED = "quiz_completed"
    CHECKIN_CREATED = "checkin_created"
    AI_CONVERSATION = "ai_conversation"
    USER_REGISTERED = "user_registered"
    USER_LOGIN = "user_login"


METRIC_KINDS: dict[Metric, MetricKind] = {
    Metric.QUIZ_COUNT: MetricKind.COUNT,
    Metric.QUIZ_SCORE: MetricKind.THRESHOLD,
    Metric.CHECKIN_COUNT: MetricKind.COUNT,
    Metric.AI_CONVERSATION_COUNT: MetricKind.COUNT,
    Metric.REGISTRATION: MetricKind.FLAG,
    Metric.LOGIN: MetricKind.FLAG,
}

# Metrics an action can move. Every ActionType must appear here.
ACTION_METRICS: dict[ActionType, frozenset[Metric]] = {
    ActionType.QUIZ_COMPLETED: frozenset({Metric.QUIZ_COUNT, Metric.QUIZ_SCORE}),
    ActionType.CHECKIN_CREATED: frozenset({Metric.CHECKIN_COUNT}),
    ActionType.AI_CONVERSATION: frozenset({Metric.AI_CONVERSATION_COUNT}),
    ActionType.USER_REGISTERED: frozenset({Metric.REGISTRATION}),
    ActionType.USER_LOGIN: frozenset({Metric.LOGIN}),
}

# Flag metrics are satisfied by their own action even before the flag is stored
FLAG_ACTIONS: dict[Metric, ActionType] = {
    Metric.REGISTRATION: ActionType.USER_REGISTERED,
    Metric.LOGIN: ActionType.USER_LOGIN,
}


def _check_tables() -> None:
    missing_actions = set(ActionType) - set(ACTION_METRICS)
    if missing_actions:
        raise RuntimeError(f"ACTION_METRICS has no entry for {sorted(a.value for a in missing_actions)}")
    missing_kinds = set(Metric) - set(METRIC_KINDS)
    if missing_kinds:
        raise RuntimeError(f"METRIC_KINDS has no entry for {sorted(m.value for m in missing_kinds)}")
    unflagged = {m for m in Metric if METRIC_KINDS[m] is MetricKind.FLAG} - set(FLAG_ACTIONS)
    if unflagged:
        raise RuntimeError(f"FLAG_ACTIONS has no entry for {sorted(m.value for m in unflagged)}")


_check_tables()


@dataclass(frozen=True)
class Requirement:
    metric: Metric
    target: int


@dataclass(frozen=True)
class AchievementDefinition:
    id: str
    name: str
    description: str
    category: str
    icon: str
    reward_points: int
    rarity: str
    requirements: tuple[Requirement, ...]

    @property
    def metrics(self) -> frozenset[Metric]:
        return frozenset(r.metric for r in self.requirements)


@dataclass(frozen=True)
class AchievementCatalog:
    version: str
    definitions: tuple[AchievementDefinition, ...]

    def __len__(self) -> int:
        return len(self.definitions)

    def get(self, achievement_id: str) -> AchievementDefinition | None:
        for definition in self.definitions:
            if definition.id == achievement_id:
                return definition
        return None

    def candidates_for(self, action: ActionType) -> list[AchievementDefinition]:
        """Definitions with at least one requirement the action can move."""
        affected = ACTION_METRICS[action]
        return [d for d in self.definitions if d.metrics & affected]


DEFAULT_CATALOG_VERSION = "2025.1"

ACHIEVEMENT_DATA: list[dict[str, Any]] = [
    # --- Learning ---
    {"id": "first_quiz", "name": "First Quiz", "description": "Complete your first quiz",
     "category": "learning", "icon": "book-open", "reward_points": 20, "rarity": "common",
     "requirements": [{"metric": "quiz_count", "target": 1}]},
    {"id": "perfect_score", "name": "Perfect Score", "description": "Score 100% on a quiz",
     "category": "learning", "icon": "star", "reward_points": 50, "rarity": "rare",
     "requirements": [{"metric": "quiz_score", "target": 100}]},
    {"id": "expert_level", "name": "Expert Level", "description": "Score 90% or more on a quiz",
     "category": "learning", "icon": "award", "reward_points": 30, "rarity": "uncommon",
     "requirements": [{"metric": "quiz_score", "target": 90}]},
    {"id": "quiz_enthusiast", "name": "Quiz Enthusiast", "description": "Complete 5 quizzes",
     "category": "learning", "icon": "target", "reward_points": 40, "rarity": "uncommon",
     "requirements": [{"metric": "quiz_count", "target": 5}]},
    {"id": "constitution_scholar", "name": "Constitution Scholar", "description": "Complete 10 quizzes",
     "category": "learning", "icon": "graduation-cap", "reward_points": 60, "rarity": "epic",
     "requirements": [{"metric": "quiz_count", "target": 10}]},
    # --- Check-ins ---
    {"id": "first_checkin", "name": "First Check-in", "description": "Check in at your first event",
     "category": "checkin", "icon": "map-pin", "reward_points": 25, "rarity": "common",
     "requirements": [{"metric": "checkin_count", "target": 1}]},
    {"id": "active_participant", "name": "Active Participant", "description": "Check in at 10 events",
     "category": "checkin", "icon": "users", "reward_points": 100, "rarity": "uncommon",
     "requirements": [{"metric": "checkin_count", "target": 10}]},
    # --- AI ---
    {"id": "ai_conversationalist", "name": "AI Conversationalist", "description": "Hold 25 conversations with the assistant",
     "category": "ai", "icon": "message-circle", "reward_points": 75, "rarity": "uncommon",
     "requirements": [{"metric": "ai_conversation_count", "target": 25}]},
    # --- Special ---
    {"id": "welcome", "name": "Welcome", "description": "Join the platform",
     "category": "special", "icon": "heart", "reward_points": 50, "rarity": "common",
     "requirements": [{"metric": "registration", "target": 1}]},
    {"id": "first_login", "name": "First Login", "description": "Sign in for the first time",
     "category": "special", "icon": "log-in", "reward_points": 25, "rarity": "common",
     "requirements": [{"metric": "login", "target": 1}]},
]


def _parse_definition(raw: dict[str, Any]) -> AchievementDefinition:
    try:
        achievement_id = str(raw["id"])
        raw_requirements = raw.get("requirements") or []
        if not raw_requirements:
            raise CatalogError(f"Achievement {achievement_id!r} has no requirements")

        requirements = []
        for req in raw_requirements:
            try:
                metric = Metric(req["metric"])
            except ValueError as exc:
                raise CatalogError(f"Achievement {achievement_id!r} uses unknown metric {req['metric']!r}") from exc
            target = req["target"]
            if isinstance(target, bool) or not isinstance(target, int) or target <= 0:
                raise CatalogError(f"Achievement {achievement_id!r} has invalid target {target!r}")
            requirements.append(Requirement(metric=metric, target=target))

        reward_points = raw["reward_points"]
        if isinstance(reward_points, bool) or not isinstance(reward_points, int):
            raise CatalogError(f"Achievement {achievement_id!r} has non-integer reward_points")

        return AchievementDefinition(
            id=achievement_id,
            name=str(raw["name"]),
            description=str(raw.get("description", "")),
            category=str(raw["category"]),
            icon=str(raw.get("icon", "")),
            reward_points=reward_points,
            rarity=str(raw.get("rarity", "common")),
            requirements=tuple(requirements),
        )
    except KeyError as exc:
        raise CatalogError(f"Achievement definition missing field {exc.args[0]!r}: {raw!r}") from exc


def build_catalog(data: list[dict[str, Any]], version: str) -> AchievementCatalog:
    """Validate raw definitions and freeze them into a catalog."""
    definitions = tuple(_parse_definition(raw) for raw in data)
    seen: set[str] = set()
    for definition in definitions:
        if definition.id in seen:
            raise CatalogError(f"Duplicate achievement id {definition.id!r}")
        seen.add(definition.id)
    return AchievementCatalog(version=version, definitions=definitions)


def load_catalog(path: str | None = None) -> AchievementCatalog:
    """Load the catalog from a JSON file, or the built-in definitions.

    The file holds ``{"version": "...", "achievements": [...]}``.
    """
    if path is None:
        catalog = build_catalog(ACHIEVEMENT_DATA, DEFAULT_CATALOG_VERSION)
    else:
        document = json.loads(Path(path).read_text())
        catalog = build_catalog(document["achievements"], str(document["version"]))
    logger.info("Loaded achievement catalog %s (%d definitions)", catalog.version, len(catalog))
    return catalog
