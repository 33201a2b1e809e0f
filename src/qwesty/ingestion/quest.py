"""Quest records — upstream parsing and the ingest wire shape."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime

REWARD_CATEGORIES = ("orbs", "decor", "other")

# Upstream reward type codes; codes and in-game items collapse into "other".
_REWARD_TYPE_CATEGORY = {
    4: "orbs",
    3: "decor",
}

_CDN_BASE = "https://cdn.discordapp.com/"


@dataclass(frozen=True)
class QuestRecord:
    """One quest as observed in one region."""

    id: str
    region: str
    name: str
    game: str
    reward_category: str
    expires_at: str
    reward_name: str = "Unknown Reward"
    starts_at: str | None = None
    metadata: dict = field(default_factory=dict, compare=False, hash=False)

    def to_wire(self) -> dict:
        """Serialize for an ingest batch. Region travels on the batch, not the record."""
        data = {
            "id": self.id,
            "name": self.name,
            "game": self.game,
            "reward_category": self.reward_category,
            "reward_name": self.reward_name,
            "expires_at": self.expires_at,
            "metadata": dict(self.metadata),
        }
        if self.starts_at is not None:
            data["starts_at"] = self.starts_at
        return data


def reward_category_for(rewards: list[dict]) -> str:
    """Map the first upstream reward's type code to a reward category."""
    if not rewards:
        return "other"
    return _REWARD_TYPE_CATEGORY.get(rewards[0].get("type"), "other")


def _validate_timestamp(value: str, field_name: str) -> None:
    try:
        datetime.fromisoformat(value.replace("Z", "+00:00"))
    except (AttributeError, ValueError) as exc:
        raise ValueError(f"{field_name} '{value}' is not valid ISO 8601") from exc


def _object(value, field_name: str) -> dict:
    """Return ``value`` if it is a JSON object, {} if absent, else raise ValueError."""
    if value is None:
        return {}
    if not isinstance(value, dict):
        raise ValueError(f"{field_name} must be an object, got {type(value).__name__}")
    return value


def _string(value, field_name: str) -> str | None:
    if value is None or value == "":
        return None
    if not isinstance(value, str):
        raise ValueError(f"{field_name} must be a string, got {type(value).__name__}")
    return value


def _cdn_url(asset: str) -> str:
    return asset if asset.startswith("http") else f"{_CDN_BASE}{asset}"


def _parse_rewards(config: dict) -> list[dict]:
    rewards = _object(config.get("rewards_config"), "rewards_config").get("rewards")
    if rewards is None:
        return []
    if not isinstance(rewards, list) or not all(isinstance(r, dict) for r in rewards):
        raise ValueError("rewards_config.rewards must be a list of objects")
    return rewards


def _parse_tasks(config: dict) -> list[dict]:
    """Flatten ``task_config_v2.tasks`` into ``[{"type", "target"}]`` in upstream order."""
    tasks = _object(config.get("task_config_v2"), "task_config_v2").get("tasks")
    if tasks is None:
        return []
    if not isinstance(tasks, dict):
        raise ValueError("task_config_v2.tasks must be an object")
    parsed = []
    for key, task in tasks.items():
        task = _object(task, f"task_config_v2.tasks.{key}")
        target = task.get("target", 0)
        if isinstance(target, bool) or not isinstance(target, int):
            raise ValueError(f"task_config_v2.tasks.{key}.target must be an integer")
        parsed.append({"type": _string(task.get("type"), "task type") or key, "target": target})
    return parsed


def parse_upstream_quest(data: dict, region: str) -> QuestRecord:
    """Build a QuestRecord from one element of the upstream ``quests`` array.

    Raises ValueError if required fields are missing or any field has the
    wrong shape.
    """
    try:
        config = data["config"]
        quest_id = str(config["id"])
        messages = config["messages"]
        name = messages["quest_name"]
        game = messages["game_title"]
        expires_at = config["expires_at"]
    except (KeyError, TypeError) as exc:
        raise ValueError(f"Quest object is missing required field {exc}") from exc

    if not isinstance(config, dict) or not isinstance(messages, dict):
        raise ValueError("config and config.messages must be objects")
    if not isinstance(name, str) or not isinstance(game, str):
        raise ValueError("quest_name and game_title must be strings")
    _validate_timestamp(expires_at, "expires_at")

    rewards = _parse_rewards(config)
    first_reward = rewards[0] if rewards else {}
    reward_name = _string(_object(first_reward.get("messages"), "reward messages").get("name"),
                          "reward name") or "Unknown Reward"

    metadata: dict = {}
    hero = _string(_object(config.get("assets"), "assets").get("hero"), "assets.hero")
    if hero:
        metadata["hero_url"] = _cdn_url(hero)
    application = _object(config.get("application"), "application")
    application_name = _string(application.get("name"), "application.name")
    application_link = _string(application.get("link"), "application.link")
    if application_name:
        metadata["application_name"] = application_name
    if application_link:
        metadata["application_link"] = application_link
    publisher = _string(messages.get("game_publisher"), "game_publisher")
    if publisher:
        metadata["publisher"] = publisher
    if first_reward.get("orb_quantity") is not None:
        metadata["orb_quantity"] = first_reward["orb_quantity"]
    reward_asset = _string(first_reward.get("asset"), "reward asset")
    if reward_asset:
        # Video assets under quests/ render as a still with ?format=png
        if reward_asset.startswith("quests/"):
            metadata["reward_media_url"] = f"{_CDN_BASE}{reward_asset}?format=png"
        else:
            metadata["reward_media_url"] = reward_asset
    tasks = _parse_tasks(config)
    if tasks:
        metadata["tasks"] = tasks
    cta_label = _string(_object(config.get("cta_config"), "cta_config").get("button_label"),
                        "cta_config.button_label")
    if cta_label:
        metadata["cta_label"] = cta_label

    return QuestRecord(
        id=quest_id,
        region=region,
        name=name,
        game=game,
        reward_category=reward_category_for(rewards),
        reward_name=reward_name,
        expires_at=expires_at,
        starts_at=_string(config.get("starts_at"), "starts_at"),
        metadata=metadata,
    )
