"""Webhook embed rendering for quest notifications."""

from __future__ import annotations

from datetime import datetime, timezone

from qwesty.ingestion.quest import REWARD_CATEGORIES, QuestRecord

CATEGORY_COLOR = {
    "orbs": 0x5865F2,
    "decor": 0xEB459E,
    "other": 0x57F287,
}

CATEGORY_GLYPH = {
    "orbs": "\U0001F52E",
    "decor": "\U0001F3A8",
    "other": "\U0001F381",
}

CATEGORY_DISPLAY = {
    "orbs": "Orbs",
    "decor": "Decoration",
    "other": "Other",
}

QUEST_URL = "https://discord.com/quests/{}"

# Task type -> (platform label, task description). Unknown types show no platform.
TASK_LABELS = {
    "PLAY_ON_DESKTOP": ("\U0001F5A5\uFE0F PC", "Play on desktop"),
    "PLAY_ON_XBOX": ("\U0001F3AE Xbox", "Play on Xbox"),
    "PLAY_ON_PLAYSTATION": ("\U0001F3AE PlayStation", "Play on PlayStation"),
    "WATCH_VIDEO": ("\U0001F4FA Desktop", "Watch video"),
    "WATCH_VIDEO_ON_MOBILE": ("\U0001F4F1 Mobile", "Watch video on mobile"),
}


def _parse_iso(value: str) -> datetime | None:
    try:
        parsed = datetime.fromisoformat(value.replace("Z", "+00:00"))
    except (AttributeError, ValueError):
        return None
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


def format_expiry(expires_at: str) -> str:
    """Render an ISO timestamp as ``YYYY-MM-DD HH:MM UTC (<t:unix:R>)``.

    Unparseable input is returned unchanged.
    """
    parsed = _parse_iso(expires_at)
    if parsed is None:
        return expires_at
    utc = parsed.astimezone(timezone.utc)
    return f"{utc.strftime('%Y-%m-%d %H:%M')} UTC (<t:{int(utc.timestamp())}:R>)"


def _task_list(metadata: dict) -> list[dict]:
    tasks = metadata.get("tasks")
    if not isinstance(tasks, list):
        return []
    return [t for t in tasks if isinstance(t, dict)]


def format_platforms(tasks: list[dict]) -> str:
    """Distinct platform labels in task order; "Cross Platform" when tasks are unknown."""
    if not tasks:
        return "Cross Platform"
    labels: list[str] = []
    for task in tasks:
        label = TASK_LABELS.get(task.get("type"), (None, None))[0]
        if label and label not in labels:
            labels.append(label)
    return ", ".join(labels) or "Cross Platform"


def format_tasks(tasks: list[dict]) -> str:
    """One ``- <task> (N minutes)`` line per task; targets are seconds, rounded up."""
    lines = []
    for task in tasks:
        task_type = str(task.get("type", ""))
        description = TASK_LABELS.get(task_type, (None, task_type))[1]
        target = task.get("target", 0)
        minutes = -(-target // 60) if isinstance(target, int) else 0
        unit = "minute" if minutes == 1 else "minutes"
        lines.append(f"- {description} ({minutes} {unit})")
    return "\n".join(lines)


def render_quest_embed(record: QuestRecord, *, username: str | None = None) -> dict:
    """Build the webhook JSON body for one quest."""
    category = record.reward_category if record.reward_category in REWARD_CATEGORIES else "other"
    glyph = CATEGORY_GLYPH[category]

    reward_value = f"{glyph} {CATEGORY_DISPLAY[category]}: {record.reward_name}"
    orb_quantity = record.metadata.get("orb_quantity")
    if orb_quantity is not None:
        reward_value += f" ({orb_quantity} orbs)"

    fields = [
        {"name": "Game", "value": record.game, "inline": True},
        {"name": "Reward", "value": reward_value, "inline": True},
        {"name": "Expires", "value": format_expiry(record.expires_at), "inline": False},
    ]
    tasks = _task_list(record.metadata)
    fields.append({"name": "Platforms", "value": format_platforms(tasks), "inline": True})
    if tasks:
        fields.append({"name": "Tasks", "value": format_tasks(tasks), "inline": False})
    if record.metadata.get("application_name") and record.metadata.get("application_link"):
        fields.append({
            "name": "Application",
            "value": f"[{record.metadata['application_name']}]({record.metadata['application_link']})",
            "inline": False,
        })

    embed: dict = {
        "title": f"{glyph} {record.name}",
        "url": QUEST_URL.format(record.id),
        "color": CATEGORY_COLOR[category],
        "fields": fields,
        "footer": {"text": f"Quest ID: {record.id} | {record.region}"},
    }
    if record.metadata.get("hero_url"):
        embed["image"] = {"url": record.metadata["hero_url"]}
    if record.metadata.get("reward_media_url"):
        embed["thumbnail"] = {"url": record.metadata["reward_media_url"]}

    payload: dict = {"embeds": [embed]}
    if username:
        payload["username"] = username
    return payload
