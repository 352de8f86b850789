"""Per-user notification preferences.

Preferences live on the user row as JSON:

    {"notifications": {"deal_won": false, "emailEnabled": true, ...}, ...}

Every notification type is ON unless its key is explicitly false. Older
clients wrote grouped camelCase toggles (dealUpdates, taskReminders, ...);
those are honoured as aliases of the types they cover.
"""

from app.db.enums import NotificationType

# Legacy grouped toggle -> notification types it controls
LEGACY_TOGGLES: dict[str, tuple[NotificationType, ...]] = {
    "taskReminders": (NotificationType.TASK_REMINDER,),
    "taskAssigned": (NotificationType.TASK_ASSIGNED,),
    "taskCompleted": (NotificationType.TASK_COMPLETED,),
    "newContacts": (NotificationType.NEW_CONTACT,),
    "contactAssigned": (NotificationType.CONTACT_ASSIGNED,),
    "dealUpdates": (
        NotificationType.DEAL_WON,
        NotificationType.DEAL_LOST,
        NotificationType.DEAL_STAGE_CHANGED,
    ),
    "dealAssigned": (NotificationType.DEAL_ASSIGNED,),
    "mentions": (NotificationType.MENTION,),
    "system": (NotificationType.SYSTEM,),
}


def _type_value(notification_type: NotificationType | str) -> str:
    return getattr(notification_type, "value", notification_type)


def notification_toggles(preferences: dict | None) -> dict:
    """The notifications sub-map of a preferences blob; {} when absent or malformed."""
    if not isinstance(preferences, dict):
        return {}
    toggles = preferences.get("notifications")
    return toggles if isinstance(toggles, dict) else {}


def is_type_enabled(preferences: dict | None, notification_type: NotificationType | str) -> bool:
    """
    Default-on check. Only an explicit False disables a type. A key for the
    type itself wins; legacy aliases covering it apply only when it is unset.
    """
    toggles = notification_toggles(preferences)
    type_value = _type_value(notification_type)
    if type_value in toggles:
        return toggles[type_value] is not False
    for alias, types in LEGACY_TOGGLES.items():
        if toggles.get(alias) is False and type_value in {t.value for t in types}:
            return False
    return True


def merge_preferences(current: dict | None, updates: dict) -> dict:
    """
    Merge a preferences update into the stored blob.

    The notifications sub-map is merged key by key; other top-level keys
    are replaced. Returns a new dict (JSON columns need reassignment to
    be flagged dirty).
    """
    merged = dict(current) if isinstance(current, dict) else {}
    for key, value in updates.items():
        if key == "notifications" and isinstance(value, dict):
            toggles = dict(notification_toggles(merged))
            toggles.update(value)
            merged["notifications"] = toggles
        else:
            merged[key] = value
    return merged

