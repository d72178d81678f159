"""Collection names, user info keys and the record types kept in the local store."""

from datetime import datetime
from enum import Enum
from typing import Annotated, Any

from pydantic import BaseModel, BeforeValidator, model_validator

from build_monitor.db.coercion import optional_str, require_identifier, strict_bool, timestamp_or_none

# Collection names used by store queries
USER_INFO = "user_info"
WEBSITES = "websites"
BUILDS = "builds"
ALL_COLLECTIONS = (USER_INFO, WEBSITES, BUILDS)


class UserInfoKey(str, Enum):
    ACCESS_TOKEN = "access_token"
    REFRESH_IN_PROGRESS = "refresh_in_progress"
    LAST_REFRESH = "last_refresh"
    WANTS_NOTIFICATIONS = "wants_notifications"


class ValueType(str, Enum):
    STRING = "string"
    BOOLEAN = "boolean"
    TIMESTAMP = "timestamp"


# Declared value type for each user info key
USER_INFO_TYPES: dict[UserInfoKey, ValueType] = {
    UserInfoKey.ACCESS_TOKEN: ValueType.STRING,
    UserInfoKey.REFRESH_IN_PROGRESS: ValueType.BOOLEAN,
    UserInfoKey.LAST_REFRESH: ValueType.TIMESTAMP,
    UserInfoKey.WANTS_NOTIFICATIONS: ValueType.BOOLEAN,
}


def coerce_user_info_value(key: UserInfoKey, value: Any) -> Any:
    value_type = USER_INFO_TYPES[key]
    if value_type is ValueType.BOOLEAN:
        return bool(value)
    if value_type is ValueType.TIMESTAMP:
        return timestamp_or_none(value)
    if value is None:
        return None
    return str(value)


Identifier = Annotated[str, BeforeValidator(require_identifier)]
OptionalText = Annotated[str | None, BeforeValidator(optional_str)]
Flag = Annotated[bool, BeforeValidator(strict_bool)]
Timestamp = Annotated[datetime | None, BeforeValidator(timestamp_or_none)]


class UserInfoEntry(BaseModel):
    key: UserInfoKey
    value: bool | datetime | str | None = None

    @model_validator(mode="before")
    @classmethod
    def _coerce_value(cls, data: Any) -> Any:
        if isinstance(data, dict) and "key" in data:
            try:
                key = UserInfoKey(data["key"])
            except ValueError:
                return data  # rejected by field validation
            return {**data, "key": key, "value": coerce_user_info_value(key, data.get("value"))}
        return data


class Website(BaseModel):
    site_id: Identifier
    name: OptionalText = None
    url: OptionalText = None
    last_update: Timestamp = None


class Build(BaseModel):
    build_id: Identifier
    site_id: Identifier
    deploy_id: OptionalText = None
    is_done: Flag = False
    has_failed: Flag = False
    considered_for_alert: Flag = False
    created_at: Timestamp = None
