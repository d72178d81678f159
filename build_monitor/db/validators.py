"""Record validation run before every write to the local store."""

from typing import Any

from pydantic import BaseModel, ValidationError

from build_monitor.db.models import BUILDS, USER_INFO, WEBSITES, Build, UserInfoEntry, Website
from build_monitor.errors import RecordValidationError

RECORD_TYPES: dict[str, type[BaseModel]] = {
    USER_INFO: UserInfoEntry,
    WEBSITES: Website,
    BUILDS: Build,
}


def record_type(collection: str) -> type[BaseModel]:
    try:
        return RECORD_TYPES[collection]
    except KeyError:
        raise ValueError(f"Unknown collection: {collection}") from None


def validate(collection: str, data: BaseModel | dict[str, Any]) -> BaseModel:
    """Return a clean record for ``collection`` or raise RecordValidationError.

    Model instances are re-validated as well, since fields may have been
    assigned after construction.
    """
    model = record_type(collection)
    if isinstance(data, BaseModel):
        data = data.model_dump()
    try:
        return model.model_validate(data)
    except ValidationError as exc:
        messages = "; ".join(
            f"{'.'.join(str(part) for part in e['loc']) or 'record'}: {e['msg']}" for e in exc.errors()
        )
        raise RecordValidationError(collection, messages) from exc
