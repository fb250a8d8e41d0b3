"""Shared field types and helpers for domain models."""

import json
from datetime import UTC, datetime
from typing import Annotated, Any, TypeVar

import pydantic
from pydantic import AfterValidator

from src.core.errors import ValidationError


def ensure_utc(value: datetime) -> datetime:
    """Read naive datetimes as UTC so every timestamp is timezone aware."""
    if value.tzinfo is None:
        return value.replace(tzinfo=UTC)
    return value


UtcDatetime = Annotated[datetime, AfterValidator(ensure_utc)]

ModelT = TypeVar("ModelT", bound=pydantic.BaseModel)


def id_sort_key(record_id: str) -> tuple[int, int, str]:
    """Order ids numerically when they are numeric, lexically otherwise."""
    if record_id.isdigit():
        return (0, int(record_id), "")
    return (1, 0, record_id)


def decode_json_list(value: Any) -> Any:
    """Accept JSON-encoded lists as stored by SQLite TEXT columns."""
    if isinstance(value, str):
        return json.loads(value) if value else []
    if value is None:
        return []
    return value


def build_model(
    model_cls: type[ModelT],
    data: dict[str, Any],
    *,
    operation: str,
    entity_id: str | None = None,
) -> ModelT:
    """Validate ``data`` into ``model_cls``, translating failures to the engine's ValidationError."""
    try:
        return model_cls.model_validate(data)
    except pydantic.ValidationError as e:
        details = "; ".join(
            f"{'.'.join(str(part) for part in err['loc']) or 'input'}: {err['msg']}" for err in e.errors()
        )
        msg = f"Invalid {model_cls.__name__}: {details}"
        raise ValidationError(msg, entity_id=entity_id, operation=operation) from e
