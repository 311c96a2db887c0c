"""Base model and enum for fuelquota records.

Every record model inherits from :class:`QuotaBaseModel` which provides:

* ``alias_generator=to_camel`` so camelCase registry keys map
  automatically to snake_case fields.
* ``frozen=True``: records are replaced, never mutated in place, so a
  snapshot handed to a caller can never change under it.

String enums inherit from :class:`QuotaEnum` which matches values
case-insensitively and treats spaces and hyphens as underscores
(``"Three Wheeler"`` -> ``three_wheeler``).
"""

from __future__ import annotations

import enum
import math
from typing import Any

from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel


def safe_float(value: Any) -> float | None:
    if value is None or value == "" or value == "--":
        return None
    try:
        result = float(value)
    except (TypeError, ValueError):
        return None
    if math.isnan(result):
        return None
    return result


def normalize_key(value: str) -> str:
    return value.strip().lower().replace("-", "_").replace(" ", "_")


class QuotaEnum(enum.StrEnum):
    """Base for string enums parsed from external records.

    Values without a mapped member raise ``ValueError`` as usual;
    subclasses extend ``_missing_`` to map them to a fallback member.
    """

    @classmethod
    def _missing_(cls, value: object) -> QuotaEnum | None:
        if isinstance(value, str):
            key = normalize_key(value)
            for member in cls:
                if member.value == key:
                    return member
        return None


class QuotaBaseModel(BaseModel):
    """Base for fuelquota records."""

    model_config = ConfigDict(
        frozen=True,
        extra="ignore",
        populate_by_name=True,
        alias_generator=to_camel,
    )
