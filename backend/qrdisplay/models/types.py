from __future__ import annotations

import enum

from ..extensions import db


class StrEnum(str, enum.Enum):
    """Closed status/type values persisted by their string value."""

    def __str__(self) -> str:
        return self.value


def enum_column_type(enum_cls: type[StrEnum]) -> db.Enum:
    """
    Non-native Enum column storing member values ("pending", not "PENDING").

    validate_strings rejects any raw string outside the enum at flush time.
    """
    return db.Enum(
        enum_cls,
        native_enum=False,
        create_constraint=False,
        length=32,
        values_callable=lambda members: [m.value for m in members],
        validate_strings=True,
    )
