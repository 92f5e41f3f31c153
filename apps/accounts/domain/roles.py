from __future__ import annotations

from enum import StrEnum


class Role(StrEnum):
    BUYER = "BUYER"
    SUPPLIER = "SUPPLIER"
    MECHANIC = "MECHANIC"
    LOGISTICS = "LOGISTICS"
    ADMIN = "ADMIN"

    @classmethod
    def choices(cls) -> list[tuple[str, str]]:
        return [(member.value, member.value.title()) for member in cls]
