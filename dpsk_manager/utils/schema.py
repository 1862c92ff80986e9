"""
DPSK record schema
Record model and the registry mapping field identifiers to attributes and type classes
"""

from enum import Enum
from typing import Dict, List, NamedTuple

from pydantic import BaseModel, ConfigDict, Field, field_validator

from .errors import UnknownField, UnsupportedFieldType


class TypeClass(str, Enum):
    STRING = "string"
    INTEGER = "integer"
    MAC = "mac"
    TIMESTAMP = "timestamp"


class DpskRecord(BaseModel):
    """One dynamic PSK entry as reported by the controller."""

    model_config = ConfigDict(populate_by_name=True, frozen=True)

    id: int
    role_id: str = Field(default="", alias="role-id")
    mac: str = ""
    wlansvc_id: int = Field(default=0, alias="wlansvc-id")
    dvlan_id: int = Field(default=0, alias="dvlan-id")
    user: str = ""
    last_rekey: str = Field(default="", alias="last-rekey")
    next_rekey: str = Field(default="", alias="next-rekey")
    expire: str = ""
    start_point: str = Field(default="", alias="start-point")
    passphrase: str = ""
    ip_addr: str = Field(default="", alias="ip-addr")
    cur_shared_num: str = Field(default="", alias="cur-shared-num")
    usage: str = ""

    @field_validator("id", "wlansvc_id", "dvlan_id", mode="before")
    @classmethod
    def _empty_int(cls, value):
        # The controller sends dvlan-id="" for untagged entries
        if value is None or (isinstance(value, str) and not value.strip()):
            return 0
        return value

    @field_validator(
        "role_id", "mac", "user", "last_rekey", "next_rekey", "expire",
        "start_point", "passphrase", "ip_addr", "cur_shared_num", "usage",
        mode="before",
    )
    @classmethod
    def _missing_str(cls, value):
        return "" if value is None else value

    def to_dict(self) -> Dict[str, object]:
        """Record keyed by field identifier, in schema order."""
        return self.model_dump(by_alias=True)


class FieldSpec(NamedTuple):
    identifier: str
    attribute: str
    type_class: TypeClass
    settable: bool = True


# Single source of truth for filter flags, update flags and lookups.
FIELDS: List[FieldSpec] = [
    FieldSpec("id", "id", TypeClass.INTEGER, settable=False),
    FieldSpec("role-id", "role_id", TypeClass.STRING),
    FieldSpec("mac", "mac", TypeClass.MAC),
    FieldSpec("wlansvc-id", "wlansvc_id", TypeClass.INTEGER),
    FieldSpec("dvlan-id", "dvlan_id", TypeClass.INTEGER),
    FieldSpec("user", "user", TypeClass.STRING),
    FieldSpec("last-rekey", "last_rekey", TypeClass.TIMESTAMP),
    FieldSpec("next-rekey", "next_rekey", TypeClass.TIMESTAMP),
    FieldSpec("expire", "expire", TypeClass.STRING),
    FieldSpec("start-point", "start_point", TypeClass.STRING),
    FieldSpec("passphrase", "passphrase", TypeClass.STRING),
    FieldSpec("ip-addr", "ip_addr", TypeClass.STRING),
    FieldSpec("cur-shared-num", "cur_shared_num", TypeClass.STRING),
    FieldSpec("usage", "usage", TypeClass.STRING),
]

_BY_IDENTIFIER: Dict[str, FieldSpec] = {spec.identifier: spec for spec in FIELDS}

EXACT_HINTS = {
    TypeClass.TIMESTAMP: "valid formats: Unix timestamp, RFC3339 or YYYY-MM-DD HH:MM:SS",
    TypeClass.MAC: "valid formats: case insensitive AA:BB:CC:DD:EE:FF or aa-bb-cc-dd-ee-ff",
}

REGEXP_HINTS = {
    TypeClass.TIMESTAMP: "format: unix timestamp",
    TypeClass.MAC: "format: a6:b5:c4:d2:e2:f1 (lowercase)",
}


def resolve(identifier: str) -> FieldSpec:
    """Look up a field identifier, raising UnknownField if it has no entry."""
    try:
        return _BY_IDENTIFIER[identifier]
    except KeyError:
        raise UnknownField(identifier) from None


def settable_fields() -> List[FieldSpec]:
    return [spec for spec in FIELDS if spec.settable]


def stringify(record: DpskRecord, identifier: str) -> str:
    """
    Render a record field the way predicates compare it.

    Integers become base-10 text, strings are returned unchanged.

    Raises:
        UnknownField: identifier has no schema entry
        UnsupportedFieldType: the attribute holds any other kind of value
    """
    spec = resolve(identifier)
    value = getattr(record, spec.attribute)

    if isinstance(value, bool):
        raise UnsupportedFieldType(identifier, value)
    if isinstance(value, int):
        return str(value)
    if isinstance(value, str):
        return value
    raise UnsupportedFieldType(identifier, value)
