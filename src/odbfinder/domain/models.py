"""
Domain models (Pydantic).

These types are the stable "contract" between layers:
- store payloads (`LocationRecord`, `AuditLogEntry`)
- engine outputs (`LocationWithDistance`, `SearchResult`)
- access control inputs/outputs (`User`, `PermissionEntry`, `AccessDecision`)

Location records accept the legacy upper-case wire names (`ODB_ID`, `CITYNAME`,
`LATITUDE`, `LONGITUDE`, camelCase owner/lock fields) on input and always
serialize with snake_case field names.
"""

from __future__ import annotations

from datetime import datetime
from typing import Any, Literal

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, field_validator

Role = Literal["admin", "supervisor", "delegate", "user"]
Scope = Literal["none", "own", "team", "all"]
Action = Literal["view", "edit", "delete", "create"]
Resource = Literal[
    "odb",
    "nearby",
    "map_filter",
    "search_odb",
    "my_activity",
    "system_logs",
    "users",
    "settings",
]
AccessReason = Literal["ALLOWED", "NO_PERMISSION", "LOCKED_NO_PERM"]
OriginFailure = Literal["permission_denied", "position_unavailable", "timeout"]
AuditAction = Literal["CREATE", "UPDATE", "DELETE", "LOCK", "UNLOCK", "IMPORT"]

LOCK_ROLES: frozenset[str] = frozenset({"admin", "supervisor"})


class GeoPoint(BaseModel):
    """A geographic point in decimal degrees."""

    lat: float = Field(..., ge=-90, le=90)
    lon: float = Field(..., ge=-180, le=180)


class LocationRecord(BaseModel):
    """A geo-tagged point of interest identified by its external ODB code."""

    model_config = ConfigDict(populate_by_name=True)

    # None is the pending-creation sentinel; the store assigns the id on save.
    id: int | None = None
    odb_id: str = Field(..., validation_alias=AliasChoices("odb_id", "ODB_ID"))
    city_name: str = Field(..., validation_alias=AliasChoices("city_name", "CITYNAME"))
    lat: float = Field(..., ge=-90, le=90, validation_alias=AliasChoices("lat", "LATITUDE"))
    lon: float = Field(..., ge=-180, le=180, validation_alias=AliasChoices("lon", "LONGITUDE"))
    image: str | None = None
    notes: str | None = None
    owner_id: int | None = Field(default=None, validation_alias=AliasChoices("owner_id", "ownerId"))
    owner_name: str | None = Field(default=None, validation_alias=AliasChoices("owner_name", "ownerName"))
    is_locked: bool = Field(default=False, validation_alias=AliasChoices("is_locked", "isLocked"))
    last_edited_by: str | None = Field(
        default=None, validation_alias=AliasChoices("last_edited_by", "lastEditedBy")
    )
    last_edited_at: datetime | None = Field(
        default=None, validation_alias=AliasChoices("last_edited_at", "lastEditedAt")
    )

    @field_validator("id", mode="before")
    @classmethod
    def _zero_id_is_pending(cls, value: Any) -> Any:
        # Legacy forms post id=0 for "new record".
        if value in (0, "0", ""):
            return None
        return value

    @field_validator("odb_id", "city_name")
    @classmethod
    def _require_text(cls, value: str) -> str:
        value = value.strip()
        if not value:
            raise ValueError("must not be blank")
        return value


class LocationWithDistance(LocationRecord):
    """A location plus its distance from the search origin (km), when known."""

    distance_km: float | None = Field(default=None, ge=0)


def with_distance(record: LocationRecord, distance_km: float | None) -> LocationWithDistance:
    """Return a distance-augmented copy of `record` (replacing any previous distance)."""
    payload = record.model_dump()
    payload["distance_km"] = distance_km
    return LocationWithDistance.model_validate(payload)


class SearchSettings(BaseModel):
    """Result bounds applied by the proximity engine."""

    max_results: int = Field(..., ge=1)
    # 0 means unlimited.
    search_radius_km: float = Field(..., ge=0)


class User(BaseModel):
    id: int
    username: str = ""
    name: str = ""
    role: Role
    supervisor_id: int | None = None
    is_active: bool = True

    @property
    def display_name(self) -> str:
        return self.name or self.username


class PermissionEntry(BaseModel):
    resource: Resource
    action: Action
    scope: Scope


class AccessDecision(BaseModel):
    """Advisory allow/deny result with a user-facing reason code."""

    allowed: bool
    reason: AccessReason


class SearchResult(BaseModel):
    """Current ranked/filtered list exposed to the UI layer."""

    items: list[LocationWithDistance]
    distances_valid: bool
    mode: Literal["NEAREST", "AREA"] = "NEAREST"
    origin: GeoPoint | None = None
    origin_failure: OriginFailure | None = None
    meta: dict[str, Any] = Field(default_factory=dict)


class AreaRequest(BaseModel):
    """Two arbitrary corners of a dragged rectangle."""

    corner_a: GeoPoint
    corner_b: GeoPoint


class AuditLogEntry(BaseModel):
    id: int
    timestamp: datetime
    username: str
    action: AuditAction
    resource: str = "odb"
    details: str = ""
