from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator

from .naming import POD_RUNNING


# --- Kubernetes side -------------------------------------------------------


class PodMetadata(BaseModel):
    model_config = ConfigDict(frozen=True, populate_by_name=True)

    name: str
    namespace: str = ""
    labels: dict[str, str] = Field(default_factory=dict)
    # The API may send explicit nulls for annotation values.
    annotations: dict[str, str | None] = Field(default_factory=dict)
    deletion_timestamp: str = Field("", alias="deletionTimestamp")

    @field_validator("labels", "annotations", mode="before")
    @classmethod
    def _null_map(cls, v: Any) -> Any:
        return {} if v is None else v

    @field_validator("deletion_timestamp", mode="before")
    @classmethod
    def _null_ts(cls, v: Any) -> Any:
        return "" if v is None else v


class PodStatus(BaseModel):
    model_config = ConfigDict(frozen=True, populate_by_name=True)

    phase: str = ""
    pod_ip: str = Field("", alias="podIP")

    @field_validator("phase", "pod_ip", mode="before")
    @classmethod
    def _null_str(cls, v: Any) -> Any:
        return "" if v is None else v


class Pod(BaseModel):
    """Last observed state of one pod. Never mutated once built."""

    model_config = ConfigDict(frozen=True)

    metadata: PodMetadata | None = None
    status: PodStatus = Field(default_factory=PodStatus)

    @field_validator("status", mode="before")
    @classmethod
    def _null_status(cls, v: Any) -> Any:
        return {} if v is None else v

    @property
    def name(self) -> str | None:
        return self.metadata.name if self.metadata else None

    @property
    def running(self) -> bool:
        return self.status.phase == POD_RUNNING

    @property
    def terminating(self) -> bool:
        return bool(self.metadata and self.metadata.deletion_timestamp)


class PodList(BaseModel):
    items: list[Pod] = Field(default_factory=list)

    @field_validator("items", mode="before")
    @classmethod
    def _null_items(cls, v: Any) -> Any:
        return [] if v is None else v


class EventType(str, Enum):
    ADDED = "ADDED"
    MODIFIED = "MODIFIED"
    DELETED = "DELETED"
    BOOKMARK = "BOOKMARK"
    ERROR = "ERROR"


@dataclass(frozen=True)
class WatchEvent:
    type: str  # compare against EventType members
    object: bytes  # serialized pod, parsed by the dispatcher


# --- Registry side ---------------------------------------------------------


class Node(BaseModel):
    id: str = ""
    address: str = ""
    metadata: dict[str, str] = Field(default_factory=dict)


class Endpoint(BaseModel):
    name: str = ""
    request: Any = None
    response: Any = None
    metadata: dict[str, str] = Field(default_factory=dict)


class Service(BaseModel):
    name: str
    version: str = ""
    metadata: dict[str, str] = Field(default_factory=dict)
    endpoints: list[Endpoint] = Field(default_factory=list)
    nodes: list[Node] = Field(default_factory=list)


class Action(str, Enum):
    CREATE = "create"
    UPDATE = "update"
    DELETE = "delete"


@dataclass(frozen=True)
class Result:
    action: Action
    service: Service

    def as_delete(self) -> Result:
        if self.action is Action.DELETE:
            return self
        return Result(action=Action.DELETE, service=self.service)
