"""
Data models for the storage layer.

The whole persisted state is one Snapshot document. Records are plain
dataclasses with explicit to_dict/from_dict so the snapshot can be stored as
JSON.
"""

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Dict, List, Optional


class ProcessingMode(Enum):
    """How a work unit is being processed."""
    INTERACTIVE = "interactive"
    BATCH = "batch"


class UsageKind(Enum):
    """Source of a usage event."""
    INTERACTIVE = "interactive"
    BATCH = "batch"
    TOOL = "tool"


def _parse_ts(value: Optional[str]) -> Optional[datetime]:
    return datetime.fromisoformat(value) if value else None


@dataclass
class SubItem:
    """A definition-of-done or checklist entry of a work unit."""
    id: str
    text: str
    done: bool = False

    def to_dict(self) -> Dict[str, Any]:
        return {"id": self.id, "text": self.text, "done": self.done}

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "SubItem":
        return cls(id=data["id"], text=data.get("text", ""), done=bool(data.get("done", False)))


@dataclass
class Tag:
    """Board tag; work units reference tags by id."""
    id: str
    label: str

    def to_dict(self) -> Dict[str, Any]:
        return {"id": self.id, "label": self.label}

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Tag":
        return cls(id=data["id"], label=data.get("label", ""))


@dataclass
class WorkUnit:
    """A deferrable task with sub-items.

    `processing_mode` and `batch_job_id` are the batch linkage fields written
    once a submission succeeds.
    """
    id: str
    title: str
    priority: str
    description: str = ""
    notes: str = ""
    tags: List[str] = field(default_factory=list)
    checklist: List[SubItem] = field(default_factory=list)
    definition_of_done: List[SubItem] = field(default_factory=list)
    fan_out: bool = False
    processing_mode: ProcessingMode = ProcessingMode.INTERACTIVE
    batch_job_id: Optional[str] = None
    updated_at: datetime = field(default_factory=datetime.now)

    @property
    def subitem_count(self) -> int:
        return len(self.definition_of_done) + len(self.checklist)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "title": self.title,
            "priority": self.priority,
            "description": self.description,
            "notes": self.notes,
            "tags": list(self.tags),
            "checklist": [item.to_dict() for item in self.checklist],
            "definitionOfDone": [item.to_dict() for item in self.definition_of_done],
            "fanOut": self.fan_out,
            "processingMode": self.processing_mode.value,
            "batchJobId": self.batch_job_id,
            "updatedAt": self.updated_at.isoformat(),
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "WorkUnit":
        return cls(
            id=data["id"],
            title=data.get("title", ""),
            priority=data.get("priority", "medium"),
            description=data.get("description") or "",
            notes=data.get("notes") or "",
            tags=list(data.get("tags") or []),
            checklist=[SubItem.from_dict(item) for item in data.get("checklist") or []],
            definition_of_done=[
                SubItem.from_dict(item) for item in data.get("definitionOfDone") or []
            ],
            fan_out=bool(data.get("fanOut", False)),
            processing_mode=ProcessingMode(data.get("processingMode") or "interactive"),
            batch_job_id=data.get("batchJobId"),
            updated_at=_parse_ts(data.get("updatedAt")) or datetime.now(),
        )


@dataclass(frozen=True)
class WorkItem:
    """One submittable record derived from a work unit's sub-items."""
    id: str
    text: str
    unit_id: str
    unit_title: str
    priority: str
    description: str
    notes: str


@dataclass(frozen=True)
class BatchJob:
    """Provider batch job created by a successful submission. Immutable."""
    batch_id: str
    file_id: str
    model: str
    unit_ids: List[str]


@dataclass
class CacheEntry:
    """Cached routine answer.

    Entries are never purged on read; callers decide freshness with
    is_expired().
    """
    key: str
    value: str
    created_at: datetime
    ttl_seconds: Optional[int] = None

    def age_seconds(self, now: datetime) -> float:
        return (now - self.created_at).total_seconds()

    def is_expired(self, now: datetime) -> bool:
        if not self.ttl_seconds:
            return False
        return self.age_seconds(now) > self.ttl_seconds

    def to_dict(self) -> Dict[str, Any]:
        return {
            "key": self.key,
            "value": self.value,
            "createdAt": self.created_at.isoformat(),
            "ttlSeconds": self.ttl_seconds,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "CacheEntry":
        return cls(
            key=data["key"],
            value=data.get("value", ""),
            created_at=datetime.fromisoformat(data["createdAt"]),
            ttl_seconds=data.get("ttlSeconds"),
        )


@dataclass(frozen=True)
class UsageEvent:
    """Immutable record of token consumption. Append-only."""
    id: str
    kind: UsageKind
    tokens: int
    created_at: datetime
    model: Optional[str] = None
    unit_ids: List[str] = field(default_factory=list)
    tool: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "kind": self.kind.value,
            "tokens": self.tokens,
            "model": self.model,
            "unitIds": list(self.unit_ids),
            "tool": self.tool,
            "createdAt": self.created_at.isoformat(),
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "UsageEvent":
        return cls(
            id=data["id"],
            kind=UsageKind(data["kind"]),
            tokens=int(data.get("tokens", 0)),
            created_at=datetime.fromisoformat(data["createdAt"]),
            model=data.get("model"),
            unit_ids=list(data.get("unitIds") or []),
            tool=data.get("tool"),
        )


@dataclass(frozen=True)
class UsageAlert:
    """Generated when the rolling hourly token sum crosses the threshold."""
    id: str
    level: str
    message: str
    created_at: datetime

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "level": self.level,
            "message": self.message,
            "createdAt": self.created_at.isoformat(),
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "UsageAlert":
        return cls(
            id=data["id"],
            level=data.get("level", "warn"),
            message=data.get("message", ""),
            created_at=datetime.fromisoformat(data["createdAt"]),
        )


@dataclass
class Snapshot:
    """The whole persisted document, read and written as one unit."""
    work_units: List[WorkUnit] = field(default_factory=list)
    tags: List[Tag] = field(default_factory=list)
    routine_cache: List[CacheEntry] = field(default_factory=list)
    usage_events: List[UsageEvent] = field(default_factory=list)
    usage_alerts: List[UsageAlert] = field(default_factory=list)

    def find_unit(self, unit_id: str) -> Optional[WorkUnit]:
        for unit in self.work_units:
            if unit.id == unit_id:
                return unit
        return None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "workUnits": [unit.to_dict() for unit in self.work_units],
            "tags": [tag.to_dict() for tag in self.tags],
            "routineCache": [entry.to_dict() for entry in self.routine_cache],
            "usageEvents": [event.to_dict() for event in self.usage_events],
            "usageAlerts": [alert.to_dict() for alert in self.usage_alerts],
        }

    @classmethod
    def from_dict(cls, data: Optional[Dict[str, Any]]) -> "Snapshot":
        data = data or {}
        return cls(
            work_units=[WorkUnit.from_dict(item) for item in data.get("workUnits") or []],
            tags=[Tag.from_dict(item) for item in data.get("tags") or []],
            routine_cache=[CacheEntry.from_dict(item) for item in data.get("routineCache") or []],
            usage_events=[UsageEvent.from_dict(item) for item in data.get("usageEvents") or []],
            usage_alerts=[UsageAlert.from_dict(item) for item in data.get("usageAlerts") or []],
        )
