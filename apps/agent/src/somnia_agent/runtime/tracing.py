from __future__ import annotations

import json
from datetime import datetime, timezone
from typing import Any, Callable, Dict, Literal, Optional

from pydantic import BaseModel, Field


class StepEvent(BaseModel):
    name: str
    status: str
    phase: Literal["start", "end"] = "end"
    index: int = 0
    label: Optional[str] = None
    started_at: str
    ended_at: str
    input: Dict[str, Any] = Field(default_factory=dict)
    output: Dict[str, Any] = Field(default_factory=dict)


StepEmitter = Callable[[StepEvent], None]

# Never copied into traces.
REDACTED_KEYS = frozenset({"privateKey"})


def utc_now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


def json_safe(value: Any) -> Any:
    return json.loads(json.dumps(value, default=str, ensure_ascii=True))


def redact(params: Dict[str, Any]) -> Dict[str, Any]:
    return {
        str(key): ("***" if key in REDACTED_KEYS else value) for key, value in dict(params or {}).items()
    }


def step_label(name: str) -> str:
    return name.replace("_", " ")
