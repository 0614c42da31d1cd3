"""遥测事件与输入签名。"""

from __future__ import annotations

import json
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Optional

# phase -> 采集端 kind
_PHASE_KIND = {
    "request": "writer_request",
    "success": "writer_complete",
    "failure": "writer_error",
}

_FNV_OFFSET = 0x811C9DC5
_FNV_PRIME = 0x01000193


def input_signature(value: Any) -> str:
    """FNV-1a 32-bit 短哈希（十六进制），只用于区分输入组合，不携带原文。"""
    if isinstance(value, str):
        text = value
    else:
        text = json.dumps(value, ensure_ascii=False, separators=(",", ":"), default=str)
    h = _FNV_OFFSET
    # 按 UTF-16 码元逐个混入
    data = text.encode("utf-16-le", errors="surrogatepass")
    for i in range(0, len(data), 2):
        h ^= data[i] | (data[i + 1] << 8)
        h = (h * _FNV_PRIME) & 0xFFFFFFFF
    return format(h, "x")


@dataclass
class TelemetryEvent:
    """管线边界上产生的一条事件。phase: request | success | failure"""

    phase: str
    route: str = "/api/writer"
    level: str = "info"
    message: str = ""
    mode: str = "openai"
    model: Optional[str] = None
    duration_ms: Optional[int] = None
    input_sig: Optional[str] = None
    output_len: Optional[int] = None
    request_id: Optional[str] = None
    reason: Optional[str] = None
    meta: dict[str, Any] = field(default_factory=dict)
    ts: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    @property
    def kind(self) -> str:
        return _PHASE_KIND.get(self.phase, "writer_request")

    def to_body(self, app: str, env: str) -> dict[str, Any]:
        meta: dict[str, Any] = {
            "phase": self.phase,
            "level": self.level,
            "route": self.route,
            "message": self.message,
        }
        if self.request_id:
            meta["requestId"] = self.request_id
        if self.reason:
            meta["reason"] = self.reason
        meta.update(self.meta)
        return {
            "ts": self.ts.isoformat().replace("+00:00", "Z"),
            "app": app,
            "env": env,
            "kind": self.kind,
            "mode": self.mode,
            "model": self.model or "unknown",
            "durationMs": self.duration_ms,
            "inputSig": self.input_sig,
            "outputLen": self.output_len,
            "meta": meta,
        }
