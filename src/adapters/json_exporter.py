"""JSON export of scan results.

Why JSON:
- Interoperability with inventory and reconnaissance pipelines.
- One record per service: host, ip, port, transport, protocol, metadata.
"""

from __future__ import annotations

import json
from pathlib import Path
from typing import Iterable

from core.domain.models import Service


def services_to_json(services: Iterable[Service]) -> str:
    """Render services as a stable, pretty-printed JSON list."""

    payload = [service.model_dump(mode="json") for service in services]
    return json.dumps(payload, ensure_ascii=False, indent=2, sort_keys=True)


def export_services_json(*, services: Iterable[Service], output_path: Path) -> Path:
    """Write services to `output_path` as UTF-8 JSON."""

    output_path.parent.mkdir(parents=True, exist_ok=True)
    output_path.write_text(services_to_json(services) + "\n", encoding="utf-8")
    return output_path
