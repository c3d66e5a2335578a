import json
import os
from typing import Any

from tfpr.event_bus import BridgeEvent


class AuditLogger:
    """
    Subscribes to an EventBus and appends every event to a JSONL file.
    """

    def __init__(self, file_path: str, event_bus: Any):
        self.file_path = file_path
        self.event_bus = event_bus

        os.makedirs(os.path.dirname(os.path.abspath(self.file_path)), exist_ok=True)
        self.event_bus.subscribe(self.log_event)

    def log_event(self, event: BridgeEvent) -> None:
        with open(self.file_path, "a", encoding="utf-8") as f:
            f.write(json.dumps(event.model_dump()) + "\n")
