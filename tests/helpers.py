"""Constantes e dublês compartilhados pelos testes."""

from typing import Dict, List

from app.content_pipeline.engine import NullEvents

OWNER = "0x" + "a" * 40
OTHER = "0x" + "b" * 40


class RecordingEvents(NullEvents):
    """Guarda (evento, dados) em memória."""

    def __init__(self):
        super().__init__()
        self.emitted: List[tuple] = []

    def _emit(self, job_id, event_type, data):
        self.emitted.append((event_type, data))

    def of(self, event_type: str) -> List[Dict]:
        return [data for name, data in self.emitted if name == event_type]
