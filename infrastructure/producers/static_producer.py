# infrastructure/producers/static_producer.py
from typing import Any, Dict, Iterable, List

from domain.models.finding import Finding


class StaticFindingProducer:
    """Replays findings computed elsewhere (a detector run, a CI report).

    Findings are grouped by the file in their location; ``analyze`` ignores the
    file content and hands back the findings recorded for that path.
    """

    def __init__(self, findings: Iterable[Finding] = ()):
        self._by_file: Dict[str, List[Finding]] = {}
        for finding in findings:
            self._by_file.setdefault(finding.location.file, []).append(finding)

    @classmethod
    def from_dicts(cls, items: Iterable[Dict[str, Any]]) -> "StaticFindingProducer":
        return cls(Finding.from_dict(item) for item in items)

    @property
    def files(self) -> List[str]:
        return sorted(self._by_file)

    def analyze(self, file_path: str, content: str) -> List[Finding]:
        return list(self._by_file.get(file_path, []))
