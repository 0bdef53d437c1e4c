"""
Value objects passed between the deploy stages.
"""
from dataclasses import dataclass, field, asdict
from typing import List, Dict, Optional, Any
import time

from .enums import (
    BuildMode, OutcomeKind, ResultKind, ReconcileStatus, ConnectionStatus
)


@dataclass
class ChangeSet:
    """Public URLs of content modified since the last build"""
    urls: List[str] = field(default_factory=list)
    urls_by_kind: Dict[str, List[str]] = field(default_factory=dict)
    is_first_build: bool = False
    source: Optional[str] = None

    def __post_init__(self):
        # Ordered dedup; the first occurrence wins
        seen = set()
        unique = []
        for url in self.urls:
            if url and url not in seen:
                seen.add(url)
                unique.append(url)
        self.urls = unique

    def is_empty(self) -> bool:
        return not self.urls

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


@dataclass
class BuildPlan:
    """Full or selective rebuild decision"""
    mode: BuildMode
    urls: List[str] = field(default_factory=list)

    @classmethod
    def full(cls) -> 'BuildPlan':
        return cls(mode=BuildMode.FULL)

    @classmethod
    def selective(cls, urls: List[str]) -> 'BuildPlan':
        return cls(mode=BuildMode.SELECTIVE, urls=list(urls))

    @property
    def is_full(self) -> bool:
        return self.mode == BuildMode.FULL

    def to_dict(self) -> Dict[str, Any]:
        return {'mode': self.mode.value, 'urls': list(self.urls)}


@dataclass
class CommandResult:
    """Captured outcome of an external process"""
    args: List[str]
    returncode: int
    stdout: str = ""
    stderr: str = ""

    @property
    def ok(self) -> bool:
        return self.returncode == 0

    @property
    def output(self) -> str:
        """stdout and stderr joined, trimmed"""
        return "\n".join(part for part in (self.stdout.strip(), self.stderr.strip()) if part)


@dataclass
class PipelineResult:
    """Outcome of the mirror pipeline"""
    success: bool
    stage: str
    error: Optional[str] = None
    stage_results: List[Any] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {
            'success': self.success,
            'stage': self.stage,
            'error': self.error,
            'stages': [r.stage_name for r in self.stage_results],
        }


@dataclass
class ChangeSummary:
    """Capped diff-stat of a staged commit"""
    file_count: int
    text: str
    stat_lines: List[str] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


@dataclass
class ReconcileResult:
    status: ReconcileStatus
    summary: Optional[ChangeSummary] = None
    title: Optional[str] = None

    @property
    def is_noop(self) -> bool:
        return self.status == ReconcileStatus.NOOP


@dataclass
class PullRequestRef:
    number: int
    html_url: str
    existing: bool = False

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


@dataclass
class ConnectionCheck:
    """Result of probing the hosting API"""
    status: ConnectionStatus
    message: str

    @property
    def ok(self) -> bool:
        return self.status == ConnectionStatus.OK


@dataclass
class RunOutcome:
    """Terminal outcome of one deploy run"""
    kind: OutcomeKind
    reason: Optional[str] = None
    pull_request: Optional[PullRequestRef] = None

    @property
    def ok(self) -> bool:
        return self.kind != OutcomeKind.FAILURE

    def to_dict(self) -> Dict[str, Any]:
        result = {'kind': self.kind.value, 'reason': self.reason}
        if self.pull_request:
            result['pull_request'] = self.pull_request.to_dict()
        return result


@dataclass
class LastResult:
    """Persisted summary of the most recent terminal run"""
    kind: ResultKind = ResultKind.NONE
    message: str = ""
    time: Optional[float] = None

    @classmethod
    def now(cls, kind: ResultKind, message: str) -> 'LastResult':
        return cls(kind=kind, message=message, time=time.time())

    def to_dict(self) -> Dict[str, Any]:
        return {'kind': self.kind.value, 'message': self.message, 'time': self.time}

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'LastResult':
        return cls(
            kind=ResultKind(data.get('kind', ResultKind.NONE.value)),
            message=data.get('message', ''),
            time=data.get('time'),
        )
