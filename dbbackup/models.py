from dataclasses import dataclass, field
from datetime import datetime
from types import MappingProxyType
from typing import List, Mapping, Optional


@dataclass(frozen=True)
class BackupAge:
    """Age of a backup file in each retention granularity"""

    days: int = 0
    weeks: int = 0
    months: int = 0
    years: int = 0

    def __str__(self):
        return f'Age Years: {self.years}; Age Months: {self.months}; Age Weeks: {self.weeks}; Age Days: {self.days}'


@dataclass(frozen=True)
class BackupCandidate:
    """A backup file on disk that matched the section's naming pattern"""

    filename: str
    timestamp: datetime
    age: BackupAge

    def __repr__(self):
        return f'<BackupCandidate {self.filename} days={self.age.days}>'


class BackupSection:
    """One configured backup job with its merged, read-only settings"""

    def __init__(self, name: str, settings: Mapping[str, str]):
        self.name = name
        self.settings = MappingProxyType(dict(settings))

    def with_settings(self, **computed) -> 'BackupSection':
        """Return a new section view with computed settings layered on top."""
        merged = dict(self.settings)
        merged.update(computed)
        return BackupSection(self.name, merged)

    def __repr__(self):
        return f'<BackupSection {self.name} keys={len(self.settings)}>'


@dataclass
class BackupResult:
    """Outcome of running one backup section"""

    section: str
    status: str = 'running'  # running, success, failed
    started_at: Optional[datetime] = None
    completed_at: Optional[datetime] = None
    command: Optional[str] = None  # secrets masked
    backup_file_path: Optional[str] = None
    decisions: list = field(default_factory=list)
    deleted: List[str] = field(default_factory=list)
    error_message: Optional[str] = None
    logs: List[str] = field(default_factory=list)

    def __repr__(self):
        return f'<BackupResult section={self.section} status={self.status}>'
