"""
Retention policy evaluation for backups.

Decides which backup files of a section to keep using yearly, monthly,
weekly and daily buckets (grandfather-father-son rotation):

1. For every granularity, each file falls into the bucket given by its age
   in that granularity. The oldest file of a bucket represents it.
2. A representative keeps its bucket only while the bucket index is within
   the granularity's limit.
3. A file is kept while it represents at least one kept bucket.
"""

import logging
from dataclasses import dataclass, field
from typing import Dict, List, Mapping, Optional, Sequence, Tuple, Union

from dbbackup.models import BackupCandidate
from dbbackup.settings import WILDCARD, parse_number, resolve_wildcard_numeric


logger = logging.getLogger(__name__)

# Granularity name -> BackupAge attribute
GRANULARITIES = (
    ('yearly', 'years'),
    ('monthly', 'months'),
    ('weekly', 'weeks'),
    ('daily', 'days'),
)

NO_RETENTION_REASON = 'unconfigured'

Limit = Optional[Union[int, float, str]]


def _normalize_limit(value) -> Limit:
    # 0, empty and non-numeric values disable a granularity
    if isinstance(value, str) and value.strip() == WILDCARD:
        return WILDCARD
    number = parse_number(value)
    if not number:
        return None
    return number


@dataclass
class RetentionLimits:
    """
    How many buckets to keep per granularity.

    Each limit is a number (numeric strings are parsed), the wildcard '*'
    (keep every bucket) or None (granularity disabled).
    """

    yearly: Limit = None
    monthly: Limit = None
    weekly: Limit = None
    daily: Limit = None

    def __post_init__(self):
        for name, _ in GRANULARITIES:
            setattr(self, name, _normalize_limit(getattr(self, name)))

    @classmethod
    def from_settings(cls, settings: Mapping[str, str]) -> 'RetentionLimits':
        """
        Read keepyearly, keepmonthly, keepweekly and keepdaily from settings.

        Raises:
            SettingError: If one of the values cannot be resolved
        """
        return cls(**{
            name: resolve_wildcard_numeric(settings, f'keep{name}')
            for name, _ in GRANULARITIES
        })

    def get(self, granularity: str) -> Limit:
        return getattr(self, granularity)

    @property
    def is_configured(self) -> bool:
        return any(self.get(name) is not None for name, _ in GRANULARITIES)

    def allows(self, granularity: str, index: int) -> bool:
        limit = self.get(granularity)
        if limit is None:
            return False
        if limit == WILDCARD:
            return True
        return index <= limit


@dataclass
class AgeBucket:
    """The representative of one (granularity, bucket index) pair."""

    candidate: BackupCandidate
    age_days: int


@dataclass
class RetentionDecision:
    """Keep/delete verdict for one backup file."""

    candidate: BackupCandidate
    ref_count: int = 0
    reasons: List[str] = field(default_factory=list)

    @property
    def keep(self) -> bool:
        return self.ref_count > 0

    @property
    def filename(self) -> str:
        return self.candidate.filename

    def describe(self) -> str:
        verdict = 'YES' if self.keep else 'NO'
        reasons = ', '.join(self.reasons) if self.reasons else 'DELETE'
        return (
            f"File: {self.filename}; {self.candidate.age}; "
            f"Keep: {verdict} ({reasons})"
        )


class RetentionEngine:
    """
    Evaluates retention limits over the backup files of one section.

    Buckets and reference counts are rebuilt on every evaluate() call.
    """

    def __init__(self, limits: RetentionLimits):
        self.limits = limits

    def evaluate(self, candidates: Sequence[BackupCandidate]) -> List[RetentionDecision]:
        """
        Decide which candidates to keep.

        Args:
            candidates: Backup files with ages attached; ties between
                equally old files go to the one listed first

        Returns:
            One RetentionDecision per candidate, in input order
        """
        decisions = [RetentionDecision(candidate) for candidate in candidates]

        if not self.limits.is_configured:
            # Nothing configured: never delete
            for decision in decisions:
                decision.ref_count = max(decision.ref_count, 1)
                decision.reasons.append(NO_RETENTION_REASON)
            return decisions

        buckets = self._select_representatives(decisions)
        self._apply_limits(buckets, decisions)

        return decisions

    def _select_representatives(self, decisions: List[RetentionDecision]) -> Dict[Tuple[str, int], int]:
        """
        Pick the oldest file of every (granularity, bucket index).

        Returns:
            Mapping of (granularity, bucket index) to the position of the
            representative in decisions
        """
        buckets: Dict[Tuple[str, int], AgeBucket] = {}
        positions: Dict[Tuple[str, int], int] = {}

        for position, decision in enumerate(decisions):
            candidate = decision.candidate

            for granularity, attribute in GRANULARITIES:
                key = (granularity, getattr(candidate.age, attribute))
                current = buckets.get(key)

                if current is None:
                    buckets[key] = AgeBucket(candidate, candidate.age.days)
                    positions[key] = position
                    decision.ref_count += 1
                elif candidate.age.days > current.age_days:
                    decisions[positions[key]].ref_count -= 1
                    buckets[key] = AgeBucket(candidate, candidate.age.days)
                    positions[key] = position
                    decision.ref_count += 1

        return positions

    def _apply_limits(self, positions: Dict[Tuple[str, int], int], decisions: List[RetentionDecision]):
        """Drop representatives whose bucket lies outside the granularity's limit."""
        for granularity, _ in GRANULARITIES:
            limit = self.limits.get(granularity)

            for (bucket_granularity, index), position in positions.items():
                if bucket_granularity != granularity:
                    continue

                decision = decisions[position]
                if self.limits.allows(granularity, index):
                    decision.reasons.append(granularity)
                else:
                    decision.ref_count -= 1
                    logger.debug(
                        f"{decision.filename}: not kept as {granularity} "
                        f"(bucket {index}, limit {limit if limit is not None else 'disabled'})"
                    )


def evaluate_retention(candidates: Sequence[BackupCandidate], limits: RetentionLimits) -> List[RetentionDecision]:
    """Evaluate retention limits over a section's backup files."""
    return RetentionEngine(limits).evaluate(candidates)
