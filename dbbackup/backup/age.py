"""
Backup age calculation.

Ages are whole units elapsed between the backup timestamp and "now":
days and weeks from elapsed seconds, years as 365-day blocks, and months by
stepping through calendar months so that month lengths are respected.
"""

import calendar
from datetime import datetime

from dbbackup.models import BackupAge


SECONDS_PER_DAY = 60 * 60 * 24


def add_months(moment: datetime, months: int) -> datetime:
    """Add calendar months, clamping the day to the last day of the target month."""
    month_index = moment.month - 1 + months
    year = moment.year + month_index // 12
    month = month_index % 12 + 1
    day = min(moment.day, calendar.monthrange(year, month)[1])
    return moment.replace(year=year, month=month, day=day)


def months_between(timestamp: datetime, now: datetime) -> int:
    # Starts at -1 so a backup from earlier in the current month is 0 months old
    months = -1
    while add_months(timestamp, months + 1) < now:
        months += 1
    return max(months, 0)


def calculate_age(timestamp: datetime, now: datetime) -> BackupAge:
    """
    Calculate the age of a backup in every retention granularity.

    Args:
        timestamp: When the backup was taken
        now: Evaluation instant

    Returns:
        BackupAge; all zero when the timestamp is not in the past
    """
    if timestamp >= now:
        return BackupAge()

    days = int((now - timestamp).total_seconds() // SECONDS_PER_DAY)

    return BackupAge(
        days=days,
        weeks=days // 7,
        months=months_between(timestamp, now),
        years=days // 365
    )
