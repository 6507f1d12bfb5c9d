"""
Backup module for dbbackup.

This module handles the backup workflow including:
- Backup file naming and matching
- Age calculation
- Retention policy evaluation
- Command execution and backup directory access
- Execution orchestration
"""

from .executor import BackupExecutor, execute_all_sections
from .naming import BackupFilePattern, generate_backup_filename
from .age import calculate_age
from .retention import RetentionEngine, RetentionLimits, evaluate_retention
from .storage import LocalStorage
from .shell import run_command

__all__ = [
    'BackupExecutor',
    'execute_all_sections',
    'BackupFilePattern',
    'generate_backup_filename',
    'calculate_age',
    'RetentionEngine',
    'RetentionLimits',
    'evaluate_retention',
    'LocalStorage',
    'run_command'
]
