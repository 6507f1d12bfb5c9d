"""
Backup executor - orchestrates the backup workflow of each section.

Workflow:
1. Resolve the section's settings (paths, filename, command, retention limits)
2. Run the backup command
3. List the backup directory and match earlier backups of the section
4. Evaluate the retention policy
5. Delete the backups nobody keeps
"""

import os
import re
import logging
from datetime import datetime
from typing import Any, Dict, List, Mapping, Optional

from dbbackup.config import BackupConfig, ConfigurationError
from dbbackup.models import BackupCandidate, BackupResult, BackupSection
from dbbackup.settings import resolve, resolve_all
from .age import calculate_age
from .naming import BackupFilePattern, MalformedTimestampError, generate_backup_filename, sanitize_filebase
from .retention import RetentionEngine, RetentionLimits
from .shell import run_command
from .storage import LocalStorage, StorageError


logger = logging.getLogger(__name__)

SECRET_KEYS = ('password',)
MASK = '****'


class BackupExecutor:
    """
    Runs the complete backup workflow for one section.

    In debug mode the command is not executed and no file is deleted; the
    resolved settings and retention verdicts are logged instead.
    """

    def __init__(self, section: BackupSection, debug: bool = False,
                 now: Optional[datetime] = None, timeout: Optional[int] = None):
        """
        Initialize backup executor.

        Args:
            section: Section with merged settings
            debug: Resolve and report only, never execute or delete
            now: Backup time and age reference (defaults to the current time)
            timeout: Seconds before the backup command is abandoned
        """
        self.section = section
        self.debug = debug
        self.now = now
        self.timeout = timeout
        self.result = None
        self.secrets = []
        self.logs = []

    def execute(self) -> BackupResult:
        """
        Execute the backup section.

        Errors are recorded on the result rather than raised, so callers can
        move on to the next section.

        Returns:
            BackupResult with execution results
        """
        self.now = self.now or datetime.now()
        self.result = BackupResult(section=self.section.name, started_at=datetime.now())

        self._log(f"Starting backup section: [{self.section.name}]")

        try:
            self._execute_workflow()

            self.result.status = 'success'
            self._log("Backup section completed successfully")

        except Exception as e:
            self.result.status = 'failed'
            self.result.error_message = str(e)
            self._log(f"Backup section failed: {e}", logging.ERROR)

        finally:
            self.result.completed_at = datetime.now()
            self.result.logs = list(self.logs)

        return self.result

    def _execute_workflow(self):
        """Execute the main backup workflow steps."""
        settings = self.section.settings
        self.secrets = [
            value for value in (resolve(settings, key) for key in SECRET_KEYS)
            if value
        ]

        # Step 1: Resolve everything before anything is executed or deleted
        backup_path = resolve(settings, 'backuppath')
        if not backup_path:
            raise ConfigurationError(f"No backuppath configured for section [{self.section.name}]")

        extension = resolve(settings, 'fileextension', '')
        filebase = resolve(settings, 'filebase', '') or sanitize_filebase(self.section.name)

        backup_filename = generate_backup_filename(filebase, extension, self.now)
        backup_file_path = os.path.join(backup_path, backup_filename)

        section = self.section.with_settings(
            backup_filename=backup_filename,
            backup_file_path=backup_file_path
        )

        command = resolve(section.settings, 'command')
        if not command:
            raise ConfigurationError(f"No command configured for section [{self.section.name}]")

        limits = RetentionLimits.from_settings(section.settings)

        self.result.command = self._mask(command)
        self.result.backup_file_path = backup_file_path

        if self.debug:
            self._dump_settings(section.settings)

        # Step 2: Run the backup command
        storage = LocalStorage(backup_path, create=not self.debug)

        self._log(f"Run Command: {self.result.command}")
        if not self.debug:
            run_command(command, timeout=self.timeout, display_command=self.result.command)

        # Steps 3-5: Prune old backups
        self._prune(storage, BackupFilePattern(filebase, extension), backup_filename, limits)

    def _collect_candidates(self, storage: LocalStorage, pattern: BackupFilePattern,
                            backup_filename: str) -> List[BackupCandidate]:
        """
        Match earlier backups of this section in the backup directory.

        Returns:
            Candidates with ages attached, in filename order
        """
        candidates = []

        for filename in storage.list_files():
            if filename == backup_filename:
                continue

            try:
                timestamp = pattern.match(filename)
            except MalformedTimestampError as e:
                self._log(f"Skipping {filename}: {e}", logging.WARNING)
                continue

            if timestamp is None:
                continue

            candidates.append(BackupCandidate(filename, timestamp, calculate_age(timestamp, self.now)))

        return candidates

    def _prune(self, storage: LocalStorage, pattern: BackupFilePattern,
               backup_filename: str, limits: RetentionLimits):
        """
        Apply the retention policy to the section's earlier backups.

        Raises:
            StorageError: If the backup directory cannot be listed
        """
        candidates = self._collect_candidates(storage, pattern, backup_filename)
        self._log(f"Found {len(candidates)} earlier backups")

        decisions = RetentionEngine(limits).evaluate(candidates)
        self.result.decisions = decisions

        for decision in decisions:
            self._log(decision.describe())

            if decision.keep or self.debug:
                continue

            try:
                storage.delete(decision.filename)
                self.result.deleted.append(decision.filename)
                self._log(f"Deleted backup file: {decision.filename}")
            except StorageError as e:
                self._log(f"Failed to delete backup file {decision.filename}: {e}", logging.ERROR)

    def _dump_settings(self, settings: Mapping[str, str]):
        """Log every resolved setting of the section."""
        for key, value in resolve_all(settings).items():
            shown = MASK if key in SECRET_KEYS and value else self._mask(value or '')
            self._log(f"     {key} => {shown}")

    def _mask(self, text: str) -> str:
        """Replace secrets standing as their own token, or right after a -p option."""
        for secret in self.secrets:
            pattern = re.compile(r'(?:(?<=-p)|(?<!\w))' + re.escape(secret) + r'(?!\w)')
            text = pattern.sub(MASK, text)
        return text

    def _log(self, message: str, level: int = logging.INFO):
        """
        Add a log message with timestamp.

        Args:
            message: Log message
            level: Logging level for the console and file log
        """
        timestamp = datetime.now().strftime('%Y-%m-%d %H:%M:%S')
        self.logs.append(f"[{timestamp}] {message}")
        logger.log(level, f"[{self.section.name}] {message}")


def execute_all_sections(config: BackupConfig, debug: bool = False,
                         now: Optional[datetime] = None, timeout: Optional[int] = None) -> Dict[str, Any]:
    """
    Run every section of a configuration, in configuration order.

    A failing section is recorded and the run continues with the next one.

    Returns:
        Dict with summary of the run:
        {
            'sections_processed': int,
            'sections_failed': int,
            'deleted': int,
            'errors': List[str],
            'results': List[BackupResult],
            'logs': List[str]
        }
    """
    summary = {
        'sections_processed': 0,
        'sections_failed': 0,
        'deleted': 0,
        'errors': [],
        'results': [],
        'logs': []
    }

    for section in config:
        executor = BackupExecutor(section, debug=debug, now=now, timeout=timeout)
        result = executor.execute()

        summary['sections_processed'] += 1
        summary['deleted'] += len(result.deleted)
        summary['results'].append(result)
        summary['logs'].extend(result.logs)

        if result.status == 'failed':
            summary['sections_failed'] += 1
            summary['errors'].append(f"[{section.name}] {result.error_message}")

    logger.info(
        f"Backup run complete. "
        f"Sections: {summary['sections_processed']}, "
        f"Failed: {summary['sections_failed']}, "
        f"Deleted: {summary['deleted']}"
    )

    return summary
