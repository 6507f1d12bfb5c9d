"""
Shared pytest fixtures for dbbackup tests.

This module provides fixtures for:
- Raw settings mappings
- Backup directories pre-populated with backup files
- Configuration files
- Backup candidates with computed ages
"""

from datetime import datetime

import pytest

from dbbackup.backup.age import calculate_age
from dbbackup.backup.naming import parse_timestamp
from dbbackup.models import BackupCandidate


# Evaluation instant shared by the retention tests
NOW = datetime(2024, 2, 5, 0, 0, 0)


@pytest.fixture
def now():
    """Fixed evaluation instant."""
    return NOW


@pytest.fixture
def settings():
    """
    Section settings as they come out of the configuration file.
    """
    return {
        'backuppath': '/var/backups/$database',
        'host': 'db.example.com',
        'database': 'shop',
        'username': 'backup',
        'password': 's3cret',
        'arguments': '--single-transaction',
        'fileextension': '.sql.gz',
        'command': 'mysqldump -h $host -u $username -p$password $arguments $database | gzip > $backup_file_path',
        'backup_file_path': '$backuppath/shop-20240101000000.sql.gz',
    }


@pytest.fixture
def backup_dir(tmp_path):
    """Empty backup directory."""
    path = tmp_path / 'backups'
    path.mkdir()
    return path


@pytest.fixture
def make_backup_files(backup_dir):
    """
    Create backup files in the backup directory.

    Returns a function taking file names and returning the directory.
    """
    def _make(*filenames):
        for filename in filenames:
            (backup_dir / filename).write_bytes(b'backup')
        return backup_dir

    return _make


@pytest.fixture
def make_candidate():
    """
    Build a BackupCandidate from a backup filename.

    The timestamp is read from the 14 digits before the extension and the
    age is computed against NOW (or the given instant).
    """
    def _make(filename, now=NOW):
        stamp = filename.rsplit('-', 1)[1][:14]
        timestamp = parse_timestamp(stamp)
        return BackupCandidate(filename, timestamp, calculate_age(timestamp, now))

    return _make


@pytest.fixture
def config_file(tmp_path, backup_dir):
    """
    Create a configuration file with a [Global] section and two databases.
    """
    path = tmp_path / 'dbbackup.conf'
    path.write_text(
        '[Global]\n'
        f'backuppath = {backup_dir}\n'
        'username = backup\n'
        'password = "s3cret"\n'
        'command = echo $database > $backup_file_path\n'
        'keepdaily = 7\n'
        '\n'
        '[Shop_DB]\n'
        'database = shop\n'
        'keepmonthly = 6\n'
        '\n'
        '[Blog 2]\n'
        'database = blog\n'
        'username = blogger\n'
        'fileextension = .sql\n'
    )
    return path
