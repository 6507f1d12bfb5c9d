"""
Unit tests for backup executor (dbbackup/backup/executor.py).

Tests BackupExecutor for running sections end to end against a temporary
backup directory.
"""

from unittest.mock import patch

import pytest

from dbbackup.backup.executor import BackupExecutor, execute_all_sections
from dbbackup.backup.shell import CommandError
from dbbackup.backup.storage import StorageError
from dbbackup.config import BackupConfig, load_backup_config
from dbbackup.models import BackupSection


SHOP_FILES = (
    'ShopDB-20220101000000.sql.gz',  # 765 days, 25 months
    'ShopDB-20231001000000.sql.gz',  # 127 days, 4 months
    'ShopDB-20240120000000.sql.gz',  # 16 days, 0 months
    'ShopDB-20240204000000.sql.gz',  # 1 day
)


@pytest.fixture
def backup_config(config_file):
    return load_backup_config(str(config_file))


@pytest.fixture
def shop_section(backup_config):
    return backup_config.get_section('Shop_DB')


@pytest.fixture
def shop_files(make_backup_files):
    return make_backup_files(
        *SHOP_FILES,
        'ShopDB-20230230000000.sql.gz',  # invalid date
        'Blog-20200101000000.sql',
        'notes.txt'
    )


class TestBackupExecutor:
    """Test BackupExecutor class."""

    def test_executor_initialization(self, shop_section):
        executor = BackupExecutor(shop_section)

        assert executor.section == shop_section
        assert executor.debug is False
        assert executor.result is None
        assert executor.logs == []

    def test_successful_backup(self, shop_section, backup_dir, now):
        result = BackupExecutor(shop_section, now=now).execute()

        backup_file = backup_dir / 'ShopDB-20240205000000.sql.gz'
        assert result.status == 'success'
        assert result.error_message is None
        assert result.backup_file_path == str(backup_file)
        assert backup_file.read_text().strip() == 'shop'
        assert result.started_at is not None
        assert result.completed_at is not None

    def test_filebase_setting(self, backup_dir, now):
        section = BackupSection('Anything', {
            'backuppath': str(backup_dir),
            'database': 'crm',
            'filebase': 'nightly_$database',
            'fileextension': '.dump',
            'command': 'echo $backup_filename > $backup_file_path',
        })

        result = BackupExecutor(section, now=now).execute()

        backup_file = backup_dir / 'nightly_crm-20240205000000.dump'
        assert result.status == 'success'
        assert backup_file.read_text().strip() == 'nightly_crm-20240205000000.dump'

    def test_prunes_old_backups(self, shop_section, shop_files, now):
        result = BackupExecutor(shop_section, now=now).execute()

        assert result.status == 'success'
        assert result.deleted == ['ShopDB-20220101000000.sql.gz']
        assert sorted(p.name for p in shop_files.iterdir()) == [
            'Blog-20200101000000.sql',
            'ShopDB-20230230000000.sql.gz',
            'ShopDB-20231001000000.sql.gz',
            'ShopDB-20240120000000.sql.gz',
            'ShopDB-20240204000000.sql.gz',
            'ShopDB-20240205000000.sql.gz',
            'notes.txt',
        ]

    def test_decisions_and_reasons(self, shop_section, shop_files, now):
        result = BackupExecutor(shop_section, now=now).execute()

        reasons = {d.filename: d.reasons for d in result.decisions}
        assert reasons == {
            'ShopDB-20220101000000.sql.gz': [],
            'ShopDB-20231001000000.sql.gz': ['monthly'],
            'ShopDB-20240120000000.sql.gz': ['monthly'],
            'ShopDB-20240204000000.sql.gz': ['daily'],
        }

    def test_current_backup_not_a_candidate(self, shop_section, shop_files, now):
        result = BackupExecutor(shop_section, now=now).execute()

        filenames = [d.filename for d in result.decisions]
        assert 'ShopDB-20240205000000.sql.gz' not in filenames

    def test_malformed_timestamp_skipped(self, shop_section, shop_files, now):
        result = BackupExecutor(shop_section, now=now).execute()

        assert result.status == 'success'
        assert (shop_files / 'ShopDB-20230230000000.sql.gz').exists()
        assert any('Skipping ShopDB-20230230000000.sql.gz' in log for log in result.logs)

    def test_verdicts_logged(self, shop_section, shop_files, now):
        result = BackupExecutor(shop_section, now=now).execute()

        assert any(
            'File: ShopDB-20220101000000.sql.gz' in log and 'Keep: NO' in log
            for log in result.logs
        )
        assert any('Keep: YES (daily)' in log for log in result.logs)

    def test_no_retention_configured_keeps_everything(self, backup_dir, make_backup_files, now):
        make_backup_files(*SHOP_FILES)
        section = BackupSection('Shop_DB', {
            'backuppath': str(backup_dir),
            'fileextension': '.sql.gz',
            'command': 'true',
        })

        result = BackupExecutor(section, now=now).execute()

        assert result.status == 'success'
        assert result.deleted == []
        assert all(d.keep for d in result.decisions)

    def test_password_masked(self, shop_section, now):
        result = BackupExecutor(shop_section, now=now).execute()

        assert 's3cret' not in result.command
        assert not any('s3cret' in log for log in result.logs)

    def test_short_password_only_masked_as_token(self, backup_dir, now):
        section = BackupSection('main', {
            'backuppath': str(backup_dir),
            'database': 'data',
            'username': 'backup',
            'password': 'a',
            'command': 'echo $database -u $username -p$password > $backup_file_path',
        })

        result = BackupExecutor(section, debug=True, now=now).execute()

        assert result.command == f'echo data -u backup -p**** > {backup_dir}/main-20240205000000'
        assert any('database => data' in log for log in result.logs)
        assert any('password => ****' in log for log in result.logs)

    @pytest.mark.parametrize("text, expected", [
        ('mysqldump -ps3cret db', 'mysqldump -p**** db'),
        ('pg_dump --password=s3cret', 'pg_dump --password=****'),
        ("dump -p 's3cret'", "dump -p '****'"),
        ('dump s3cretive', 'dump s3cretive'),
    ])
    def test_mask(self, shop_section, text, expected):
        executor = BackupExecutor(shop_section)
        executor.secrets = ['s3cret']

        assert executor._mask(text) == expected


class TestDebugMode:
    """Test that debug mode reports without side effects."""

    @patch('dbbackup.backup.executor.run_command')
    def test_debug_does_not_execute_or_delete(self, mock_run, shop_section, shop_files, now):
        result = BackupExecutor(shop_section, debug=True, now=now).execute()

        assert result.status == 'success'
        mock_run.assert_not_called()
        assert result.deleted == []
        assert (shop_files / 'ShopDB-20220101000000.sql.gz').exists()
        assert not (shop_files / 'ShopDB-20240205000000.sql.gz').exists()

    def test_debug_reports_verdicts(self, shop_section, shop_files, now):
        result = BackupExecutor(shop_section, debug=True, now=now).execute()

        verdicts = {d.filename: d.keep for d in result.decisions}
        assert verdicts['ShopDB-20220101000000.sql.gz'] is False
        assert verdicts['ShopDB-20240204000000.sql.gz'] is True

    def test_debug_dumps_resolved_settings(self, shop_section, now):
        result = BackupExecutor(shop_section, debug=True, now=now).execute()

        assert any('keepdaily => 7' in log for log in result.logs)
        assert any('password => ****' in log for log in result.logs)
        assert any('command => echo shop > ' in log for log in result.logs)
        assert not any('s3cret' in log for log in result.logs)

    def test_debug_does_not_create_directory(self, tmp_path, now):
        missing = tmp_path / 'not-yet'
        section = BackupSection('main', {
            'backuppath': str(missing),
            'command': 'true',
        })

        result = BackupExecutor(section, debug=True, now=now).execute()

        assert result.status == 'success'
        assert not missing.exists()


class TestSectionFailures:
    """Test that failures abort only the section."""

    @patch('dbbackup.backup.executor.run_command')
    def test_unresolved_reference_aborts_before_execution(self, mock_run, backup_dir, make_backup_files, now):
        make_backup_files(*SHOP_FILES)
        section = BackupSection('Shop_DB', {
            'backuppath': str(backup_dir),
            'fileextension': '.sql.gz',
            'command': 'dump $nothing',
            'keepdaily': '1',
        })

        result = BackupExecutor(section, now=now).execute()

        assert result.status == 'failed'
        assert 'nothing' in result.error_message
        mock_run.assert_not_called()
        assert len(list(backup_dir.iterdir())) == len(SHOP_FILES)

    @patch('dbbackup.backup.executor.run_command')
    def test_cyclic_retention_limit_aborts(self, mock_run, backup_dir, now):
        section = BackupSection('main', {
            'backuppath': str(backup_dir),
            'command': 'true',
            'keepdaily': '$keepweekly',
            'keepweekly': '$keepdaily',
        })

        result = BackupExecutor(section, now=now).execute()

        assert result.status == 'failed'
        assert 'Cyclic' in result.error_message
        mock_run.assert_not_called()

    def test_missing_backuppath(self, now):
        section = BackupSection('main', {'command': 'true'})

        result = BackupExecutor(section, now=now).execute()

        assert result.status == 'failed'
        assert 'No backuppath' in result.error_message

    @patch('dbbackup.backup.executor.run_command')
    def test_command_failure_skips_pruning(self, mock_run, shop_section, shop_files, now):
        mock_run.side_effect = CommandError('mysqldump: access denied')

        result = BackupExecutor(shop_section, now=now).execute()

        assert result.status == 'failed'
        assert result.error_message == 'mysqldump: access denied'
        assert result.decisions == []
        assert (shop_files / 'ShopDB-20220101000000.sql.gz').exists()

    @patch('dbbackup.backup.executor.LocalStorage.delete')
    def test_delete_failure_is_logged(self, mock_delete, shop_section, shop_files, now):
        mock_delete.side_effect = StorageError('read-only filesystem')

        result = BackupExecutor(shop_section, now=now).execute()

        assert result.status == 'success'
        assert result.deleted == []
        assert any('Failed to delete backup file' in log for log in result.logs)


class TestExecuteAllSections:
    """Test running a whole configuration."""

    def test_runs_every_section(self, backup_config, shop_files, now):
        summary = execute_all_sections(backup_config, now=now)

        assert summary['sections_processed'] == 2
        assert summary['sections_failed'] == 0
        assert summary['errors'] == []
        assert [r.section for r in summary['results']] == ['Shop_DB', 'Blog 2']

        # Blog keeps 7 days; its 2020 backup goes
        assert not (shop_files / 'Blog-20200101000000.sql').exists()
        assert (shop_files / 'Blog-20240205000000.sql').read_text().strip() == 'blog'
        assert summary['deleted'] == 2

    def test_failing_section_does_not_stop_run(self, backup_dir, now):
        backup_config = BackupConfig(
            {'backuppath': str(backup_dir), 'command': 'echo ok > $backup_file_path'},
            {
                'Broken': {'command': '$a', 'a': '$command'},
                'Working': {},
            }
        )

        summary = execute_all_sections(backup_config, now=now)

        assert summary['sections_processed'] == 2
        assert summary['sections_failed'] == 1
        assert summary['errors'][0].startswith('[Broken]')
        assert summary['results'][1].status == 'success'
        assert (backup_dir / 'Working-20240205000000.sql.gz').exists()

    def test_debug_run(self, backup_config, shop_files, now):
        summary = execute_all_sections(backup_config, debug=True, now=now)

        assert summary['deleted'] == 0
        assert all(r.status == 'success' for r in summary['results'])
        assert len(summary['logs']) > 0
