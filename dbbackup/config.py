"""
Configuration for dbbackup.

Two layers live here:
- Runtime configuration (Config classes), read from the environment
- The backup configuration file: an INI file with one section per database
  and an optional [Global] section whose settings apply to every section
"""

import os
import configparser
from types import MappingProxyType
from typing import Dict, List, Mapping, Optional

from dbbackup.models import BackupSection


SECTION_GLOBAL = 'Global'


class ConfigurationError(Exception):
    """Raised when the backup configuration cannot be used."""
    pass


class ConfigurationMissingError(ConfigurationError):
    """Raised when no configuration file exists at the given path."""
    pass


class Config:
    """Base configuration"""

    BASE_DIR = os.getcwd()

    # Backup configuration file used when none is given on the command line
    CONFIG_FILE = os.environ.get('DBBACKUP_CONFIG') or os.path.join(BASE_DIR, 'dbbackup.conf')

    # Logging (an empty LOG_DIR disables the file log)
    LOG_DIR = os.environ.get('LOG_DIR', os.path.join(BASE_DIR, 'logs'))

    # Seconds before a backup command is abandoned (0 = no limit)
    COMMAND_TIMEOUT = int(os.environ.get('COMMAND_TIMEOUT', '0'))

    DEBUG = False
    DRY_RUN = False


class DebugConfig(Config):
    """Debug configuration: print resolved values, never execute or delete"""
    DEBUG = True
    DRY_RUN = True


class ProductionConfig(Config):
    """Production configuration"""
    DEBUG = False
    DRY_RUN = False


# Configuration dictionary
config = {
    'debug': DebugConfig,
    'production': ProductionConfig,
    'default': ProductionConfig
}


DEFAULT_SETTINGS = MappingProxyType({
    'fileextension': '.sql.gz',
    'command': 'mysqldump -h $host -u $username -p$password $arguments $database | gzip > $backup_file_path',
    'host': 'localhost',
    'arguments': '',
})


SETTING_HELP = {
    'backuppath': {
        'label': 'Backup Path',
        'description': 'The directory where backup files are written and old backups are pruned',
        'default': None
    },
    'fileextension': {
        'label': 'File Extension',
        'description': 'The extension appended to the dumped file name',
        'default': DEFAULT_SETTINGS['fileextension']
    },
    'command': {
        'label': 'Backup Command',
        'description': 'The command run to backup the database.  Can use any values in the form $settingname that are calculated for the per section configuration.',
        'default': DEFAULT_SETTINGS['command']
    },
    'host': {
        'label': 'Host',
        'description': 'The host that we will be connecting to in order to download the database',
        'default': DEFAULT_SETTINGS['host']
    },
    'database': {
        'label': 'Database',
        'description': 'The name of the database being connected to',
        'default': None
    },
    'username': {
        'label': 'Username',
        'description': 'The username used to connect to the database',
        'default': None
    },
    'password': {
        'label': 'Password',
        'description': 'The password for connecting to the database',
        'default': None
    },
    'arguments': {
        'label': 'Arguments',
        'description': 'Extra arguments passed to the backup command',
        'default': DEFAULT_SETTINGS['arguments']
    },
    'filebase': {
        'label': 'File name base',
        'description': 'The file base name to be used as the backup name',
        'default': 'The section name'
    },
    'keepyearly': {
        'label': 'Keep Yearly',
        'description': 'Keep the oldest backup of each year for this many years, or * for all years',
        'default': None
    },
    'keepmonthly': {
        'label': 'Keep Monthly',
        'description': 'Keep the oldest backup of each month for this many months, or * for all months',
        'default': None
    },
    'keepweekly': {
        'label': 'Keep Weekly',
        'description': 'Keep the oldest backup of each week for this many weeks, or * for all weeks',
        'default': None
    },
    'keepdaily': {
        'label': 'Keep Daily',
        'description': 'Keep the oldest backup of each day for this many days, or * for all days.  When no keep setting is given every backup is kept',
        'default': None
    },
}


def _unquote(value: str) -> str:
    """Strip one pair of surrounding double quotes, as INI readers do."""
    if len(value) >= 2 and value[0] == '"' and value[-1] == '"':
        return value[1:-1]
    return value


class BackupConfig:
    """
    Two-level backup configuration.

    Holds the [Global] settings and the settings of every named section,
    and produces the merged, read-only view used for one backup job.
    """

    def __init__(self, global_settings: Optional[Mapping[str, str]] = None,
                 sections: Optional[Dict[str, Mapping[str, str]]] = None,
                 defaults: Mapping[str, str] = DEFAULT_SETTINGS):
        self.defaults = MappingProxyType(dict(defaults))
        self.global_settings = MappingProxyType(dict(global_settings or {}))
        self.sections = {
            name: MappingProxyType(dict(settings))
            for name, settings in (sections or {}).items()
        }

    @property
    def section_names(self) -> List[str]:
        """Section names in configuration order."""
        return list(self.sections.keys())

    def section_settings(self, name: str) -> Mapping[str, str]:
        """
        Merge defaults, Global and section settings.

        Section settings override Global settings, which override the
        built-in defaults.

        Raises:
            KeyError: If the section does not exist
        """
        merged = dict(self.defaults)
        merged.update(self.global_settings)
        merged.update(self.sections[name])
        return MappingProxyType(merged)

    def get_section(self, name: str) -> BackupSection:
        return BackupSection(name, self.section_settings(name))

    def __iter__(self):
        for name in self.sections:
            yield self.get_section(name)

    def __len__(self):
        return len(self.sections)


def load_backup_config(path: str) -> BackupConfig:
    """
    Load a backup configuration file.

    Args:
        path: Path to the INI file

    Returns:
        BackupConfig with the Global settings split from the job sections

    Raises:
        ConfigurationMissingError: If the file does not exist
        ConfigurationError: If the file cannot be read or parsed
    """
    if not os.path.isfile(path):
        raise ConfigurationMissingError(
            f"Missing config file: {path}.  You can also specify a config path as an argument."
        )

    parser = configparser.ConfigParser(interpolation=None)
    # Setting names are case-sensitive
    parser.optionxform = str

    try:
        with open(path, 'r') as f:
            parser.read_file(f)
    except (OSError, configparser.Error) as e:
        raise ConfigurationError(f"Failed to read config file {path}: {e}")

    global_settings = {}
    sections = {}

    for name in parser.sections():
        values = {key: _unquote(value) for key, value in parser.items(name)}
        if name == SECTION_GLOBAL:
            global_settings = values
        else:
            sections[name] = values

    return BackupConfig(global_settings, sections)
