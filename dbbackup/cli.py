"""
Command line interface.

    dbbackup [config] [--debug] [-help|--help]
"""

import sys
import argparse
import logging
import textwrap

from dbbackup import configure_logging
from dbbackup.config import SETTING_HELP, ConfigurationError, config, load_backup_config
from dbbackup.backup.executor import execute_all_sections


logger = logging.getLogger(__name__)

HELP_DESCRIPTION_WIDTH = 50
HELP_GUTTER = 2

HELP_INTRO = """\
Create a configuration file in the ini format, where each section represents a single database backup to perform.  A [Global] section can be created to set settings that will be applied to all individual backups.
Example: dbbackup.conf
[Global]
backuppath = /path/to/backupdir
keepdaily = 7
keepweekly = 4
keepmonthly = 12
keepyearly = *
[MyDatabase]
database = dbname
username = username
password = secret

Any setting can be accessed by using dollar sign variables, e.g. $username.  Possible values are:"""


def render_help() -> str:
    """Render usage and the documentation of every setting."""
    name_width = max(len(name) for name in SETTING_HELP) + HELP_GUTTER
    indent = ' ' * name_width

    lines = [build_parser().format_usage().rstrip(), '', HELP_INTRO]

    for name, info in SETTING_HELP.items():
        wrapped = textwrap.wrap(info['description'], HELP_DESCRIPTION_WIDTH) or ['']
        lines.append(name.ljust(name_width) + wrapped[0])
        lines.extend(indent + line for line in wrapped[1:])

        default = info['default'] if info['default'] is not None else 'None'
        lines.append(f"{indent}Default: {default}")

    return '\n'.join(lines)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog='dbbackup',
        description='Back up databases and prune old backups',
        add_help=False
    )
    parser.add_argument(
        'config',
        nargs='?',
        default=None,
        help='Path to the configuration file'
    )
    parser.add_argument(
        '--debug',
        action='store_true',
        help='Print resolved settings and retention verdicts without executing or deleting anything'
    )
    parser.add_argument(
        '-help', '--help',
        dest='show_help',
        action='store_true',
        help='Show usage and the setting documentation'
    )
    return parser


def main(argv=None) -> int:
    args = build_parser().parse_args(argv)

    if args.show_help:
        print(render_help())
        return 0

    app_config = config['debug' if args.debug else 'default']
    configure_logging(debug=app_config.DEBUG, log_dir=app_config.LOG_DIR)

    config_path = args.config or app_config.CONFIG_FILE

    try:
        backup_config = load_backup_config(config_path)
    except ConfigurationError as e:
        print(e, file=sys.stderr)
        return 1

    logger.info(f"Loaded {len(backup_config)} backup sections from {config_path}")

    summary = execute_all_sections(
        backup_config,
        debug=app_config.DRY_RUN,
        timeout=app_config.COMMAND_TIMEOUT or None
    )

    for error in summary['errors']:
        logger.error(error)

    return 0


if __name__ == '__main__':
    sys.exit(main())
