"""
Backup file naming.

Backup files are named {filebase}-{YYYYmmddHHMMSS}{extension}, e.g.
shop-20240115020000.sql.gz. The timestamp embedded in the name is what
retention ages are computed from.
"""

import re
from datetime import datetime
from typing import Optional


TIMESTAMP_FORMAT = '%Y%m%d%H%M%S'


class MalformedTimestampError(ValueError):
    """Raised when a backup filename carries an invalid date."""
    pass


def sanitize_filebase(section_name: str) -> str:
    """Default file base for a section: its name with every non-letter removed."""
    return re.sub(r'[^a-z]+', '', section_name, flags=re.IGNORECASE)


def generate_backup_filename(filebase: str, extension: str, now: Optional[datetime] = None) -> str:
    """
    Generate the backup filename for a run.

    Args:
        filebase: File base name of the section
        extension: File extension, including the leading dot
        now: Backup time (defaults to the current local time)

    Returns:
        Filename (without path)
    """
    now = now or datetime.now()
    return f'{filebase}-{now.strftime(TIMESTAMP_FORMAT)}{extension}'


def parse_timestamp(stamp: str) -> datetime:
    """
    Decode a 14-digit YYYYmmddHHMMSS stamp.

    Raises:
        MalformedTimestampError: If the digits are not a valid date and time
    """
    if len(stamp) != 14 or not stamp.isdigit():
        raise MalformedTimestampError(f"Invalid backup timestamp: {stamp}")

    try:
        return datetime(
            int(stamp[0:4]),
            int(stamp[4:6]),
            int(stamp[6:8]),
            int(stamp[8:10]),
            int(stamp[10:12]),
            int(stamp[12:14])
        )
    except ValueError as e:
        raise MalformedTimestampError(f"Invalid backup timestamp {stamp}: {e}")


class BackupFilePattern:
    """
    Recognizes the backup files of one section.
    """

    def __init__(self, filebase: str, extension: str):
        self.filebase = filebase
        self.extension = extension
        self.regex = re.compile(
            '^' + re.escape(filebase) + r'-([0-9]{14})' + re.escape(extension) + '$'
        )

    def match(self, filename: str) -> Optional[datetime]:
        """
        Extract the backup timestamp from a filename.

        Args:
            filename: Candidate file name (no directory part)

        Returns:
            Backup timestamp, or None if the name is not a backup of this section

        Raises:
            MalformedTimestampError: If the name matches but the date is invalid
        """
        m = self.regex.match(filename)
        if not m:
            return None
        return parse_timestamp(m.group(1))

    def __repr__(self):
        return f'<BackupFilePattern {self.regex.pattern}>'
