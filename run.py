#!/usr/bin/env python3
"""Development runner"""
import sys
from dbbackup.cli import main

if __name__ == '__main__':
    # Same arguments as the dbbackup console script
    sys.exit(main())
