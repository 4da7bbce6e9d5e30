#!/usr/bin/env python3
"""
pgBackRest check probe - Main Entry Point

This script is a wrapper for the probe located in pgbackrest_check/check/
"""

import sys
from pgbackrest_check.check.__main__ import main

if __name__ == '__main__':
    sys.exit(main())
