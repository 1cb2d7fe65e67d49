#!/usr/bin/env python3
"""
stc8prog - Main entry point.
This is a wrapper script that calls the main function from the stc8prog package.
"""

import sys
from stc8prog.cli import main

if __name__ == "__main__":
    sys.exit(main())
