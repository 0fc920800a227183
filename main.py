# main.py
from __future__ import annotations
import sys
from tools.geyser_cli import main

if __name__ == "__main__":
    sys.exit(main())
