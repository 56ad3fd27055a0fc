#!/usr/bin/env python3
"""
Module entry point for bite_scanner
Enables: python -m bite_scanner
"""
import sys

from run_pipeline import main

if __name__ == "__main__":
    sys.exit(main())
