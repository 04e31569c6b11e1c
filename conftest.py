"""Pytest configuration for Issue Manager tests."""

import sys
from pathlib import Path

# Add the repository root to path so tests can import issue_manager uninstalled
sys.path.insert(0, str(Path(__file__).parent))
