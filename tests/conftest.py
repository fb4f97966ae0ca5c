# pytest configuration for site_backup tests
import sys
from datetime import datetime
from pathlib import Path

import pytest

# Ensure the package root is in sys.path for proper imports
repo_root = Path(__file__).parent.parent
if str(repo_root) not in sys.path:
    sys.path.insert(0, str(repo_root))


@pytest.fixture
def fixed_now() -> datetime:
    return datetime(2026, 10, 19, 11, 30, 5)


@pytest.fixture
def leftovers():
    """Return the temporary .partial files remaining in a directory."""
    def _find(directory: Path):
        return sorted(p.name for p in Path(directory).iterdir() if p.name.endswith(".partial"))
    return _find
