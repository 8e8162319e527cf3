import sys
import warnings
from pathlib import Path

# Ensure repository root is importable for `pitchcontour` package resolution.
PROJECT_ROOT = Path(__file__).resolve().parents[2]
if str(PROJECT_ROOT) not in sys.path:
    sys.path.insert(0, str(PROJECT_ROOT))


def pytest_configure(config):
    # Suppress deprecation warnings emitted by optional backends pulled in by audioread
    warnings.filterwarnings("ignore", category=DeprecationWarning, module="audioread.*")
    warnings.filterwarnings("ignore", message=".*PySoundFile failed.*")
