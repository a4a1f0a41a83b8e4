import sys
from pathlib import Path

# Ensure `src` (containing the package) and this directory (shared fakes) are
# on sys.path for tests when not installed editable.
ROOT = Path(__file__).resolve().parent.parent
for path in (ROOT / "src", Path(__file__).resolve().parent):
    if str(path) not in sys.path:
        sys.path.insert(0, str(path))
