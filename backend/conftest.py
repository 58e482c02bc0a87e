# Ensure 'backend/' is on sys.path so 'import app.*' works
# even when pytest rootdir is the repository root.
from pathlib import Path
import sys

_BACKEND_ROOT = Path(__file__).resolve().parent
if str(_BACKEND_ROOT) not in sys.path:
    sys.path.insert(0, str(_BACKEND_ROOT))
