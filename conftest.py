import sys
from pathlib import Path
import os

# Ensure repo root on sys.path for imports from anywhere in tests tree.
ROOT = Path(__file__).resolve().parent
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

# Dancer defaults must not drift with the developer's shell.
for _name in ("PUPPET_RANDOM_SEED", "PUPPET_NOISE_OCTAVES", "PUPPET_STEP_FREQUENCY"):
    os.environ.pop(_name, None)
