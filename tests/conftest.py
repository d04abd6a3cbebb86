"""
Pytest configuration.

The converter is a set of flat modules under src/, so tests import them by
module name once src/ is on sys.path. An editable install (pip install -e .)
works as well.
"""
import sys
from pathlib import Path

src_dir = Path(__file__).parent.parent / "src"
sys.path.insert(0, str(src_dir))
