"""Run a bot-only Truco game in the terminal (see backend/simulate.py)."""
import sys
from pathlib import Path

# backend/ holds flat modules; make them importable without installing
sys.path.insert(0, str(Path(__file__).resolve().parent / "backend"))

from simulate import main  # noqa: E402

if __name__ == "__main__":
    sys.exit(main())
