from pathlib import Path

# Project root (the backend package directory)
BASE_PATH = Path(__file__).resolve().parent.parent
