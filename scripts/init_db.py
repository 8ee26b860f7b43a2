from pathlib import Path
import os
import sys

# Ensure repo root is on sys.path and is the working directory.
ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))
os.chdir(ROOT)

from stack_tracker.config import settings
from stack_tracker.storage import SqliteRatioStore

if __name__ == '__main__':
    if not settings.ratio_db_path:
        print('RATIO_DB_PATH is not set; ETF ratios will only be kept in memory.')
        sys.exit(1)
    store = SqliteRatioStore(settings.ratio_db_path)
    latest = store.latest()
    print('DB ready at', settings.ratio_db_path, '| calibrations:', store.count(),
          '| latest:', latest.date.isoformat() if latest else None)
