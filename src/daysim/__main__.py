import os
import sys
from pathlib import Path

from dotenv import load_dotenv
from sqlalchemy.exc import OperationalError

# Ensure the src directory is on sys.path when running as a script
_SRC_DIR = Path(__file__).resolve().parents[1]
if str(_SRC_DIR) not in sys.path:
    sys.path.insert(0, str(_SRC_DIR))

from daysim.presentation.cli import configure_logging, run

load_dotenv()


def main(argv=None) -> int:
    configure_logging(os.getenv("DAYSIM_LOG_LEVEL", "WARNING"))
    try:
        return run(argv)
    except KeyboardInterrupt:
        print("\nSession ended.")
        return 130
    except OperationalError as exc:
        if not os.getenv("DAYSIM_DATABASE_URL"):
            raise
        print("Database unavailable; retrying in-memory mode.")
        print(f"Reason: {exc.orig}")
        os.environ.pop("DAYSIM_DATABASE_URL", None)
        return run(argv)


if __name__ == "__main__":
    sys.exit(main())
