"""Jianghu — launcher. Starts the API server."""

import argparse
import logging
import os
import subprocess
import sys
from pathlib import Path

from dotenv import load_dotenv

ROOT = Path(__file__).parent
load_dotenv(ROOT / ".env")

HOST = os.getenv("HOST", "127.0.0.1")
PORT = os.getenv("PORT", "13013")


def main():
    parser = argparse.ArgumentParser(description="Jianghu launcher")
    parser.add_argument("--data-dir", type=Path, default=None,
                        help="Data storage directory (default: ./data)")
    parser.add_argument("--demo", action="store_true",
                        help="Wipe factions and the event log, then seed the default sects")
    parser.add_argument("--log-level", default="INFO",
                        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
                        help="Logging level (default: INFO)")
    args = parser.parse_args()

    logging.basicConfig(
        level=args.log_level,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    data_dir = args.data_dir or ROOT / "data"
    if args.demo:
        from jianghu.storage import Storage, seed_factions
        for name in ("factions.json", "relationships.json", "event_log.json"):
            (data_dir / name).unlink(missing_ok=True)
        factions = seed_factions(Storage(data_dir))
        logging.getLogger("jianghu").info("Seeded %d sects in %s", len(factions), data_dir)

    # Subprocess picks up the same data dir
    env = os.environ.copy()
    env["DATA_DIR"] = str(data_dir.resolve())

    print(f"Starting jianghu on http://{HOST}:{PORT} ...")
    proc = subprocess.run(
        [sys.executable, "-m", "uvicorn", "jianghu.app:app",
         "--host", HOST, "--port", PORT, "--log-level", args.log_level.lower()],
        cwd=ROOT, env=env,
    )
    sys.exit(proc.returncode)


if __name__ == "__main__":
    main()
