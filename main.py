"""Role Game — dev launcher. Starts the API server in watch mode."""

import argparse
import logging
import os
import signal
import subprocess
import sys
from pathlib import Path

from dotenv import load_dotenv

ROOT = Path(__file__).parent
load_dotenv(ROOT / ".env")

HOST = os.getenv("HOST", "0.0.0.0")
BACKEND_PORT = os.getenv("BACKEND_PORT", "13013")


def main():
    parser = argparse.ArgumentParser(description="Role Game dev launcher")
    parser.add_argument("--data-dir", type=Path, default=None,
                        help="Data storage directory (default: ./data)")
    parser.add_argument("--new-game", action="store_true",
                        help="Delete the saved game before starting")
    parser.add_argument("--log-level", default=os.getenv("LOG_LEVEL", "info"),
                        help="Log level for the server (default: info)")
    args = parser.parse_args()

    logging.basicConfig(level=args.log_level.upper())

    if args.new_game:
        from role_game import storage
        storage.init_storage(args.data_dir or ROOT / "data")
        if storage.delete_game():
            print("Saved game deleted.")

    # Build env for the subprocess so the app picks up the same data dir
    env = os.environ.copy()
    if args.data_dir:
        env["DATA_DIR"] = str(args.data_dir.resolve())

    procs: list[subprocess.Popen] = []

    def shutdown(*_):
        print("\nShutting down...")
        for p in procs:
            p.terminate()
        for p in procs:
            p.wait()
        sys.exit(0)

    signal.signal(signal.SIGINT, shutdown)
    signal.signal(signal.SIGTERM, shutdown)

    print(f"Starting server on http://localhost:{BACKEND_PORT} ...")
    procs.append(subprocess.Popen(
        ["uvicorn", "role_game.app:app", "--reload", "--host", HOST, "--port", BACKEND_PORT,
         "--log-level", args.log_level.lower()],
        cwd=ROOT, env=env,
    ))

    for p in procs:
        p.wait()


if __name__ == "__main__":
    main()
