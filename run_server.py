#!/usr/bin/env python3
"""
Serve a folder of .ctb session files with uvicorn.

    python run_server.py ~/tracks --port 5000
    python run_server.py --sample-data   # fill ./data/sessions with demo sessions first
"""

import argparse
import os
from pathlib import Path

from tracklog.main import DATA_FOLDER_ENV, DEFAULT_DATA_FOLDER


def main():
    parser = argparse.ArgumentParser(description="Serve compact track sessions over HTTP")
    parser.add_argument(
        "data_folder",
        nargs="?",
        type=Path,
        default=DEFAULT_DATA_FOLDER,
        help=f"folder holding <id>.ctb files (default: {DEFAULT_DATA_FOLDER})",
    )
    parser.add_argument("--port", "-p", type=int, default=8000)
    parser.add_argument("--host", "-H", default="127.0.0.1")
    parser.add_argument("--debug", "-d", action="store_true", help="reload on source changes")
    parser.add_argument(
        "--sample-data",
        action="store_true",
        help="write a run, a paused run and a drive into the folder before serving",
    )
    args = parser.parse_args()

    if args.sample_data:
        from tracklog.utils.sample_data import generate_test_data_set
        files = generate_test_data_set(args.data_folder)
        print(f"Wrote {len(files)} sample sessions to {args.data_folder}")

    if args.data_folder.exists():
        os.environ[DATA_FOLDER_ENV] = str(args.data_folder)
    else:
        print(f"{args.data_folder} does not exist; set a folder later with POST /folder")

    import uvicorn

    uvicorn.run(
        "tracklog.main:app",
        host=args.host,
        port=args.port,
        reload=args.debug,
        log_level="info",
    )


if __name__ == "__main__":
    main()
