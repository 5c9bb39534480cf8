#!/usr/bin/env python
"""
Development launcher for Tamilarr

Starts the addon with auto reload and prints the manifest URL to install in
the media-center client.

Usage:
    python backend/dev.py                          # 127.0.0.1:7000
    python backend/dev.py --port 7100 --verbose    # custom port, DEBUG logs
    python backend/dev.py --json-logs              # structured log lines
    python backend/dev.py --p2p                    # ignore REAL_DEBRID_API_KEY

Environment set for the server process:
    DEV_MODE=true, DEBUG, LOG_FORMAT, PUBLIC_URL (unless already set)
"""

import argparse
import os
import sys


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Run Tamilarr locally with auto reload")
    parser.add_argument("--host", default="127.0.0.1", help="Bind address (default: 127.0.0.1)")
    parser.add_argument("--port", type=int, default=7000, help="Port (default: 7000)")
    parser.add_argument("--verbose", action="store_true", help="DEBUG log level")
    parser.add_argument("--json-logs", action="store_true", help="Emit JSON log lines")
    parser.add_argument(
        "--p2p",
        action="store_true",
        help="Serve peer-to-peer streams only, even if a Real-Debrid key is configured"
    )
    return parser


def main():
    args = build_parser().parse_args()

    backend_dir = os.path.abspath(os.path.dirname(__file__))
    # The reload subprocess imports tamilarr.main from backend/
    os.environ["PYTHONPATH"] = backend_dir + os.pathsep + os.environ.get("PYTHONPATH", "")
    os.environ["DEV_MODE"] = "true"
    os.environ["DEBUG"] = "true" if args.verbose else "false"
    os.environ["LOG_FORMAT"] = "json" if args.json_logs else "text"
    os.environ.setdefault("PUBLIC_URL", f"http://{args.host}:{args.port}")
    if args.p2p:
        os.environ["REAL_DEBRID_API_KEY"] = ""

    mode = "peer-to-peer" if args.p2p or not os.environ.get("REAL_DEBRID_API_KEY") else "Real-Debrid"
    print(f"Tamilarr dev server on http://{args.host}:{args.port} ({mode})")
    print(f"Install the addon from {os.environ['PUBLIC_URL']}/manifest.json")
    print("Press CTRL+C to stop\n")

    try:
        import uvicorn
        os.chdir(backend_dir)
        uvicorn.run(
            "tamilarr.main:app",
            host=args.host,
            port=args.port,
            reload=True,
            reload_dirs=["tamilarr"],
            log_level="debug" if args.verbose else "info",
        )
    except KeyboardInterrupt:
        sys.exit(0)
    except Exception as e:
        print(f"Could not start the development server: {e}")
        print(f"Is port {args.port} already in use? Is uvicorn installed (pip install -e .)?")
        sys.exit(1)


if __name__ == "__main__":
    main()
