"""
Launcher for the Weave backend.

Runs the FastAPI app under uvicorn on the configured host and port.
"""
import argparse
import sys

import uvicorn

from weave.config import get_port, get_setting, set_port


def main() -> int:
    parser = argparse.ArgumentParser(description="Run the Weave backend")
    parser.add_argument("--host", default=None, help="Bind address (default: server_host setting)")
    parser.add_argument("--port", type=int, default=None, help="Port (default: server_port setting)")
    parser.add_argument("--save-port", action="store_true", help="Persist --port to the config file")
    parser.add_argument("--reload", action="store_true", help="Auto-reload on code changes (development)")
    args = parser.parse_args()

    if args.port is not None and args.save_port:
        set_port(args.port)

    host = args.host or get_setting("server_host")
    port = args.port or get_port()

    print(f"Starting Weave backend on http://{host}:{port}")
    uvicorn.run(
        "weave.main:app",
        host=host,
        port=port,
        reload=args.reload,
        log_level=str(get_setting("log_level")).lower(),
    )
    return 0


if __name__ == "__main__":
    sys.exit(main())
