#!/usr/bin/env python3
"""
CLI tool to start the reminders FastAPI web server.

Usage:
    python3 web_server.py                    # Start with defaults
    python3 web_server.py --host 0.0.0.0     # Listen on all interfaces
    python3 web_server.py --port 8080        # Use custom port
    python3 web_server.py --reload           # Enable auto-reload for development

Environment Variables:
    REMINDERS_DB_URL: SQLAlchemy database URL
    VAPID_PUBLIC_KEY / VAPID_PRIVATE_KEY / VAPID_SUBJECT: Web Push keys
    REMINDERS_ENV: Environment (production/development, default: development)
    REMINDERS_LOG_LEVEL: Log level (DEBUG/INFO/WARNING/ERROR/CRITICAL)
"""

import argparse
import sys
from pathlib import Path

import uvicorn
from dotenv import load_dotenv


def parse_arguments() -> argparse.Namespace:
    """
    Parse command-line arguments.

    Arguments:
        --host: Host to bind (default: 127.0.0.1)
        --port: Port to bind (default: 8000)
        --reload: Enable auto-reload for development (default: False)
    """
    parser = argparse.ArgumentParser(
        description="Start the reminders FastAPI web server",
    )

    parser.add_argument(
        "--host",
        type=str,
        default="127.0.0.1",
        help="Host to bind the server to (default: 127.0.0.1). "
             "Use 0.0.0.0 to listen on all interfaces."
    )

    parser.add_argument(
        "--port",
        type=int,
        default=8000,
        help="Port to bind the server to (default: 8000)"
    )

    parser.add_argument(
        "--reload",
        action="store_true",
        help="Enable auto-reload for development. Not recommended for production."
    )

    return parser.parse_args()


def main() -> None:
    """Parse arguments, load .env and run the app under uvicorn."""
    args = parse_arguments()

    # Ensure the repo root is on sys.path so "backend.src.main" is importable
    repo_root = Path(__file__).parent
    if str(repo_root) not in sys.path:
        sys.path.insert(0, str(repo_root))

    # Explicit environment variables take precedence over .env values
    load_dotenv(dotenv_path=repo_root / ".env", override=False)

    print(f"\nStarting reminders web server on {args.host}:{args.port}")
    print(f"Auto-reload: {'enabled' if args.reload else 'disabled'}")
    print(f"Health check: http://{args.host}:{args.port}/health\n")

    try:
        uvicorn.run(
            "backend.src.main:app",
            host=args.host,
            port=args.port,
            reload=args.reload,
            log_level="info",
        )
    except KeyboardInterrupt:
        print("\n\nServer stopped by user (CTRL+C)")
        sys.exit(0)


if __name__ == "__main__":
    main()
