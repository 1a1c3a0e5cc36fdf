"""Serve the mock backend: ``python -m aidraw_client.mock_backend --port 8090``."""

from __future__ import annotations

import argparse

import uvicorn

from aidraw_client.mock_backend.app import create_app


def _parse_args() -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Run the in-memory AI drawing mock backend.")
    parser.add_argument("--host", default="127.0.0.1")
    parser.add_argument("--port", type=int, default=8090)
    parser.add_argument("--initial-credits", type=int, default=10)
    parser.add_argument("--pending-polls", type=int, default=2, help="PENDING responses before a task completes.")
    return parser.parse_args()


def main() -> None:
    args = _parse_args()
    app = create_app(initial_credits=args.initial_credits, pending_polls=args.pending_polls)
    uvicorn.run(app, host=args.host, port=args.port)


if __name__ == "__main__":
    main()
