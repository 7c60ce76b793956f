from __future__ import annotations

import argparse

import uvicorn

from controlplane.app.config import load_settings


def _parse_args() -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Run the Deploys control plane API server.")
    parser.add_argument("--host", default=None, help="Override DEPLOYS_HOST.")
    parser.add_argument("--port", type=int, default=None, help="Override DEPLOYS_PORT.")
    return parser.parse_args()


def main() -> None:
    args = _parse_args()
    settings = load_settings()
    uvicorn.run(
        "controlplane.app.main:app",
        host=args.host or settings.host,
        port=args.port or settings.port,
        workers=1,
        log_config=None,
    )


if __name__ == "__main__":
    main()
