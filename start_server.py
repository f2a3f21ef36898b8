#!/usr/bin/env python3
"""Run the API with uvicorn on the port given by the PORT environment variable."""

import os
import sys

import uvicorn


def _port() -> int:
    value = os.environ.get("PORT", "8000")
    try:
        return int(value)
    except ValueError:
        print(f"Warning: Invalid PORT value '{value}', using default 8000", file=sys.stderr)
        return 8000


if __name__ == "__main__":
    sys.path.insert(0, os.path.join(os.path.dirname(os.path.abspath(__file__)), "src"))
    # single worker: loading sessions live in process memory
    uvicorn.run("farmdispatch.main:app", host="0.0.0.0", port=_port(), proxy_headers=True, forwarded_allow_ips="*")
