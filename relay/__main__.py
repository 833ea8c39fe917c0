# relay/__main__.py
"""
Run the relay with uvicorn.

Usage:
  PORT=8080 TELEGRAM_BOT_TOKEN=... TELEGRAM_CHAT_ID=... python -m relay
"""
from __future__ import annotations

import os

import uvicorn

PORT = int(os.getenv("PORT", "8080"))


def main() -> None:
    uvicorn.run("relay.main:app", host="0.0.0.0", port=PORT)


if __name__ == "__main__":
    main()
