"""Serve the progress API: `python -m learning_profile`."""

from __future__ import annotations

import uvicorn

from .settings import settings


def main() -> None:
	uvicorn.run("learning_profile.main:app", host=settings.host, port=settings.port, log_level=settings.log_level.lower())


if __name__ == "__main__":  # pragma: no cover
	main()
