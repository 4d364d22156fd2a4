"""Run the API with uvicorn: python -m rabbithole.api"""

from __future__ import annotations

import uvicorn

from rabbithole.config import API_HOST, API_PORT, DEBUG


def main() -> None:
    uvicorn.run("rabbithole.api.app:app", host=API_HOST, port=API_PORT, reload=DEBUG)


if __name__ == "__main__":
    main()
