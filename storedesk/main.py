import logging

from .app import create_app
from .common.config import settings

app = create_app()


def run() -> None:
    logging.basicConfig(level=logging.INFO)
    app.run(host=settings.APP_HOST, port=settings.APP_PORT)


if __name__ == "__main__":
    run()
