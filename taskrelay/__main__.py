import uvicorn

from .config import settings
from .logging_setup import setup_logging


def main() -> None:
    setup_logging(settings.log_level)
    uvicorn.run("taskrelay.main:app", host=settings.host, port=settings.port, log_config=None)


if __name__ == "__main__":
    main()
