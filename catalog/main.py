import logging

import uvicorn

from catalog.config import settings
from catalog.db.sqlite import init_db


def main() -> None:
    logging.basicConfig(
        level=getattr(logging, settings.log_level, logging.INFO),
        format="%(asctime)s | %(levelname)s | %(name)s | %(message)s",
    )

    init_db()

    uvicorn.run("catalog.web.main:app", host=settings.host, port=settings.port, log_config=None)

if __name__ == "__main__":
    main()
