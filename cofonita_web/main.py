"""Server entry point"""

import sys

import uvicorn
from pydantic import ValidationError

from cofonita_web.app import create_app
from cofonita_web.core.config import get_settings


def run() -> None:
    try:
        settings = get_settings()
    except ValidationError as e:
        # Missing required configuration aborts startup
        print(f"Invalid configuration:\n{e}", file=sys.stderr)
        sys.exit(1)

    app = create_app(settings)
    uvicorn.run(
        app,
        host=settings.host,
        port=settings.port,
        log_config=None,
    )


if __name__ == "__main__":
    run()
