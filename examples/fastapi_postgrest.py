"""Golden path: FastAPI functions backed by a PostgREST datastore.

Set ``KPIBOARD_DATASTORE_URL`` (or ``SUPABASE_URL``) and
``KPIBOARD_DATASTORE_API_KEY`` (or ``SUPABASE_ANON_KEY``) before running.
"""

import uvicorn

from kpiboard.config import KpiboardConfig
from kpiboard.servers.fastapi import configure_logging, create_app


def token_validator(token: str) -> bool:
    # Plug in JWT verification here; the datastore still applies its own policies.
    return token.count(".") == 2


def main() -> None:
    config = KpiboardConfig()
    configure_logging(config.log_level)
    app = create_app(config, token_validator=token_validator)
    uvicorn.run(app, host=config.host, port=config.port)


if __name__ == "__main__":
    main()
