import logging

import uvicorn
from dotenv import load_dotenv

from infrastructure.db.country_repository_mongo import MongoCountryRepository
from interfaces.http.app import create_app
from interfaces.http.oauth import DiscordOAuthClient
from interfaces.http.settings import load_settings


load_dotenv()


def main() -> None:
    settings = load_settings()

    logging.basicConfig(
        level=settings.log_level,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    country_repo = MongoCountryRepository(settings.mongo_uri, settings.mongo_db_name)
    oauth_client = DiscordOAuthClient(
        settings.discord_client_id,
        settings.discord_client_secret,
        settings.discord_callback_url,
    )

    app = create_app(settings, country_repo, oauth_client)
    logging.getLogger(__name__).info("Server running on port %s", settings.port)
    uvicorn.run(app, host="0.0.0.0", port=settings.port, log_config=None)


if __name__ == "__main__":
    main()
