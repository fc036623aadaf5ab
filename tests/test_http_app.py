import unittest

from fastapi.testclient import TestClient

from application.services import ExternalProfile
from interfaces.http.app import create_app
from interfaces.http.settings import Settings, load_settings
from fakes import FakeDiscordOAuthClient, InMemoryCountryRepository

FRONTEND = "http://localhost:3000"


def make_settings() -> Settings:
    return Settings(
        mongo_uri="mongodb://localhost:27017",
        mongo_db_name="test",
        session_secret="test-secret",
        discord_client_id="client-id",
        discord_client_secret="client-secret",
        discord_callback_url="http://testserver/api/auth/discord/callback",
        frontend_origin=FRONTEND,
    )


class HttpAppTestCase(unittest.TestCase):
    def setUp(self) -> None:
        self.repo = InMemoryCountryRepository()
        self.oauth = FakeDiscordOAuthClient(
            {"alice": ExternalProfile("discord", "111", "alice")}
        )
        self.app = create_app(make_settings(), self.repo, self.oauth)
        self.client = TestClient(self.app)

    def login(self, code: str = "alice"):
        return self.client.get(
            "/api/auth/discord/callback",
            params={"code": code, "state": "s"},
            follow_redirects=False,
        )


class PublicRouteTests(HttpAppTestCase):
    def test_root_reports_backend_running(self):
        resp = self.client.get("/")
        self.assertEqual(resp.status_code, 200)
        self.assertEqual(resp.text, "Backend running")
        self.assertTrue(resp.headers["content-type"].startswith("text/plain"))

    def test_login_redirects_to_discord(self):
        resp = self.client.get("/api/auth/discord", follow_redirects=False)
        self.assertEqual(resp.status_code, 302)
        self.assertTrue(resp.headers["location"].startswith("https://discord.com/"))


class LoginCallbackTests(HttpAppTestCase):
    def test_successful_callback_redirects_to_frontend_and_creates_country(self):
        resp = self.login()

        self.assertEqual(resp.status_code, 302)
        self.assertEqual(resp.headers["location"], FRONTEND)
        self.assertEqual(self.repo.countries["111"].funding, 1000)

    def test_failed_callback_redirects_to_root_without_session(self):
        with self.assertLogs("application.services", level="ERROR"):
            resp = self.login("bad")

        self.assertEqual(resp.status_code, 302)
        self.assertEqual(resp.headers["location"], "/")
        self.assertEqual(self.client.get("/api/auth/check").status_code, 401)
        self.assertEqual(self.repo.countries, {})

    def test_logout_ends_session(self):
        self.login()

        resp = self.client.post("/api/auth/logout")

        self.assertEqual(resp.json(), {"message": "Logged out"})
        self.assertEqual(self.client.get("/api/auth/check").status_code, 401)


class AuthCheckTests(HttpAppTestCase):
    def test_without_session_is_401(self):
        resp = self.client.get("/api/auth/check")
        self.assertEqual(resp.status_code, 401)
        self.assertEqual(resp.json(), {"message": "Not logged in"})

    def test_with_session_returns_user_and_country(self):
        self.login()

        body = self.client.get("/api/auth/check").json()

        self.assertEqual(body["user"], {"id": "111", "username": "alice"})
        self.assertEqual(body["country"]["userId"], "111")
        self.assertEqual(body["country"]["_id"], "doc-1")
        self.assertEqual(body["country"]["healthcare"], 50)

    def test_country_removed_behind_session_gives_degraded_check(self):
        self.login()
        del self.repo.countries["111"]

        resp = self.client.get("/api/auth/check")

        self.assertEqual(resp.status_code, 200)
        self.assertEqual(
            resp.json(),
            {"user": {"id": "111", "username": None}, "country": None},
        )


class UpdateCountryTests(HttpAppTestCase):
    def test_update_returns_full_updated_country(self):
        self.login()

        resp = self.client.post("/api/country/funding/2000")

        self.assertEqual(resp.status_code, 200)
        body = resp.json()
        self.assertEqual(body["funding"], 2000)
        self.assertEqual(body["companies"], 5)
        self.assertEqual(body["infrastructure"], 50)
        self.assertEqual(body["userId"], "111")

    def test_written_value_is_read_back_by_check(self):
        self.login()
        self.client.post("/api/country/education/12.5")
        self.client.post("/api/country/education/12.5")

        country = self.client.get("/api/auth/check").json()["country"]

        self.assertEqual(country["education"], 12.5)

    def test_unauthenticated_update_is_401_and_writes_nothing(self):
        self.login()
        anonymous = TestClient(self.app)

        resp = anonymous.post("/api/country/funding/2000")

        self.assertEqual(resp.status_code, 401)
        self.assertEqual(resp.json(), {"message": "Not logged in"})
        self.assertEqual(self.repo.countries["111"].funding, 1000)

    def test_unknown_field_is_400(self):
        self.login()

        with self.assertLogs("application.services", level="WARNING"):
            resp = self.client.post("/api/country/username/5")

        self.assertEqual(resp.status_code, 400)
        self.assertEqual(resp.json(), {"message": "Unknown field: username"})
        self.assertEqual(self.repo.countries["111"].username, "alice")

    def test_non_numeric_amount_is_400(self):
        self.login()

        resp = self.client.post("/api/country/funding/lots")

        self.assertEqual(resp.status_code, 400)
        self.assertEqual(resp.json(), {"message": "Amount must be a number."})

    def test_huge_amount_is_stored_as_a_float(self):
        self.login()

        resp = self.client.post("/api/country/funding/1e19")

        self.assertEqual(resp.status_code, 200)
        self.assertEqual(resp.json()["funding"], 1e19)
        self.assertIsInstance(self.repo.countries["111"].funding, float)

    def test_update_for_missing_country_returns_null(self):
        self.login()
        del self.repo.countries["111"]

        resp = self.client.post("/api/country/funding/2000")

        self.assertEqual(resp.status_code, 200)
        self.assertIsNone(resp.json())


class CorsTests(HttpAppTestCase):
    def test_frontend_origin_may_send_credentials(self):
        resp = self.client.options(
            "/api/auth/check",
            headers={
                "Origin": FRONTEND,
                "Access-Control-Request-Method": "GET",
            },
        )
        self.assertEqual(resp.status_code, 200)
        self.assertEqual(resp.headers["access-control-allow-origin"], FRONTEND)
        self.assertEqual(resp.headers["access-control-allow-credentials"], "true")

    def test_other_origins_are_not_allowed(self):
        resp = self.client.get("/", headers={"Origin": "http://evil.example"})
        self.assertNotIn("access-control-allow-origin", resp.headers)


class LifespanTests(unittest.TestCase):
    def test_database_is_pinged_and_closed(self):
        repo = InMemoryCountryRepository()
        app = create_app(make_settings(), repo, FakeDiscordOAuthClient())

        with self.assertLogs("interfaces.http.app", level="INFO") as logs:
            with TestClient(app) as client:
                self.assertEqual(client.get("/").status_code, 200)

        self.assertIn("MongoDB connected", logs.output[0])
        self.assertTrue(repo.closed)

    def test_unreachable_database_does_not_stop_the_server(self):
        repo = InMemoryCountryRepository()
        repo.ping_error = ConnectionError("connection refused")
        app = create_app(make_settings(), repo, FakeDiscordOAuthClient())

        with self.assertLogs("interfaces.http.app", level="ERROR") as logs:
            with TestClient(app) as client:
                self.assertEqual(client.get("/").text, "Backend running")

        self.assertIn("MongoDB connection error", logs.output[0])


class SettingsTests(unittest.TestCase):
    REQUIRED = {
        "MONGO_URI": "mongodb://db:27017",
        "SESSION_SECRET": "s",
        "DISCORD_CLIENT_ID": "id",
        "DISCORD_CLIENT_SECRET": "secret",
        "DISCORD_CALLBACK_URL": "http://localhost:3001/api/auth/discord/callback",
    }

    def test_defaults(self):
        settings = load_settings(dict(self.REQUIRED))
        self.assertEqual(settings.port, 3001)
        self.assertEqual(settings.frontend_origin, "http://localhost:3000")
        self.assertEqual(settings.mongo_db_name, "wtc")
        self.assertEqual(settings.log_level, "INFO")

    def test_overrides(self):
        env = dict(self.REQUIRED, PORT="8080", FRONTEND_ORIGIN="https://app.example", LOG_LEVEL="debug")
        settings = load_settings(env)
        self.assertEqual(settings.port, 8080)
        self.assertEqual(settings.frontend_origin, "https://app.example")
        self.assertEqual(settings.log_level, "DEBUG")

    def test_missing_required_variables(self):
        env = dict(self.REQUIRED)
        del env["SESSION_SECRET"]
        del env["DISCORD_CLIENT_ID"]

        with self.assertRaises(RuntimeError) as ctx:
            load_settings(env)

        self.assertIn("SESSION_SECRET", str(ctx.exception))
        self.assertIn("DISCORD_CLIENT_ID", str(ctx.exception))


if __name__ == "__main__":
    unittest.main()
