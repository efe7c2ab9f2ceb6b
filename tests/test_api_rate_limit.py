import unittest

from fastapi.testclient import TestClient

from conftest import COST_TO_RESPIN, COST_TO_SPIN, KNOWN_ENTROPY
from gambit.config import settings
from gambit.core.chain import BlockClock
from gambit.core.database import Database
from gambit.core.entropy import FixedEntropy
from gambit.core.gambit import DegenGambit
from gambit.core.security import sign_player
from gambit.main import create_app
from gambit.routers.api import limiter


class TestApiRateLimit(unittest.TestCase):
    def setUp(self):
        # A fresh machine and app for each test, with a clean limiter
        self.db = Database(":memory:")
        machine = DegenGambit(
            self.db,
            BlockClock(),
            FixedEntropy(KNOWN_ENTROPY),
            blocks_to_act=20,
            cost_to_spin=COST_TO_SPIN,
            cost_to_respin=COST_TO_RESPIN,
        )
        machine.treasury.deposit("alice", 10_000_000)
        self.app = create_app(machine=machine, produce_blocks=False)
        limiter.reset()

        # Ensure rate limiting is enabled for the test
        self._saved = settings.rate_limit.model_copy()
        settings.rate_limit.enabled = True
        settings.rate_limit.game_requests = "5/minute"

    def tearDown(self):
        settings.rate_limit = self._saved
        limiter.reset()
        self.db.close()

    def test_rate_limit_applied_to_game_endpoints(self):
        endpoint = "/api/spin"
        body = {"boosted": False, "value": COST_TO_RESPIN}

        with TestClient(self.app) as client:
            client.cookies.set("player", sign_player("alice"))
            # The first 5 requests should succeed
            for i in range(5):
                response = client.post(endpoint, json=body)
                self.assertEqual(
                    response.status_code, 200,
                    f"Request {i+1}/6 should have succeeded, but got {response.status_code}."
                )

            # The 6th request should be rate-limited
            response = client.post(endpoint, json=body)
            self.assertEqual(
                response.status_code, 429,
                f"The 6th request should have been rate-limited (429), but got {response.status_code}."
            )

    def test_read_endpoints_use_their_own_limit(self):
        with TestClient(self.app) as client:
            client.cookies.set("player", sign_player("alice"))
            for _ in range(6):
                client.post("/api/spin", json={"value": COST_TO_RESPIN})
            response = client.get("/api/spin-cost")
            self.assertEqual(response.status_code, 200)


if __name__ == "__main__":
    unittest.main()
