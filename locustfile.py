import os
import uuid

import httpx
from locust import User, between, task
from websocket import create_connection

HOST = os.environ.get("GAMBIT_HOST", "http://127.0.0.1:8000")
ADMIN_TOKEN = os.environ.get("ADMIN_TOKEN", "CHANGE_THIS_IN_PRODUCTION_PLEASE")


class GambitUser(User):
    """Spins, waits for a block and accepts, while listening on the WebSocket."""

    wait_time = between(1, 2)
    host = HOST

    def on_start(self):
        """
        Called when a Locust user starts.
        Registers a fresh player, funds it through the admin faucet and opens a websocket.
        """
        self.player = f"locust-{uuid.uuid4().hex[:12]}"
        self.client = httpx.Client(base_url=self.host)

        try:
            # The signed session cookie comes back on the register response
            response = self.client.post("/api/register", json={"player": self.player})
            if response.status_code == 200:
                response = self.client.post(
                    "/admin/faucet",
                    json={"player": self.player, "amount": 100_000_000},
                    headers={"X-Admin-Token": ADMIN_TOKEN},
                )
        except httpx.RequestError as e:
            print(f"Register or faucet request failed during connection: {e}")
            self.environment.runner.quit()
            return

        if response.status_code != 200:
            print(f"Register or faucet failed. Expected status 200, but got {response.status_code}. Response: {response.text}")
            self.environment.runner.quit()
            return

        ws_url = self.host.replace("http", "ws", 1) + "/ws"
        try:
            self.ws = create_connection(ws_url)
        except Exception as e:
            print(f"Failed to connect to WebSocket: {e}")
            self.environment.runner.quit()

    def on_stop(self):
        if hasattr(self, "ws"):
            self.ws.close()
        if hasattr(self, "client"):
            self.client.close()

    @task(3)
    def spin_or_accept(self):
        """Accept when a spin is pending and a block has passed, otherwise spin."""
        session = self.client.get("/api/session").json()
        block = session["current_block"]
        if session["pending"] and block == session["last_action_block"]:
            return
        if session["pending"] and block <= session["deadline"]:
            self.client.post("/api/accept")
        else:
            self.client.post("/api/spin", json={"boosted": False, "value": session["spin_cost"]})

    @task
    def send_ping(self):
        if not hasattr(self, "ws"):
            return

        try:
            self.ws.send('{"type":"ping"}')
            result = self.ws.recv()
            # Notifications may arrive before the pong
            while result != b'{"type":"pong"}':
                result = self.ws.recv()
        except Exception as e:
            # If the connection is broken, stop this user.
            print(f"WebSocket error during ping: {e}")
            self.environment.runner.stop()
