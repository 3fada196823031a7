"""Locust profile for mixed create/redirect/stats traffic.

Each simulated user signs its own token with ``JWT_SECRET_KEY`` and keeps a
pool of the codes it created, so redirect and stats traffic hit live links.

    JWT_SECRET_KEY=... locust -f stress/locustfile.py --host http://localhost:8000
"""

import random
import uuid

from locust import HttpUser, between, task

from shortlinks.auth import create_access_token

MAX_CODES_PER_USER = 200


class ShortLinkUser(HttpUser):
    """Mixed workload user; redirects dominate as they do in production."""

    wait_time = between(0.1, 0.5)

    def on_start(self) -> None:
        self.codes: list[str] = []
        token = create_access_token(f"load-{uuid.uuid4().hex[:12]}")
        self.headers = {"Authorization": f"Bearer {token}"}

    @task(2)
    def create_link(self) -> None:
        url = f"example.com/page/{random.randint(1, 1000000)}"
        response = self.client.post("/api/links", json={"url": url}, headers=self.headers, name="POST /api/links")

        if response.status_code == 201:
            self.codes.append(response.json()["code"])
            if len(self.codes) > MAX_CODES_PER_USER:
                self.codes = self.codes[-MAX_CODES_PER_USER:]

    @task(6)
    def redirect(self) -> None:
        if not self.codes:
            self.create_link()
            return

        code = random.choice(self.codes)
        self.client.get(f"/{code}", name="GET /:code", allow_redirects=False)

    @task(2)
    def stats(self) -> None:
        if not self.codes:
            self.create_link()
            return

        code = random.choice(self.codes)
        self.client.get(f"/api/stats/{code}", name="GET /api/stats/:code")

    @task(1)
    def delete_oldest(self) -> None:
        if len(self.codes) < 10:
            return

        code = self.codes.pop(0)
        self.client.delete(f"/api/links/{code}", headers=self.headers, name="DELETE /api/links/:code")
