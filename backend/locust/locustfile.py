"""
Locust Load Test Suite

Expects a seeded database: users with ids 1..LOAD_USER_COUNT, a full
tournament LOAD_TOURNAMENT_ID and a league LOAD_LEAGUE_ID with a season.

Run scenarios:
  locust -f locustfile.py --tags concurrency  # Race for waitlist positions
  locust -f locustfile.py --tags throughput   # Test status cache
  locust -f locustfile.py --tags edge         # Test bad input
  locust -f locustfile.py                     # All tests
"""

import os
import random
from locust import HttpUser, task, between, tag, events

USER_COUNT = int(os.environ.get("LOAD_USER_COUNT", "500"))
TOURNAMENT_ID = int(os.environ.get("LOAD_TOURNAMENT_ID", "1"))
LEAGUE_ID = int(os.environ.get("LOAD_LEAGUE_ID", "1"))

# Caller ids not yet handed to a simulated user
_free_user_ids = list(range(1, USER_COUNT + 1))
random.shuffle(_free_user_ids)


def claim_user_id():
    return _free_user_ids.pop() if _free_user_ids else random.randint(1, USER_COUNT)


@events.test_start.add_listener
def on_test_start(environment, **kwargs):
    print("\n" + "=" * 60)
    print(f"Waitlist load test: {USER_COUNT} users, tournament {TOURNAMENT_ID}, league {LEAGUE_ID}")
    print("=" * 60)


class ConcurrencyUser(HttpUser):
    """
    TEST 1: Concurrency - every user joins the same waitlist at once

    Run: locust -f locustfile.py --tags concurrency -u 200 -r 100 --run-time 30s

    After test, verify no two entries share a slot:
      SELECT waitlist_position, COUNT(*) FROM tournament_registrations
      WHERE tournament_id = X AND status = 'waitlisted'
      GROUP BY waitlist_position HAVING COUNT(*) > 1;
    Should return no rows.
    """
    wait_time = between(0, 0.1)

    def on_start(self):
        self.user_id = claim_user_id()
        self.headers = {"X-User-Id": str(self.user_id)}
        self.joined = False

    @tag("concurrency")
    @task(5)
    def join_tournament_waitlist(self):
        if self.joined:
            return

        with self.client.post("/api/v1/waitlist/",
            json={"event_type": "tournament", "event_id": TOURNAMENT_ID},
            headers=self.headers,
            name="/api/v1/waitlist/ [tournament]",
            catch_response=True
        ) as resp:
            if resp.status_code == 201:
                self.joined = True
                resp.success()
            elif resp.status_code == 409:
                resp.success()  # Expected: already joined, or allocator busy
            else:
                resp.failure(f"Unexpected: {resp.status_code}")

    @tag("concurrency")
    @task(1)
    def join_league_waitlist(self):
        with self.client.post("/api/v1/waitlist/",
            json={"event_type": "league", "event_id": LEAGUE_ID},
            headers=self.headers,
            name="/api/v1/waitlist/ [league]",
            catch_response=True
        ) as resp:
            if resp.status_code in [201, 409]:
                resp.success()
            else:
                resp.failure(f"Unexpected: {resp.status_code}")


class ThroughputUser(HttpUser):
    """
    TEST 2: Throughput - Cache effectiveness

    Run twice:
      1. With Redis: locust -f locustfile.py --tags throughput -u 100 -r 20 --run-time 60s
      2. Without Redis: REDIS_ENABLED=false on the API, run again

    Compare:
      - Avg response time
      - Requests/sec
      - P95/P99 latency
    """
    wait_time = between(0.1, 0.5)

    def on_start(self):
        self.headers = {"X-User-Id": str(claim_user_id())}

    @tag("throughput", "read")
    @task(10)
    def tournament_status_cached(self):
        self.client.get("/api/v1/waitlist/status",
            params={"event_type": "tournament", "event_id": TOURNAMENT_ID},
            name="/api/v1/waitlist/status [cached]")

    @tag("throughput", "read")
    @task(3)
    def my_position(self):
        self.client.get("/api/v1/waitlist/position",
            params={"event_type": "tournament", "event_id": TOURNAMENT_ID},
            headers=self.headers,
            name="/api/v1/waitlist/position")

    @tag("throughput")
    @task(1)
    def health_check(self):
        self.client.get("/health")


class EdgeCaseUser(HttpUser):
    """
    TEST 3: Edge cases - Bad input handling

    Run: locust -f locustfile.py --tags edge -u 20 -r 5 --run-time 30s

    System should NOT crash, return proper error codes.
    """
    wait_time = between(0.5, 1.5)

    def on_start(self):
        self.headers = {"X-User-Id": str(claim_user_id())}

    @tag("edge")
    @task
    def unknown_tournament(self):
        with self.client.post("/api/v1/waitlist/",
            json={"event_type": "tournament", "event_id": 99999999},
            headers=self.headers,
            catch_response=True
        ) as resp:
            if resp.status_code == 404:
                resp.success()
            else:
                resp.failure(f"Expected 404, got {resp.status_code}")

    @tag("edge")
    @task
    def unknown_event_type(self):
        with self.client.post("/api/v1/waitlist/",
            json={"event_type": "clinic", "event_id": TOURNAMENT_ID},
            headers=self.headers,
            catch_response=True
        ) as resp:
            if resp.status_code == 422:
                resp.success()
            else:
                resp.failure(f"Expected 422, got {resp.status_code}")

    @tag("edge")
    @task
    def accept_without_offer(self):
        with self.client.post("/api/v1/waitlist/accept",
            json={"event_type": "tournament", "event_id": TOURNAMENT_ID},
            headers=self.headers,
            catch_response=True
        ) as resp:
            if resp.status_code in [200, 400]:
                resp.success()
            else:
                resp.failure(f"Expected 200/400, got {resp.status_code}")

    @tag("edge")
    @task
    def malformed_json(self):
        with self.client.post("/api/v1/waitlist/",
            data="not json at all",
            headers=self.headers,
            catch_response=True
        ) as resp:
            if resp.status_code in [400, 422]:
                resp.success()
            else:
                resp.failure(f"Expected 400/422, got {resp.status_code}")

    @tag("edge")
    @task
    def missing_caller(self):
        with self.client.post("/api/v1/waitlist/",
            json={"event_type": "tournament", "event_id": TOURNAMENT_ID},
            catch_response=True
        ) as resp:
            if resp.status_code == 401:
                resp.success()
            else:
                resp.failure(f"Expected 401, got {resp.status_code}")

    @tag("edge")
    @task
    def sweep_without_token(self):
        with self.client.post("/api/v1/waitlist/sweep", catch_response=True) as resp:
            if resp.status_code == 403:
                resp.success()
            else:
                resp.failure(f"Expected 403, got {resp.status_code}")
