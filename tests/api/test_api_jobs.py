"""Tests for the jobs API routes."""

from dayjobs.config import MarketConfig
from dayjobs.market.models import WorkerProfile
from dayjobs.market.service import Marketplace
from dayjobs.market.storage import InMemoryJobRepository

API = "/api/v1"


def _job_payload(clock, **overrides):
    payload = {
        "role": "Cook",
        "daily_rate": "150.00",
        "service_date": clock.today().isoformat(),
        "start_time": "08:00",
        "end_time": "16:00",
        "benefits": ["meal"],
        "city": "Sao Paulo",
        "neighborhood": "Pinheiros",
    }
    payload.update(overrides)
    return payload


def _create(client, headers, clock, **overrides):
    response = client.post(f"{API}/jobs", json=_job_payload(clock, **overrides), headers=headers)
    assert response.status_code == 201, response.text
    return response.json()


class TestAuth:
    """Tests for authentication on job routes."""

    def test_requires_token(self, client):
        assert client.get(f"{API}/jobs").status_code == 401

    def test_rejects_bad_token(self, client):
        response = client.get(f"{API}/jobs", headers={"Authorization": "Bearer not-a-jwt"})
        assert response.status_code == 401

    def test_workers_cannot_post(self, client, worker_headers, clock):
        response = client.post(f"{API}/jobs", json=_job_payload(clock), headers=worker_headers)
        assert response.status_code == 403

    def test_companies_cannot_apply(self, client, company_headers, auth_headers, clock):
        job = _create(client, company_headers, clock)
        other_company = auth_headers("c2", "company")
        response = client.post(f"{API}/jobs/{job['id']}/apply", headers=other_company)
        assert response.status_code == 403


class TestJobRoutes:
    """Tests for posting and reading jobs."""

    def test_create_job(self, client, company_headers, clock):
        data = _create(client, company_headers, clock)

        assert data["status"] == "open"
        assert data["poster_id"] == "c1"
        assert data["company_name"] == "Bistro Uno"
        assert data["benefits"] == ["meal"]

    def test_create_job_past_date(self, client, company_headers, clock, yesterday):
        response = client.post(
            f"{API}/jobs",
            json=_job_payload(clock, service_date=yesterday.isoformat()),
            headers=company_headers,
        )
        assert response.status_code == 422
        assert response.json()["error"] == "ValidationError"

    def test_role_too_long_for_market(self, client, company_headers, clock):
        response = client.post(
            f"{API}/jobs", json=_job_payload(clock, role="x" * 121), headers=company_headers
        )
        assert response.status_code == 422
        assert response.json()["error"] == "ValidationError"

    def test_role_limit_follows_market_config(self, app, client, company_headers, clock):
        """A longer configured role limit is honored over HTTP."""
        from dayjobs.api.database import get_marketplace

        roomy = Marketplace(
            repository=InMemoryJobRepository(), clock=clock, config=MarketConfig(max_role_length=200)
        )
        app.dependency_overrides[get_marketplace] = lambda: roomy

        data = _create(client, company_headers, clock, role="x" * 150)
        assert len(data["role"]) == 150

    def test_create_job_bad_times(self, client, company_headers, clock):
        response = client.post(
            f"{API}/jobs",
            json=_job_payload(clock, start_time="18:00", end_time="09:00"),
            headers=company_headers,
        )
        assert response.status_code == 422

    def test_create_job_negative_rate(self, client, company_headers, clock):
        response = client.post(
            f"{API}/jobs", json=_job_payload(clock, daily_rate=-5), headers=company_headers
        )
        assert response.status_code == 422

    def test_list_open_jobs(self, client, company_headers, worker_headers, clock):
        _create(client, company_headers, clock, role="Cook")
        _create(client, company_headers, clock, role="Waiter")

        response = client.get(f"{API}/jobs", params={"q": "wait"}, headers=worker_headers)

        assert response.status_code == 200
        data = response.json()
        assert data["total"] == 1
        assert data["jobs"][0]["role"] == "Waiter"

    def test_list_eligible_only(self, client, api_market, company_headers, worker_headers, clock):
        _create(client, company_headers, clock, role="Trucker", required_license="C")
        _create(client, company_headers, clock, role="Cook")
        api_market.save_profile(WorkerProfile(worker_id="w1", license_category="B"))

        response = client.get(f"{API}/jobs", params={"eligible_only": True}, headers=worker_headers)

        assert [j["role"] for j in response.json()["jobs"]] == ["Cook"]

    def test_list_mine_with_counts(self, client, company_headers, worker_headers, clock):
        job = _create(client, company_headers, clock)
        client.post(f"{API}/jobs/{job['id']}/apply", headers=worker_headers)

        response = client.get(f"{API}/jobs", params={"mine": True}, headers=company_headers)

        data = response.json()
        assert data["total"] == 1
        assert data["application_counts"] == {job["id"]: 1}

    def test_list_mine_requires_company(self, client, worker_headers):
        response = client.get(f"{API}/jobs", params={"mine": True}, headers=worker_headers)
        assert response.status_code == 403

    def test_get_job(self, client, company_headers, worker_headers, clock):
        job = _create(client, company_headers, clock)
        response = client.get(f"{API}/jobs/{job['id']}", headers=worker_headers)
        assert response.status_code == 200
        assert response.json()["id"] == job["id"]

    def test_get_missing_job(self, client, worker_headers):
        response = client.get(f"{API}/jobs/nope", headers=worker_headers)
        assert response.status_code == 404
        assert "not found" in response.json()["detail"].lower()


class TestApplicationRoutes:
    """Tests for applying and listing applications."""

    def test_apply_and_duplicate(self, client, company_headers, worker_headers, clock):
        job = _create(client, company_headers, clock)

        first = client.post(f"{API}/jobs/{job['id']}/apply", headers=worker_headers)
        second = client.post(f"{API}/jobs/{job['id']}/apply", headers=worker_headers)

        assert first.status_code == 201
        assert first.json()["status"] == "pending"
        assert first.json()["worker_name"] == "Ana"
        assert second.status_code == 409
        assert second.json()["error"] == "DuplicateError"

    def test_my_applications(self, client, company_headers, worker_headers, clock):
        job = _create(client, company_headers, clock)
        client.post(f"{API}/jobs/{job['id']}/apply", headers=worker_headers)

        response = client.get(f"{API}/applications/mine", headers=worker_headers)

        assert response.json() == {"job_ids": [job["id"]]}

    def test_list_applications_poster_only(self, client, company_headers, worker_headers, auth_headers, clock):
        job = _create(client, company_headers, clock)
        client.post(f"{API}/jobs/{job['id']}/apply", headers=worker_headers)

        ok = client.get(f"{API}/jobs/{job['id']}/applications", headers=company_headers)
        other = client.get(
            f"{API}/jobs/{job['id']}/applications", headers=auth_headers("c2", "company")
        )

        assert ok.status_code == 200
        assert ok.json()["total"] == 1
        assert other.status_code == 403


class TestHireRateCancel:
    """Tests for the company's write actions."""

    def _hire(self, client, company_headers, worker_headers, auth_headers, clock):
        job = _create(client, company_headers, clock)
        app = client.post(f"{API}/jobs/{job['id']}/apply", headers=worker_headers).json()
        client.post(f"{API}/jobs/{job['id']}/apply", headers=auth_headers("w2", "worker"))
        response = client.post(
            f"{API}/jobs/{job['id']}/hire",
            json={"application_id": app["id"]},
            headers=company_headers,
        )
        assert response.status_code == 200, response.text
        return job, app, response.json()

    def test_hire(self, client, company_headers, worker_headers, auth_headers, clock):
        job, app, data = self._hire(client, company_headers, worker_headers, auth_headers, clock)

        assert data["job"]["status"] == "filled"
        assert data["application"]["status"] == "hired"

        listed = client.get(f"{API}/jobs/{job['id']}/applications", headers=company_headers).json()
        assert [a["worker_id"] for a in listed["applications"]] == ["w1"]

    def test_hire_twice(self, client, company_headers, worker_headers, auth_headers, clock):
        job, app, _ = self._hire(client, company_headers, worker_headers, auth_headers, clock)
        response = client.post(
            f"{API}/jobs/{job['id']}/hire",
            json={"application_id": app["id"]},
            headers=company_headers,
        )
        assert response.status_code == 400
        assert response.json()["error"] == "InvalidStateError"

    def test_hire_by_other_company(self, client, company_headers, worker_headers, auth_headers, clock):
        job = _create(client, company_headers, clock)
        app = client.post(f"{API}/jobs/{job['id']}/apply", headers=worker_headers).json()
        response = client.post(
            f"{API}/jobs/{job['id']}/hire",
            json={"application_id": app["id"]},
            headers=auth_headers("c2", "company"),
        )
        assert response.status_code == 403

    def test_rate_closes_job(self, client, api_market, company_headers, worker_headers, auth_headers, clock):
        job, _, _ = self._hire(client, company_headers, worker_headers, auth_headers, clock)

        response = client.post(
            f"{API}/jobs/{job['id']}/rating",
            json={"worker_id": "w1", "rating": 4.5},
            headers=company_headers,
        )

        assert response.status_code == 200
        assert response.json() == {
            "job_id": job["id"],
            "worker_id": "w1",
            "rating": 4.5,
            "job_terminated": True,
        }
        assert api_market.get_profile("w1").rating == 4.5
        assert client.get(f"{API}/jobs/{job['id']}", headers=worker_headers).status_code == 404

    def test_rate_bad_step(self, client, company_headers, worker_headers, auth_headers, clock):
        job, _, _ = self._hire(client, company_headers, worker_headers, auth_headers, clock)
        response = client.post(
            f"{API}/jobs/{job['id']}/rating",
            json={"worker_id": "w1", "rating": 4.2},
            headers=company_headers,
        )
        assert response.status_code == 422

    def test_rate_open_job(self, client, company_headers, worker_headers, clock):
        job = _create(client, company_headers, clock)
        client.post(f"{API}/jobs/{job['id']}/apply", headers=worker_headers)
        response = client.post(
            f"{API}/jobs/{job['id']}/rating",
            json={"worker_id": "w1", "rating": 4},
            headers=company_headers,
        )
        assert response.status_code == 400

    def test_cancel(self, client, company_headers, worker_headers, auth_headers, clock):
        job = _create(client, company_headers, clock)

        denied = client.post(f"{API}/jobs/{job['id']}/cancel", headers=auth_headers("c2", "company"))
        cancelled = client.post(f"{API}/jobs/{job['id']}/cancel", headers=company_headers)
        again = client.post(f"{API}/jobs/{job['id']}/cancel", headers=company_headers)

        assert denied.status_code == 403
        assert cancelled.status_code == 200
        assert cancelled.json() == {"job_id": job["id"], "status": "terminated"}
        assert again.status_code == 404

    def test_history_survives_termination(self, client, company_headers, auth_headers, clock):
        job = _create(client, company_headers, clock)
        client.post(f"{API}/jobs/{job['id']}/cancel", headers=company_headers)

        response = client.get(f"{API}/jobs/{job['id']}/history", headers=company_headers)
        other = client.get(f"{API}/jobs/{job['id']}/history", headers=auth_headers("c2", "company"))

        assert response.status_code == 200
        assert [t["to_status"] for t in response.json()["transitions"]] == ["open", "terminated"]
        assert other.status_code == 403
