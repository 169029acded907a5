"""Tests for maintenance routes."""

API = "/api/v1"


def _create_job(api_market, poster_id="c1"):
    return api_market.create_job(
        poster_id,
        role="Cook",
        daily_rate=120,
        service_date=api_market.clock.today(),
        start_time="08:00",
        end_time="16:00",
    )


class TestMaintenanceRoutes:
    """Tests for health and sweep endpoints."""

    def test_admin_required(self, client, company_headers):
        assert client.get(f"{API}/maintenance/health", headers=company_headers).status_code == 403
        response = client.post(f"{API}/maintenance/sweep", json={}, headers=company_headers)
        assert response.status_code == 403

    def test_health_reports_expired_jobs(self, client, api_market, admin_headers, clock):
        _create_job(api_market)
        healthy = client.get(f"{API}/maintenance/health", headers=admin_headers).json()

        clock.advance(days=1)
        pending = client.get(f"{API}/maintenance/health", headers=admin_headers).json()

        assert healthy["status"] == "healthy"
        assert healthy["expired_jobs"] == 0
        assert healthy["sweeper_running"] is False
        assert pending["status"] == "action_needed"
        assert pending["expired_jobs"] == 1
        # Health only previews
        assert len(api_market.list_open_jobs()) == 1

    def test_sweep_dry_run(self, client, api_market, admin_headers, clock):
        job = _create_job(api_market)
        clock.advance(days=1)

        response = client.post(
            f"{API}/maintenance/sweep", json={"dry_run": True}, headers=admin_headers
        )

        data = response.json()
        assert data["dry_run"] is True
        assert data["total_terminated"] == 0
        assert [(a["job_id"], a["action"]) for a in data["actions"]] == [(job.id, "would_terminate")]
        assert api_market.get_job(job.id).status == "open"

    def test_sweep(self, client, api_market, admin_headers, clock):
        expired = _create_job(api_market)
        clock.advance(days=1)
        current = _create_job(api_market)

        response = client.post(f"{API}/maintenance/sweep", json={}, headers=admin_headers)

        data = response.json()
        assert data["total_terminated"] == 1
        assert data["actions"][0]["job_id"] == expired.id
        assert data["actions"][0]["reason"] == "expired"
        assert [j.id for j in api_market.list_open_jobs()] == [current.id]

        health = client.get(f"{API}/maintenance/health", headers=admin_headers).json()
        assert health["last_sweep_at"] is not None


class TestRoot:
    def test_root(self, client):
        response = client.get("/")
        assert response.status_code == 200
        assert response.json()["service"] == "dayjobs"
