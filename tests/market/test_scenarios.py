"""End-to-end marketplace scenarios."""

import pytest

from dayjobs.errors import DuplicateError, NotFoundError
from dayjobs.market.models import JobStatus


class TestScenarios:
    """The lifecycle walked through from the actors' side."""

    def test_create_apply_hire(self, market, make_job):
        job = market.create_job(
            "c1",
            role="Cook",
            daily_rate=150,
            service_date=market.clock.today(),
            start_time="08:00",
            end_time="16:00",
        )
        assert job.status == JobStatus.OPEN.value

        app = market.apply(job.id, "w1")
        assert app.status == "pending"

        filled, hired = market.hire(job.id, app.id)
        assert filled.status == "filled"
        assert hired.status == "hired"

    def test_duplicate_apply(self, market, make_job):
        job = make_job(market)
        market.apply(job.id, "w1")

        with pytest.raises(DuplicateError):
            market.apply(job.id, "w1")

        assert len(market.repository.list_applications(job_id=job.id, worker_id="w1")) == 1

    def test_siblings_suppressed_after_hire(self, market, make_job):
        job = make_job(market)
        first = market.apply(job.id, "w1")
        market.apply(job.id, "w2")

        market.hire(job.id, first.id)

        listed = market.list_for_job(job.id)
        assert [(a.worker_id, a.status) for a in listed] == [("w1", "hired")]

    def test_unhired_job_swept_after_service_date(self, market, make_job, clock):
        job = make_job(market)
        market.apply(job.id, "w1")
        clock.advance(days=1)  # service date is now yesterday

        market.sweep()

        with pytest.raises(NotFoundError):
            market.list_for_job(job.id)
        assert market.repository.list_applications(job_id=job.id) == []

    def test_unrated_filled_job_survives_sweep(self, market, make_job, clock):
        job = make_job(market)
        app = market.apply(job.id, "w1")
        market.hire(job.id, app.id)
        clock.advance(days=1)

        market.sweep()

        assert market.get_job(job.id).status == "filled"

    def test_rating_closes_job(self, market, make_job):
        job = make_job(market)
        app = market.apply(job.id, "w1")
        market.hire(job.id, app.id)

        market.submit_rating(job.id, "w1", 4.5)

        assert market.get_profile("w1").rating == 4.5
        with pytest.raises(NotFoundError):
            market.get_job(job.id)
        statuses = [t.to_status for t in market.get_job_history(job.id)]
        assert statuses == ["open", "filled", "terminated"]
