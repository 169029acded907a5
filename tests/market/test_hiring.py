"""Tests for the atomic hire."""

import threading

import pytest

from dayjobs.errors import (
    AuthorizationError,
    ConflictError,
    InvalidStateError,
    NotFoundError,
)
from dayjobs.market.models import JobStatus


class TestHire:
    """Tests for hire preconditions and effects."""

    def test_hire_fills_job_and_hires_application(self, market, make_job):
        job = make_job(market)
        app = market.apply(job.id, "w1")

        filled, hired = market.hire(job.id, app.id, actor_id="c1")

        assert filled.status == "filled"
        assert filled.filled_at is not None
        assert hired.status == "hired"
        assert market.get_job(job.id).status == "filled"
        assert market.repository.get_application(app.id).status == "hired"

    def test_hire_records_transition(self, market, make_job):
        job = make_job(market)
        app = market.apply(job.id, "w1")
        market.hire(job.id, app.id, actor_id="c1")

        last = market.get_job_history(job.id)[-1]
        assert (last.from_status, last.to_status) == ("open", "filled")
        assert last.actor_id == "c1"
        assert "w1" in last.reason

    def test_second_hire_on_filled_job(self, market, make_job):
        job = make_job(market)
        first = market.apply(job.id, "w1")
        second = market.apply(job.id, "w2")
        market.hire(job.id, first.id)

        with pytest.raises(InvalidStateError):
            market.hire(job.id, second.id)

        assert market.repository.get_application(second.id).status == "pending"
        hired = market.repository.list_applications(job_id=job.id, status="hired")
        assert [a.id for a in hired] == [first.id]

    def test_hire_by_non_poster(self, market, make_job):
        job = make_job(market)
        app = market.apply(job.id, "w1")

        with pytest.raises(AuthorizationError):
            market.hire(job.id, app.id, actor_id="c2")
        assert market.get_job(job.id).status == "open"

    def test_hire_missing_job(self, market):
        with pytest.raises(NotFoundError):
            market.hire("nope", "app")

    def test_hire_missing_application(self, market, make_job):
        job = make_job(market)
        with pytest.raises(NotFoundError):
            market.hire(job.id, "nope")

    def test_hire_application_of_other_job(self, market, make_job):
        job = make_job(market)
        other = make_job(market)
        app = market.apply(other.id, "w1")

        with pytest.raises(NotFoundError):
            market.hire(job.id, app.id)
        assert market.get_job(job.id).status == "open"
        assert market.get_job(other.id).status == "open"

    def test_lost_application_race_rolls_back_job(self, market, make_job):
        job = make_job(market)
        app = market.apply(job.id, "w1")
        repo = market.repository
        original = repo.update_application_status

        # Another writer promotes the application between pre-read and write
        def racing_update(application_id, expected, new):
            original(application_id, expected, new)
            return original(application_id, expected, new)

        repo.update_application_status = racing_update
        try:
            with pytest.raises(ConflictError):
                market.hire(job.id, app.id)
        finally:
            del repo.update_application_status

        assert market.get_job(job.id).status == "open"
        assert market.repository.get_application(app.id).status == "pending"

    def test_job_swept_between_read_and_write(self, market, make_job):
        job = make_job(market)
        app = market.apply(job.id, "w1")
        original = market.repository.get_application

        def sweep_then_read(application_id):
            result = original(application_id)
            market.terminate(job.id, "expired", expected_status=JobStatus.OPEN)
            return result

        market.repository.get_application = sweep_then_read
        try:
            with pytest.raises(NotFoundError):
                market.hire(job.id, app.id)
        finally:
            del market.repository.get_application


@pytest.mark.slow
class TestConcurrentHire:
    """Two hires racing on the same job."""

    def test_exactly_one_hire_wins(self, market, make_job):
        job = make_job(market)
        apps = [market.apply(job.id, f"w{i}") for i in range(2)]
        barrier = threading.Barrier(len(apps))
        outcomes = {}

        def hire(app):
            barrier.wait()
            try:
                market.hire(job.id, app.id)
                outcomes[app.id] = "hired"
            except (ConflictError, InvalidStateError) as e:
                outcomes[app.id] = type(e).__name__

        threads = [threading.Thread(target=hire, args=(app,)) for app in apps]
        for t in threads:
            t.start()
        for t in threads:
            t.join(timeout=10)

        assert sorted(outcomes.values()).count("hired") == 1
        assert len(outcomes) == 2
        stored = market.repository.list_applications(job_id=job.id)
        assert sum(1 for a in stored if a.is_hired) == 1
        assert market.get_job(job.id).status == "filled"

    def test_many_rounds_never_double_hire(self, memory_market, make_job):
        for _ in range(20):
            job = make_job(memory_market)
            apps = [memory_market.apply(job.id, f"w{i}") for i in range(4)]
            barrier = threading.Barrier(len(apps))

            def hire(app, job_id=job.id):
                barrier.wait()
                try:
                    memory_market.hire(job_id, app.id)
                except (ConflictError, InvalidStateError):
                    pass

            threads = [threading.Thread(target=hire, args=(app,)) for app in apps]
            for t in threads:
                t.start()
            for t in threads:
                t.join(timeout=10)

            hired = memory_market.repository.list_applications(job_id=job.id, status="hired")
            assert len(hired) == 1
            assert memory_market.list_for_job(job.id) == hired
