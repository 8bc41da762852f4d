from __future__ import annotations

from datetime import datetime, timedelta, timezone

import pytest

from deepbrief.models.jobs import JobStatus, RawResult


@pytest.mark.asyncio
async def test_records_are_copied_in_and_out(store, make_job):
    job = make_job()
    await store.create_job(job)
    job.capabilities.append("code_interpreter")

    fetched = await store.get_job("job-1")
    fetched.capabilities.append("file_search")

    assert (await store.get_job("job-1")).capabilities == ["web_search"]


@pytest.mark.asyncio
async def test_duplicate_id_is_rejected(store, make_job):
    await store.create_job(make_job())
    with pytest.raises(ValueError):
        await store.create_job(make_job())


@pytest.mark.asyncio
async def test_advance_only_moves_forward(store, make_job):
    await store.create_job(make_job(status=JobStatus.IN_PROGRESS))
    now = datetime.now(timezone.utc)

    assert await store.advance_status("job-1", JobStatus.QUEUED, now) is None
    assert await store.advance_status("job-1", JobStatus.IN_PROGRESS, now) is None
    assert (await store.get_job("job-1")).status == JobStatus.IN_PROGRESS


@pytest.mark.asyncio
async def test_terminal_write_happens_once(store, make_job):
    await store.create_job(make_job(status=JobStatus.IN_PROGRESS))
    now = datetime.now(timezone.utc)

    first = await store.complete_job("job-1", RawResult(output_text="first"), now)
    second = await store.complete_job("job-1", RawResult(output_text="second"), now + timedelta(seconds=1))
    failed = await store.fail_job("job-1", "late failure", now)
    advanced = await store.advance_status("job-1", JobStatus.IN_PROGRESS, now)

    assert first.raw_result.output_text == "first"
    assert second is None and failed is None and advanced is None
    stored = await store.get_job("job-1")
    assert stored.status == JobStatus.COMPLETED
    assert stored.raw_result.output_text == "first"
    assert stored.error is None


@pytest.mark.asyncio
async def test_structured_result_requires_completed(store, make_job):
    await store.create_job(make_job(status=JobStatus.FAILED))
    now = datetime.now(timezone.utc)

    assert await store.set_structured_result("job-1", {"meta": {}}, now) is None
    assert await store.set_structured_result("missing", {"meta": {}}, now) is None


@pytest.mark.asyncio
async def test_list_jobs_newest_first(store, make_job):
    await store.create_job(make_job("old", age=timedelta(hours=2)))
    await store.create_job(make_job("new", age=timedelta(minutes=1)))
    await store.create_job(make_job("other", session_id="session-2"))

    jobs = await store.list_jobs("session-1")

    assert [j.id for j in jobs] == ["new", "old"]


@pytest.mark.asyncio
async def test_session_artifacts(store):
    store.put_session_artifacts("s1", parsed_brief={"objective": "x"})

    assert await store.fetch_session_artifacts("s1") == {"parsed_brief": {"objective": "x"}}
    assert await store.fetch_session_artifacts("s2") is None
