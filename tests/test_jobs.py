import asyncio

from catalog_sync import jobs, service
from catalog_sync.models import PricingConfig

CFG = PricingConfig(fx_rate=13, markup_pct=20)


def test_job_runs_to_completion_with_progress(woo):
    for i in range(6):
        woo.add_product(f"P{i}", "1.00")
    rows = [{"SKU": f"P{i}", "Price": "10"} for i in range(6)]

    async def scenario():
        async def runner(cancel_event, on_progress):
            result = await service.reconcile_prices(
                rows, CFG, 2, False, False, target=woo, chunk_size=2,
                cancel_event=cancel_event, on_progress=on_progress,
            )
            return service.summarize(result)

        job_id = await jobs.submit_job("prices", {"rows": len(rows)}, runner)
        await jobs.wait_for_job(job_id)
        return job_id, await jobs.get_job(job_id), await jobs.list_jobs()

    job_id, rec, listed = asyncio.run(scenario())

    assert rec["status"] == "done"
    assert rec["result"]["updated"] == 6
    assert rec["progress"]["processed"] == 6
    assert job_id in {j["id"] for j in listed}


def test_cancel_job():
    async def scenario():
        async def runner(cancel_event, on_progress):
            await cancel_event.wait()
            return {"ok": True, "cancelled": True}

        job_id = await jobs.submit_job("prices", {}, runner)
        await asyncio.sleep(0)
        status = await jobs.cancel_job(job_id)
        await jobs.wait_for_job(job_id)
        return status, await jobs.get_job(job_id)

    status, rec = asyncio.run(scenario())
    assert status in ("queued", "running")
    assert rec["status"] == "cancelled"


def test_failing_job_records_error():
    async def scenario():
        async def runner(cancel_event, on_progress):
            raise RuntimeError("boom")

        job_id = await jobs.submit_job("prices", {}, runner)
        await jobs.wait_for_job(job_id)
        return await jobs.get_job(job_id)

    rec = asyncio.run(scenario())
    assert rec["status"] == "error"
    assert rec["error"]["error"] == "boom"


def test_unknown_job():
    assert asyncio.run(jobs.cancel_job("nope")) is None
    assert asyncio.run(jobs.get_job("nope")) is None
