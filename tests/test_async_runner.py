import asyncio
import concurrent.futures
import threading

import pytest

from utils.async_runner import BackgroundLoop


@pytest.fixture
def background_loop():
    loop = BackgroundLoop(name="test-loop")
    yield loop
    loop.loop.call_soon_threadsafe(loop.loop.stop)


def test_run_returns_result_from_loop_thread(background_loop):
    async def where():
        await asyncio.sleep(0)
        return threading.current_thread().name

    assert background_loop.run(where(), timeout=2) == "test-loop"


def test_run_propagates_exceptions(background_loop):
    async def boom():
        raise ValueError("bad input")

    with pytest.raises(ValueError):
        background_loop.run(boom(), timeout=2)


def test_run_timeout_leaves_coroutine_running(background_loop):
    finished = threading.Event()

    async def slow():
        await asyncio.sleep(0.1)
        finished.set()

    with pytest.raises(concurrent.futures.TimeoutError):
        background_loop.run(slow(), timeout=0.01)

    assert finished.wait(2)


def test_submit_does_not_block(background_loop):
    done = threading.Event()

    async def work():
        done.set()
        return "ok"

    future = background_loop.submit(work())

    assert done.wait(2)
    assert future.result(2) == "ok"


def test_submit_failure_is_logged(background_loop, caplog):
    async def boom():
        raise RuntimeError("boom")

    future = background_loop.submit(boom())
    with pytest.raises(RuntimeError):
        future.result(2)

    # callbacks may run just after result() returns
    for _ in range(100):
        if "Background session task failed" in caplog.text:
            break
        threading.Event().wait(0.01)
    assert "Background session task failed" in caplog.text


def test_tasks_outlive_a_single_run(background_loop):
    ticks = []

    async def ticker():
        while True:
            ticks.append(1)
            await asyncio.sleep(0.01)

    async def start():
        return asyncio.get_running_loop().create_task(ticker())

    task = background_loop.run(start(), timeout=2)
    background_loop.run(asyncio.sleep(0.05), timeout=2)
    background_loop.loop.call_soon_threadsafe(task.cancel)

    assert len(ticks) >= 2
