import asyncio

import aiohttp
import pytest

import run_scheduled_crawl

API = "http://crawler.internal:5000"


class FakeResponse:
    def __init__(self, payload, status=200):
        self.payload = payload
        self.status = status

    def raise_for_status(self):
        if self.status >= 400:
            raise aiohttp.ClientConnectionError(f"HTTP {self.status}")

    async def json(self, content_type="application/json"):
        return self.payload

    async def __aenter__(self):
        return self

    async def __aexit__(self, exc_type, exc, tb):
        return False


class FakeSession:
    def __init__(self, responses):
        self.responses = list(responses)
        self.requests = []

    def request(self, method, url):
        self.requests.append((method, url))
        return self.responses.pop(0)


class SleepRecorder:
    def __init__(self):
        self.delays = []

    async def __call__(self, seconds):
        self.delays.append(seconds)


def _run(session, sleep=None):
    return asyncio.run(
        run_scheduled_crawl.run_scheduled_crawl(
            session, api_base_url=API + "/", poll_seconds=15, sleep=sleep or SleepRecorder()
        )
    )


def test_scheduled_run_triggers_web_process_and_waits_for_report():
    crawl = {"novels_saved": 180, "stopped_reason": "completed", "errors": []}
    session = FakeSession([
        FakeResponse({"started": True, "start": 0, "pages": 10}, status=202),
        FakeResponse({"running": True, "last_report": None}),
        FakeResponse({"running": False, "last_report": crawl}),
    ])
    sleep = SleepRecorder()

    report = _run(session, sleep)

    assert session.requests == [
        ("POST", f"{API}/api/novels/crawl/scheduled"),
        ("GET", f"{API}/api/novels/crawl/status"),
        ("GET", f"{API}/api/novels/crawl/status"),
    ]
    assert sleep.delays == [15, 15]
    assert report["status"] == "성공"
    assert report["crawl"] == crawl
    assert report["duration"] >= 0


def test_scheduled_run_is_skipped_when_crawl_active():
    session = FakeSession([FakeResponse({"started": False, "start": 0, "pages": 10}, status=202)])

    report = _run(session)

    assert report["status"] == "스킵"
    assert report["skip_reason"] == "already_running"
    assert len(session.requests) == 1


def test_aborted_crawl_is_reported_as_failure():
    crawl = {
        "stopped_reason": "error",
        "errors": [{"code": "CRAWL_ABORTED", "message": "OperationalError: could not connect"}],
    }
    session = FakeSession([
        FakeResponse({"started": True}, status=202),
        FakeResponse({"running": False, "last_report": crawl}),
    ])

    report = _run(session)

    assert report["status"] == "실패"
    assert report["error_message"] == "OperationalError: could not connect"


def test_unreachable_web_process_is_reported_as_failure():
    session = FakeSession([FakeResponse({}, status=503)])

    report = _run(session)

    assert report["status"] == "실패"
    assert report["error_message"] == "ClientConnectionError: HTTP 503"


@pytest.mark.parametrize("status, exit_code", [("실패", 1), ("스킵", 0), ("성공", 0)])
def test_main_exit_code_follows_status(monkeypatch, capsys, status, exit_code):
    async def fake_run():
        return {"status": status, "duration": 0.1}

    monkeypatch.setattr(run_scheduled_crawl, "_run", fake_run)

    assert run_scheduled_crawl.main() == exit_code
    assert f'"{status}"' in capsys.readouterr().out
