from collections.abc import Callable

import httpx
import pytest

from zap2xmltv.config import GuideSettings
from zap2xmltv.models import TimeWindow


WINDOW_1 = TimeWindow(start=1717236000, end=1717236000 + 3 * 3600)
WINDOW_2 = TimeWindow(start=WINDOW_1.end, end=WINDOW_1.end + 3 * 3600)


def make_event(start: str, end: str, title: str | None = "News", **program_fields) -> dict:
    program: dict = dict(program_fields)
    if title is not None:
        program["title"] = title
    return {"startTime": start, "endTime": end, "program": program}


def make_channel(channel_id: str = "5.1", number: str = "5", call_sign: str = "WABC", events=None, **extra) -> dict:
    record = {"channelId": channel_id, "channelNo": number, "callSign": call_sign}
    record.update(extra)
    record["events"] = events if events is not None else []
    return record


@pytest.fixture
def scenario_a_page() -> dict:
    return {
        "channels": [
            make_channel(events=[make_event("2024-06-01T10:00:00Z", "2024-06-01T10:30:00Z")]),
        ]
    }


@pytest.fixture
def settings(tmp_path) -> GuideSettings:
    return GuideSettings(
        _env_file=None,
        username="viewer@example.com",
        password="secret",
        country="USA",
        zip_code="10001",
        lineup_id="USA-NY31519-DEFAULT",
        headend_id="NY31519",
        output_file=str(tmp_path / "guide.xmltv"),
        historical_guide_days=14,
    )


class FakeZap2it:
    """Stand-in for the login and grid endpoints, recording every request."""

    def __init__(self, pages: dict[int, dict] | None = None, token: str | None = "tok-123") -> None:
        self.pages = pages or {}
        self.token = token
        self.requests: list[httpx.Request] = []
        self.grid_status = 200
        self.login_status = 200
        self.fail_on_window: int | None = None

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        if request.url.path == "/api/user/login":
            if self.token is None:
                return httpx.Response(self.login_status, json={"message": "bad credentials"})
            return httpx.Response(
                self.login_status,
                json={"token": self.token, "properties": {"2004": "DITV501"}},
            )
        if request.url.path == "/api/grid":
            window_start = int(request.url.params["time"])
            if window_start == self.fail_on_window:
                return httpx.Response(500, text="upstream failure")
            return httpx.Response(self.grid_status, json=self.pages.get(window_start, {"channels": []}))
        return httpx.Response(404)

    @property
    def grid_requests(self) -> list[httpx.Request]:
        return [r for r in self.requests if r.url.path == "/api/grid"]

    def client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(transport=httpx.MockTransport(self))


@pytest.fixture
def fake_zap2it() -> Callable[..., FakeZap2it]:
    return FakeZap2it
