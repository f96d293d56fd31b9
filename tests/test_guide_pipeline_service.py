import asyncio
import os
import time
from pathlib import Path

import pytest
from lxml import etree

from conftest import WINDOW_1, WINDOW_2, make_channel, make_event
from zap2xmltv.errors import (
    AuthError,
    ConfigError,
    FetchError,
    GuideWriteError,
    InvalidPageError,
    RotationError,
    RunCancelledError,
)
from zap2xmltv.services import guide_pipeline_service
from zap2xmltv.services.history_service import HistoryRotator
from zap2xmltv.services.xmltv_writer_service import GuideDocument
from zap2xmltv.services.guide_pipeline_service import (
    GuidePipeline,
    PipelineState,
    build_guide,
    describe_failure,
)


def _snapshots(output: Path) -> list[Path]:
    return [p for p in output.parent.glob(f"{output.stem}.*{output.suffix}")]


async def test_single_window_guide(settings, fake_zap2it, scenario_a_page):
    upstream = fake_zap2it({WINDOW_1.start: scenario_a_page})
    output = Path(settings.output_file)

    async with upstream.client() as client:
        pipeline = GuidePipeline(settings, client=client)
        summary = await pipeline.run([WINDOW_1])

    assert pipeline.state is PipelineState.DONE
    assert summary.channels == 1
    assert summary.programmes == 1
    assert summary.windows_fetched == 1

    root = etree.fromstring(output.read_bytes())
    [channel] = root.findall("channel")
    assert channel.get("id") == "5.1"
    assert [d.text for d in channel.findall("display-name")] == ["5 WABC", "5", "WABC"]
    assert channel.find("icon") is None

    [programme] = root.findall("programme")
    assert programme.get("start") == "20240601100000 +0000"
    assert programme.get("stop") == "20240601103000 +0000"
    assert programme.get("channel") == "5.1"
    assert programme.find("title").text == "News"
    assert programme.find("desc").text == "Unavailable"

    assert summary.snapshot_file is not None
    assert summary.snapshot_file.read_bytes() == output.read_bytes()


async def test_channels_from_first_window_only_programmes_from_all(settings, fake_zap2it):
    first = {"channels": [make_channel(call_sign="WABC", events=[
        make_event("2024-06-01T10:00:00Z", "2024-06-01T13:00:00Z", title="Morning"),
    ])]}
    second = {"channels": [make_channel(call_sign="WXYZ", events=[
        make_event("2024-06-01T10:00:00Z", "2024-06-01T13:00:00Z", title="Morning"),
        make_event("2024-06-01T13:00:00Z", "2024-06-01T14:00:00Z", title="Afternoon"),
    ])]}
    upstream = fake_zap2it({WINDOW_1.start: first, WINDOW_2.start: second})

    async with upstream.client() as client:
        await GuidePipeline(settings, client=client).run([WINDOW_1, WINDOW_2])

    root = etree.fromstring(Path(settings.output_file).read_bytes())
    channels = root.findall("channel")
    assert len(channels) == 1
    assert channels[0].findall("display-name")[2].text == "WABC"
    # overlapping programmes are kept, in window order
    assert [p.find("title").text for p in root.findall("programme")] == [
        "Morning", "Morning", "Afternoon",
    ]


async def test_empty_first_window_defers_channel_list(settings, fake_zap2it, scenario_a_page):
    upstream = fake_zap2it({WINDOW_2.start: scenario_a_page})

    async with upstream.client() as client:
        summary = await GuidePipeline(settings, client=client).run([WINDOW_1, WINDOW_2])

    assert summary.channels == 1
    assert len(upstream.grid_requests) == 2


async def test_failed_authentication_leaves_output_untouched(settings, fake_zap2it, scenario_a_page):
    output = Path(settings.output_file)
    output.write_bytes(b"previous guide")
    upstream = fake_zap2it({WINDOW_1.start: scenario_a_page}, token=None)

    async with upstream.client() as client:
        pipeline = GuidePipeline(settings, client=client)
        with pytest.raises(AuthError):
            await pipeline.run([WINDOW_1])

    assert pipeline.state is PipelineState.FAILED
    assert "Token not found" in pipeline.failure_reason
    assert output.read_bytes() == b"previous guide"
    assert upstream.grid_requests == []
    assert _snapshots(output) == []


async def test_failed_authentication_creates_no_file(settings, fake_zap2it):
    upstream = fake_zap2it(token=None)

    async with upstream.client() as client:
        with pytest.raises(AuthError):
            await GuidePipeline(settings, client=client).run([WINDOW_1])

    assert not Path(settings.output_file).exists()


async def test_fetch_failure_aborts_without_partial_output(settings, fake_zap2it, scenario_a_page):
    upstream = fake_zap2it({WINDOW_1.start: scenario_a_page})
    upstream.fail_on_window = WINDOW_2.start

    async with upstream.client() as client:
        pipeline = GuidePipeline(settings, client=client)
        with pytest.raises(FetchError):
            await pipeline.run([WINDOW_1, WINDOW_2])

    assert not Path(settings.output_file).exists()
    assert "HTTP 500" in pipeline.failure_reason


async def test_invalid_page_is_fatal(settings, fake_zap2it):
    upstream = fake_zap2it({WINDOW_1.start: {"errorCode": 7}})

    async with upstream.client() as client:
        with pytest.raises(InvalidPageError):
            await GuidePipeline(settings, client=client).run([WINDOW_1])

    assert not Path(settings.output_file).exists()


async def test_missing_credentials_fail_before_network(settings, fake_zap2it):
    incomplete = settings.model_copy(update={"password": ""})
    upstream = fake_zap2it()

    async with upstream.client() as client:
        pipeline = GuidePipeline(incomplete, client=client)
        with pytest.raises(ConfigError):
            await pipeline.run([WINDOW_1])

    assert upstream.requests == []
    assert pipeline.state is PipelineState.FAILED


async def test_cancel_event_stops_before_network(settings, fake_zap2it):
    upstream = fake_zap2it()
    cancel = asyncio.Event()
    cancel.set()

    async with upstream.client() as client:
        with pytest.raises(RunCancelledError):
            await GuidePipeline(settings, client=client).run([WINDOW_1], cancel_event=cancel)

    assert upstream.requests == []
    assert not Path(settings.output_file).exists()


async def test_rotation_prunes_old_snapshots(settings, fake_zap2it, scenario_a_page, tmp_path):
    stale = tmp_path / "guide.20200101000000.xmltv"
    stale.write_bytes(b"stale")
    old = time.time() - 30 * 86400
    os.utime(stale, (old, old))
    upstream = fake_zap2it({WINDOW_1.start: scenario_a_page})

    async with upstream.client() as client:
        summary = await GuidePipeline(settings, client=client).run([WINDOW_1])

    assert not stale.exists()
    assert summary.snapshots_deleted == 1


async def test_build_guide_reports_failure_chain(settings, fake_zap2it):
    upstream = fake_zap2it(token=None)

    async with upstream.client() as client:
        result = await build_guide(settings, client=client)

    assert result["status"] == "failed"
    assert "Token not found" in result["error"]


async def test_build_guide_success_dict(settings, fake_zap2it, scenario_a_page, monkeypatch):
    upstream = fake_zap2it({WINDOW_1.start: scenario_a_page})
    monkeypatch.setattr(guide_pipeline_service, "build_time_windows", lambda **kwargs: [WINDOW_1])

    async with upstream.client() as client:
        result = await build_guide(settings, client=client)

    assert result["status"] == "success"
    assert result["programmes"] == 1
    assert result["output_file"] == settings.output_file


class FailingRotator(HistoryRotator):
    async def rotate(self, output_path, retention_days, *, now=None):
        raise RotationError("disk full")


async def test_control_characters_in_listing_text_still_build(settings, fake_zap2it):
    page = {"channels": [make_channel(events=[
        make_event("2024-06-01T10:00:00Z", "2024-06-01T10:30:00Z", title="News\x0bTonight",
                   shortDesc="Null\x00byte"),
    ])]}
    upstream = fake_zap2it({WINDOW_1.start: page})

    async with upstream.client() as client:
        pipeline = GuidePipeline(settings, client=client)
        await pipeline.run([WINDOW_1])

    assert pipeline.state is PipelineState.DONE
    root = etree.fromstring(Path(settings.output_file).read_bytes())
    assert root.find("programme/title").text == "News\N{REPLACEMENT CHARACTER}Tonight"
    assert root.find("programme/desc").text == "Null\N{REPLACEMENT CHARACTER}byte"


async def test_serialization_failure_marks_run_failed(settings, fake_zap2it, scenario_a_page, monkeypatch):
    output = Path(settings.output_file)
    output.write_bytes(b"previous guide")
    upstream = fake_zap2it({WINDOW_1.start: scenario_a_page})

    def reject(self):
        raise GuideWriteError("Failed to serialize guide: bad text")

    monkeypatch.setattr(GuideDocument, "serialize", reject)

    async with upstream.client() as client:
        pipeline = GuidePipeline(settings, client=client)
        with pytest.raises(GuideWriteError):
            await pipeline.run([WINDOW_1])

    assert pipeline.state is PipelineState.FAILED
    assert "bad text" in pipeline.failure_reason
    assert output.read_bytes() == b"previous guide"


async def test_rotation_failure_keeps_the_new_guide(settings, fake_zap2it, scenario_a_page):
    upstream = fake_zap2it({WINDOW_1.start: scenario_a_page})
    output = Path(settings.output_file)

    async with upstream.client() as client:
        pipeline = GuidePipeline(settings, client=client, rotator=FailingRotator())
        summary = await pipeline.run([WINDOW_1])

    assert pipeline.state is PipelineState.DONE
    assert pipeline.failure_reason is None
    assert summary.snapshot_file is None
    assert summary.snapshots_deleted == 0
    assert etree.fromstring(output.read_bytes()).find("programme/title").text == "News"
    assert _snapshots(output) == []


def test_describe_failure_joins_causes():
    try:
        try:
            raise ValueError("bad json")
        except ValueError as inner:
            raise FetchError("window failed") from inner
    except FetchError as exc:
        assert describe_failure(exc) == "window failed: bad json"
