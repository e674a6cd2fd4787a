"""Tests for the command line interface."""

import json
from pathlib import Path
from typing import Any, Callable

import httpx
import pytest
from click.testing import CliRunner
from pytest_mock import MockerFixture

from app.cli import api_url, cli

HOST = "http://cli.test"

Handler = Callable[[httpx.Request], httpx.Response]


def corrected(request: httpx.Request) -> httpx.Response:
    body = json.loads(request.content) if request.content else {}
    return httpx.Response(
        200,
        json={
            "geo": {"type": "Point", "coordinates": [-77.0365, 38.8977]},
            "formattedAddress": body.get("streetAddress", "Somewhere"),
            "status": True,
        },
    )


@pytest.fixture
def runner() -> CliRunner:
    return CliRunner()


@pytest.fixture
def requests_seen() -> list[httpx.Request]:
    return []


@pytest.fixture
def serve_with(mocker: MockerFixture, requests_seen: list[httpx.Request]):
    """Route the CLI's HTTP clients to ``handler``."""

    def install(handler: Handler) -> None:
        def record(request: httpx.Request) -> httpx.Response:
            requests_seen.append(request)
            return handler(request)

        transport = httpx.MockTransport(record)
        mocker.patch(
            "app.cli.make_client",
            side_effect=lambda host: httpx.Client(
                base_url=api_url(host), transport=transport
            ),
        )
        mocker.patch(
            "app.cli.make_async_client",
            side_effect=lambda host: httpx.AsyncClient(
                base_url=api_url(host), transport=transport
            ),
        )

    return install


def test_api_url():
    assert api_url("http://localhost:3715/") == "http://localhost:3715/api/v1"


class TestValidate:
    def test_posts_location(self, runner, serve_with, requests_seen):
        serve_with(corrected)

        result = runner.invoke(
            cli,
            [
                "validate",
                "--address", "1600 Pennsylvania Ave",
                "--city", "Washington",
                "--state", "DC",
                "--zip", "20500",
                "--lat", "38.8977",
                "--lng", "-77.0365",
                "--host", HOST,
            ],
        )

        assert result.exit_code == 0, result.output
        (request,) = requests_seen
        assert str(request.url) == f"{HOST}/api/v1/validate-location"
        assert json.loads(request.content) == {
            "streetAddress": "1600 Pennsylvania Ave",
            "city": "Washington",
            "state": "DC",
            "zipCode": "20500",
            "geo": {"type": "Point", "coordinates": [-77.0365, 38.8977]},
        }
        assert json.loads(result.output)["status"] is True

    def test_compact_output(self, runner, serve_with):
        serve_with(corrected)

        result = runner.invoke(
            cli, ["validate", "--address", "1 Main St", "--format", "compact", "--host", HOST]
        )

        assert result.output.strip().startswith('{"geo"')

    def test_error_response_exits_nonzero(self, runner, serve_with):
        serve_with(lambda request: httpx.Response(400, json={"error": "bad"}))

        result = runner.invoke(cli, ["validate", "--address", "1 Main St", "--host", HOST])

        assert result.exit_code == 1
        assert "Error (400)" in result.output

    def test_connection_failure(self, runner, serve_with):
        def refuse(request: httpx.Request) -> httpx.Response:
            raise httpx.ConnectError("refused", request=request)

        serve_with(refuse)

        result = runner.invoke(cli, ["validate", "--address", "1 Main St", "--host", HOST])

        assert result.exit_code == 1
        assert "Request failed" in result.output


class TestBatch:
    def write(self, tmp_path: Path, data: Any) -> Path:
        path = tmp_path / "locations.json"
        path.write_text(json.dumps(data))
        return path

    def test_batch_to_file(self, runner, serve_with, requests_seen, tmp_path):
        serve_with(corrected)
        input_file = self.write(
            tmp_path, [{"streetAddress": "1 Main St"}, {"streetAddress": "2 Main St"}]
        )
        output_file = tmp_path / "results.json"

        result = runner.invoke(
            cli,
            [
                "batch",
                "--file", str(input_file),
                "--output", str(output_file),
                "--parallel", "2",
                "--host", HOST,
            ],
        )

        assert result.exit_code == 0, result.output
        assert "Successful: 2" in result.output
        assert "Failed: 0" in result.output
        saved = json.loads(output_file.read_text())
        assert [item["index"] for item in saved] == [0, 1]
        assert saved[1]["output"]["formattedAddress"] == "2 Main St"
        assert len(requests_seen) == 2

    def test_failed_requests_are_counted(self, runner, serve_with, tmp_path):
        serve_with(lambda request: httpx.Response(400, json={"error": "bad"}))
        input_file = self.write(tmp_path, [{}])

        result = runner.invoke(cli, ["batch", "--file", str(input_file), "--host", HOST])

        assert "Successful: 0" in result.output
        assert "Failed: 1" in result.output

    def test_rejects_non_array(self, runner, tmp_path):
        input_file = self.write(tmp_path, {"streetAddress": "1 Main St"})

        result = runner.invoke(cli, ["batch", "--file", str(input_file)])

        assert result.exit_code == 1
        assert "must contain an array" in result.output

    def test_rejects_invalid_json(self, runner, tmp_path):
        input_file = tmp_path / "broken.json"
        input_file.write_text("[{")

        result = runner.invoke(cli, ["batch", "--file", str(input_file)])

        assert result.exit_code == 1
        assert "Invalid JSON" in result.output


def test_sample_run(runner, serve_with, requests_seen):
    serve_with(corrected)

    result = runner.invoke(cli, ["test", "--host", HOST])

    assert result.exit_code == 0, result.output
    assert "Testing: White House" in result.output
    assert "Coordinates: -77.0365, 38.8977" in result.output
    assert len(requests_seen) == 3


def test_health(runner, serve_with, requests_seen):
    serve_with(lambda request: httpx.Response(200, json={"status": "ok"}))

    result = runner.invoke(cli, ["health", "--host", HOST])

    assert result.exit_code == 0
    assert json.loads(result.output) == {"status": "ok"}
    assert requests_seen[0].url.path == "/api/v1/health"


def test_cache_stats_unreachable(runner, serve_with):
    serve_with(lambda request: httpx.Response(503))

    result = runner.invoke(cli, ["cache-stats", "--host", HOST])

    assert result.exit_code == 1
    assert "Cannot reach API" in result.output


def test_serve(runner, mocker: MockerFixture):
    run = mocker.patch("uvicorn.run")

    result = runner.invoke(cli, ["serve", "--port", "9000"])

    assert result.exit_code == 0
    run.assert_called_once_with("app.main:app", host="0.0.0.0", port=9000)
