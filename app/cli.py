#!/usr/bin/env python3
"""CLI commands for the address correction service."""

import asyncio
import json
import sys
from pathlib import Path
from typing import Any

import click
import httpx

from app.core.config import settings

DEFAULT_HOST = f"http://localhost:{settings.PORT}"

SAMPLE_LOCATIONS: list[tuple[str, dict[str, Any]]] = [
    (
        "White House",
        {
            "streetAddress": "1600 Pennsylvania Avenue",
            "city": "Washington",
            "state": "DC",
            "zipCode": "20500",
        },
    ),
    (
        "Empire State Building",
        {
            "streetAddress": "350 5th Ave",
            "city": "New York",
            "state": "NY",
            "zipCode": "10118",
        },
    ),
    (
        "Golden Gate Bridge (coordinates)",
        {"geo": {"type": "Point", "coordinates": [-122.4783, 37.8199]}},
    ),
]


def api_url(host: str) -> str:
    return host.rstrip("/") + settings.api_prefix


def make_client(host: str) -> httpx.Client:
    return httpx.Client(base_url=api_url(host), timeout=30.0)


def make_async_client(host: str) -> httpx.AsyncClient:
    return httpx.AsyncClient(base_url=api_url(host), timeout=30.0)


def format_output(data: Any) -> str:
    return json.dumps(data, indent=2)


@click.group()
def cli() -> None:
    """Address correction service commands."""
    pass


@cli.command()
@click.option("--address", required=True, help="Street address")
@click.option("--city", help="City name")
@click.option("--state", help="State code (2 letters)")
@click.option("--zip", "zip_code", help="ZIP code")
@click.option("--lat", type=float, help="Latitude")
@click.option("--lng", type=float, help="Longitude")
@click.option("--host", default=DEFAULT_HOST, show_default=True, help="API host")
@click.option(
    "--format",
    "output_format",
    type=click.Choice(["json", "compact"]),
    default="json",
    help="Output format",
)
def validate(address, city, state, zip_code, lat, lng, host, output_format):
    """Validate and correct a single address."""
    body: dict[str, Any] = {"streetAddress": address}
    if city:
        body["city"] = city
    if state:
        body["state"] = state
    if zip_code:
        body["zipCode"] = zip_code
    if lat is not None and lng is not None:
        body["geo"] = {"type": "Point", "coordinates": [lng, lat]}

    try:
        with make_client(host) as client:
            response = client.post("/validate-location", json=body)
    except httpx.HTTPError as e:
        raise click.ClickException(f"Request failed: {e}") from e

    data = response.json()
    text = format_output(data) if output_format == "json" else json.dumps(data)
    if response.status_code != 200:
        click.echo(f"Error ({response.status_code}):", err=True)
        click.echo(text, err=True)
        sys.exit(1)
    click.echo(text)


async def _post_all(
    host: str, locations: list[Any], parallel: int
) -> list[dict[str, Any]]:
    semaphore = asyncio.Semaphore(parallel)

    async with make_async_client(host) as client:

        async def post(index: int, location: Any) -> dict[str, Any]:
            async with semaphore:
                try:
                    response = await client.post("/validate-location", json=location)
                except httpx.HTTPError as e:
                    return {
                        "index": index,
                        "input": location,
                        "status": "error",
                        "error": str(e),
                    }
                return {
                    "index": index,
                    "input": location,
                    "status": response.status_code,
                    "output": response.json(),
                }

        return list(
            await asyncio.gather(
                *(post(index, location) for index, location in enumerate(locations))
            )
        )


@cli.command()
@click.option(
    "--file",
    "input_file",
    required=True,
    type=click.Path(exists=True, dir_okay=False, path_type=Path),
    help="JSON file with an array of locations",
)
@click.option(
    "--output", type=click.Path(dir_okay=False, path_type=Path), help="Output file"
)
@click.option(
    "--parallel", default=5, type=click.IntRange(min=1), help="Parallel requests"
)
@click.option("--host", default=DEFAULT_HOST, show_default=True, help="API host")
def batch(input_file, output, parallel, host):
    """Validate multiple locations from a file."""
    try:
        locations = json.loads(input_file.read_text())
    except json.JSONDecodeError as e:
        raise click.ClickException(f"Invalid JSON in {input_file}: {e}") from e
    if not isinstance(locations, list):
        raise click.ClickException("Input file must contain an array of locations")

    click.echo(f"Validating {len(locations)} locations...")
    results = asyncio.run(_post_all(host, locations, parallel))

    successful = sum(1 for result in results if result["status"] == 200)
    click.echo(f"Successful: {successful}")
    click.echo(f"Failed: {len(results) - successful}")

    if output:
        output.write_text(format_output(results))
        click.echo(f"Results saved to: {output}")
    else:
        click.echo(format_output(results))


@cli.command()
@click.option("--host", default=DEFAULT_HOST, show_default=True, help="API host")
def test(host):
    """Run sample locations through the service."""
    with make_client(host) as client:
        for name, location in SAMPLE_LOCATIONS:
            click.echo(f"Testing: {name}")
            try:
                response = client.post("/validate-location", json=location)
            except httpx.HTTPError as e:
                click.echo(f"  Error: {e}")
                continue

            if response.status_code != 200:
                click.echo(f"  Failed ({response.status_code})")
                continue
            data = response.json()
            coordinates = ", ".join(str(c) for c in data["geo"]["coordinates"])
            click.echo(f"  Status: {data['status']}")
            click.echo(f"  Address: {data.get('formattedAddress')}")
            click.echo(f"  Coordinates: {coordinates}")


def _get_json(host: str, path: str) -> dict[str, Any]:
    try:
        with make_client(host) as client:
            response = client.get(path)
            response.raise_for_status()
            return response.json()
    except httpx.HTTPError as e:
        raise click.ClickException(f"Cannot reach API: {e}") from e


@cli.command()
@click.option("--host", default=DEFAULT_HOST, show_default=True, help="API host")
def health(host):
    """Check API health status."""
    click.echo(format_output(_get_json(host, "/health")))


@cli.command("cache-stats")
@click.option("--host", default=DEFAULT_HOST, show_default=True, help="API host")
def cache_stats(host):
    """Show geocoding cache statistics."""
    click.echo(format_output(_get_json(host, "/cache/stats")))


@cli.command()
@click.option("--host", default="0.0.0.0", help="Host to bind to")
@click.option("--port", default=settings.PORT, type=int, help="Port to bind to")
def serve(host, port):
    """Run the API server."""
    import uvicorn

    uvicorn.run("app.main:app", host=host, port=port)


if __name__ == "__main__":
    cli()
