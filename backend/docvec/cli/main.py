"""CLI entrypoint for docvec."""

from __future__ import annotations

import json
import os
from pathlib import Path
from typing import Optional

import requests
import typer

app = typer.Typer(name="docvec", help="docvec command-line interface")
documents_app = typer.Typer(name="documents")
app.add_typer(documents_app, name="documents")

DEFAULT_HOST = "http://127.0.0.1:5180"


def _resolve_host(override: Optional[str]) -> str:
    if override:
        return override.rstrip('/')
    env_host = os.environ.get("DOCVEC_HOST")
    if env_host:
        return env_host.rstrip('/')
    return DEFAULT_HOST


def _request(method: str, path: str, host: Optional[str] = None, **kwargs) -> requests.Response:
    base = _resolve_host(host)
    url = f"{base}{path}"
    resp = requests.request(method, url, timeout=60, **kwargs)
    if not resp.ok:
        try:
            detail = resp.json()
        except ValueError:
            detail = resp.text
        typer.echo(f"Request failed ({resp.status_code}): {detail}", err=True)
        raise typer.Exit(code=1)
    return resp


def _load_embedding(embedding: Optional[str], embedding_file: Optional[Path]) -> list[float]:
    if embedding_file is not None:
        raw = embedding_file.expanduser().read_text(encoding="utf-8")
    elif embedding is not None:
        raw = embedding
    else:
        typer.echo("Provide --embedding or --embedding-file", err=True)
        raise typer.Exit(code=2)
    try:
        values = json.loads(raw)
    except json.JSONDecodeError:
        values = [float(part) for part in raw.replace(",", " ").split()]
    return [float(value) for value in values]


@app.command()
def match(
    embedding: Optional[str] = typer.Option(None, "--embedding", help="Query vector as JSON or comma-separated floats"),
    embedding_file: Optional[Path] = typer.Option(None, "--embedding-file", help="File holding the query vector"),
    count: Optional[int] = typer.Option(None, "--count", help="Maximum number of results"),
    threshold: Optional[float] = typer.Option(None, "--threshold", help="Minimum similarity in [-1, 1]"),
    filter_json: Optional[str] = typer.Option(None, "--filter", help="Metadata filter as a JSON object"),
    host: Optional[str] = typer.Option(None, "--host", help="Override backend host"),
) -> None:
    """Run a nearest-neighbor match."""
    payload: dict[str, object] = {"query_embedding": _load_embedding(embedding, embedding_file)}
    if count is not None:
        payload["match_count"] = count
    if threshold is not None:
        payload["similarity_threshold"] = threshold
    if filter_json:
        payload["filter"] = json.loads(filter_json)
    resp = _request("POST", "/match", host=host, json=payload)
    typer.echo(json.dumps(resp.json(), indent=2))


@app.command()
def rebuild(
    host: Optional[str] = typer.Option(None, "--host", help="Override backend host"),
) -> None:
    """Rebuild the ANN index from stored vectors."""
    resp = _request("POST", "/index/rebuild", host=host)
    typer.echo(json.dumps(resp.json(), indent=2))


@app.command()
def status(
    host: Optional[str] = typer.Option(None, "--host", help="Override backend host"),
) -> None:
    """Show the active index backend and size."""
    resp = _request("GET", "/index", host=host)
    typer.echo(json.dumps(resp.json(), indent=2))


@documents_app.command("list")
def list_documents(
    host: Optional[str] = typer.Option(None, "--host", help="Override backend host"),
) -> None:
    """List registered documents."""
    resp = _request("GET", "/documents", host=host)
    typer.echo(json.dumps(resp.json(), indent=2))


@documents_app.command("remove")
def remove_document(
    document_id: str = typer.Argument(..., help="Document identifier"),
    host: Optional[str] = typer.Option(None, "--host", help="Override backend host"),
) -> None:
    """Delete a document and its rows."""
    resp = _request("DELETE", f"/documents/{document_id}", host=host)
    typer.echo(json.dumps(resp.json(), indent=2))


if __name__ == "__main__":
    app()
