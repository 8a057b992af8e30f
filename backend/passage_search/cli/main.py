"""CLI entrypoint for Passage Search."""

from __future__ import annotations

import json
import os
from typing import List, Optional

import requests
import typer

app = typer.Typer(name="psearch", help="Passage Search command-line interface")

DEFAULT_HOST = "http://127.0.0.1:5180"


def _resolve_host(override: Optional[str]) -> str:
    if override:
        return override.rstrip('/')
    env_host = os.environ.get("PSEARCH_HOST")
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


@app.command()
def search(
    q: str = typer.Argument(..., help="Query text"),
    doc: List[str] = typer.Option([], "--doc", help="Document ID to search within (repeatable)"),
    k: Optional[int] = typer.Option(None, "--k", min=1, max=50, help="Number of results to return"),
    rerank: Optional[bool] = typer.Option(None, "--rerank/--no-rerank", help="Force reranking on/off"),
    host: Optional[str] = typer.Option(None, "--host", help="Override backend host"),
) -> None:
    """Hybrid search within the given documents."""
    payload: dict[str, object] = {"query": q, "document_ids": doc}
    if k is not None:
        payload["top_k"] = k
    if rerank is not None:
        payload["rerank"] = rerank
    resp = _request("POST", "/search", host=host, json=payload)
    typer.echo(json.dumps(resp.json(), indent=2, ensure_ascii=False))


@app.command()
def batch(
    queries: List[str] = typer.Argument(..., help="Sub-queries to run"),
    doc: List[str] = typer.Option([], "--doc", help="Document ID to search within (repeatable)"),
    host: Optional[str] = typer.Option(None, "--host", help="Override backend host"),
) -> None:
    """Run several queries and print the merged, de-duplicated results."""
    payload = {"queries": queries, "document_ids": doc}
    resp = _request("POST", "/search/batch", host=host, json=payload)
    typer.echo(json.dumps(resp.json(), indent=2, ensure_ascii=False))


if __name__ == "__main__":
    app()
