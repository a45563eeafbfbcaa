"""Key, credential and proof commands.

Every command exchanges the exported JSON shapes through files, so the
issuer, holder and verifier steps can run as separate processes.
"""

import asyncio
from pathlib import Path

import typer
from pydantic import ValidationError
from rich.table import Table

from sdcred.cli.common import (
    console,
    err_console,
    load_engine,
    parse_hex,
    parse_pairs,
    read_json,
    write_json,
)
from sdcred.engine import VerifyRequest
from sdcred.errors import SdcredError
from sdcred.models import Credential, Predicate, Proof, VerificationResult

_INTEGER_PARAMS = {"threshold", "minimum", "maximum"}


def _fail(message: str) -> typer.Exit:
    err_console.print(f"[red]✗[/red] {message}")
    return typer.Exit(code=2)


def keygen_command(out: Path, backend: str | None, config_path: Path | None, verbose: bool) -> None:
    """Generate an issuer key pair and write it with its private key."""
    config, engine = load_engine(config_path, verbose)
    try:
        key = asyncio.run(engine.create_issuer(backend or config.default_backend))
    except SdcredError as e:
        raise _fail(str(e)) from e

    write_json(out, key.export(include_private=True))
    console.print(f"[green]✓[/green] Generated {key.backend} key [bold]{key.key_id}[/bold] -> {out}")
    console.print("[yellow]⚠[/yellow] The file contains the private key; keep it secret.")


def issue_command(
    key: Path, attrs: list[str], out: Path, config_path: Path | None, verbose: bool
) -> None:
    """Issue a credential from ``name=value`` attributes."""
    _, engine = load_engine(config_path, verbose)
    attributes = parse_pairs(attrs, "attribute")
    try:
        issuer = engine.keys.import_key(read_json(key))
        credential = asyncio.run(engine.issuer.issue(issuer.key_id, attributes))
    except (SdcredError, ValueError) as e:
        raise _fail(str(e)) from e

    write_json(out, credential.to_json_dict())
    console.print(
        f"[green]✓[/green] Issued credential [bold]{credential.id}[/bold] "
        f"with {credential.message_count} attributes -> {out}"
    )
    console.print("Attribute order: " + ", ".join(credential.attribute_names))


def prove_command(
    credential: Path,
    reveal: list[str],
    nonce: str | None,
    out: Path,
    config_path: Path | None,
    verbose: bool,
) -> None:
    """Derive a proof disclosing the named attributes."""
    _, engine = load_engine(config_path, verbose)
    nonce_bytes = parse_hex(nonce, "Nonce")
    try:
        held = Credential.model_validate(read_json(credential))
        proof = asyncio.run(engine.prover.create_proof_for_attributes(held, reveal, nonce_bytes))
    except ValidationError as e:
        raise _fail(f"Invalid credential file: {e}") from e
    except (SdcredError, ValueError) as e:
        raise _fail(str(e)) from e

    write_json(out, proof.to_json_dict())
    console.print(
        f"[green]✓[/green] Created proof [bold]{proof.id}[/bold] revealing "
        f"{', '.join(reveal) or 'nothing'} -> {out}"
    )


def _predicate_params(params: list[str]) -> dict[str, object]:
    parsed: dict[str, object] = {}
    for name, value in parse_pairs(params, "predicate parameter").items():
        if name in _INTEGER_PARAMS:
            try:
                parsed[name] = int(value)
            except ValueError as e:
                raise _fail(f"Predicate parameter {name!r} must be an integer") from e
        else:
            parsed[name] = value
    return parsed


def verify_command(
    proof: Path,
    predicate: str,
    params: list[str],
    nonce: str | None,
    issuer_key: str | None,
    config_path: Path | None,
    verbose: bool,
) -> bool:
    """Verify a proof and print the result. Returns ``result.verified``."""
    _, engine = load_engine(config_path, verbose)
    try:
        request = VerifyRequest(
            proof=Proof.model_validate(read_json(proof)),
            predicate=Predicate(kind=predicate, params=_predicate_params(params)),
            expected_nonce=parse_hex(nonce, "Nonce"),
            issuer_public_key=parse_hex(issuer_key, "Issuer key"),
        )
    except ValidationError as e:
        raise _fail(f"Invalid verify request: {e}") from e

    result = asyncio.run(engine.verify(request))
    print_result(result)
    return result.verified


def print_result(result: VerificationResult, title: str = "Verification Result") -> None:
    table = Table(title=title, show_header=True, header_style="bold cyan")
    table.add_column("Check", style="white", width=26)
    table.add_column("Status", width=10)
    table.add_column("Details", style="dim")

    def mark(ok: bool) -> str:
        return "[green]✓[/green]" if ok else "[red]✗[/red]"

    table.add_row("Outcome", mark(result.verified), str(result.outcome))
    table.add_row("Cryptographically valid", mark(result.cryptographically_valid), str(result.backend))
    table.add_row(
        "Predicate satisfied",
        mark(result.predicate_satisfied),
        str(result.details.get("predicate_reason", "")),
    )
    for name, ok in result.details.get("checks", {}).items():
        table.add_row(f"  {name}", mark(ok), "")
    if result.simulation:
        table.add_row("Simulation", "[yellow]⚠[/yellow]", "Not a cryptographic guarantee")
    for name, value in result.disclosed_values.items():
        table.add_row(f"Disclosed: {name}", "", value)
    for error in result.errors:
        table.add_row("Error", "[red]✗[/red]", error)

    console.print(table)
