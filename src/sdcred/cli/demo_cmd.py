"""Demo command - end-to-end age verification scenarios."""

import asyncio
import secrets
from pathlib import Path

from rich.panel import Panel

from sdcred.cli.common import console, load_engine
from sdcred.cli.credential_cmd import print_result
from sdcred.engine import CredentialEngine
from sdcred.identity import create_identity
from sdcred.models import Backend, VerificationOutcome


def demo_command(backend: str | None, config_path: Path | None, verbose: bool) -> bool:
    """Run the demo scenarios; returns True when every scenario behaved as expected."""
    config, engine = load_engine(config_path, verbose)
    backend = Backend(backend or config.default_backend)
    console.print(
        Panel.fit(
            f"[bold blue]sdcred demo[/bold blue]\nBackend: {backend}",
            border_style="blue",
        )
    )
    return asyncio.run(_async_demo(engine, backend))


async def _async_demo(engine: CredentialEngine, backend: Backend) -> bool:
    issuer = await engine.create_issuer(backend)
    console.print(f"Issuer key: [bold]{issuer.key_id}[/bold]")

    scenarios = [
        # name, age, threshold, expected outcome
        ("Alice", 25, 18, VerificationOutcome.ACCEPTED),
        ("Alice", 25, 21, VerificationOutcome.ACCEPTED),
        ("Bob", 16, 18, VerificationOutcome.PREDICATE_NOT_SATISFIED),
    ]

    all_ok = True
    for name, age, threshold, expected in scenarios:
        identity = create_identity(name=name, age=age, country="ES")
        credential = await engine.issue_identity_credential(issuer.key_id, identity)
        nonce = secrets.token_bytes(32)
        proof = await engine.create_age_proof(credential.id, threshold, nonce)
        result = await engine.verify_age_proof(
            proof, threshold, expected_nonce=nonce, issuer_public_key=issuer.public_key
        )

        ok = result.outcome == expected
        all_ok = all_ok and ok
        status = "[green]as expected[/green]" if ok else "[red]unexpected[/red]"
        print_result(result, title=f"{name} ({age}) proves age >= {threshold}: {status}")

    return all_ok
