"""Main CLI application using Typer."""

import sys
from pathlib import Path

import typer
from rich.console import Console

from sdcred import __version__

# Create Typer app
app = typer.Typer(
    name="sdcred",
    help="sdcred - Selective-disclosure credentials and zero-knowledge proofs",
    no_args_is_help=True,
)

console = Console()

_state: dict[str, object] = {"config_path": None, "verbose": False}


@app.callback()
def global_options(
    config_path: Path = typer.Option(
        None,
        "--config",
        "-c",
        help="Path to config file (default: $SDCRED_CONFIG or ~/.sdcred/sdcred.yaml)",
    ),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Enable debug logging"),
):
    """Issue credentials, derive proofs and verify them."""
    _state["config_path"] = config_path
    _state["verbose"] = verbose


@app.command()
def version():
    """Show sdcred version."""
    console.print(f"sdcred version {__version__}")


@app.command()
def keygen(
    out: Path = typer.Option(..., "--out", "-o", help="Where to write the key JSON"),
    backend: str = typer.Option(
        None,
        "--backend",
        "-b",
        help="pairing_signature or simulated_threshold (default from config)",
    ),
):
    """Generate an issuer key pair (written with its private key)."""
    from sdcred.cli.credential_cmd import keygen_command

    keygen_command(out=out, backend=backend, **_state)


@app.command()
def issue(
    key: Path = typer.Option(..., "--key", "-k", help="Issuer key JSON from 'keygen'"),
    attr: list[str] = typer.Option(..., "--attr", "-a", help="Attribute as name=value"),
    out: Path = typer.Option(..., "--out", "-o", help="Where to write the credential JSON"),
):
    """Issue a credential over the given attributes."""
    from sdcred.cli.credential_cmd import issue_command

    issue_command(key=key, attrs=attr, out=out, **_state)


@app.command()
def prove(
    credential: Path = typer.Option(..., "--credential", help="Credential JSON from 'issue'"),
    reveal: list[str] = typer.Option(None, "--reveal", "-r", help="Attribute name to disclose"),
    nonce: str = typer.Option(None, "--nonce", "-n", help="Verifier nonce as hex"),
    out: Path = typer.Option(..., "--out", "-o", help="Where to write the proof JSON"),
):
    """Derive a selective-disclosure proof from a credential."""
    from sdcred.cli.credential_cmd import prove_command

    prove_command(credential=credential, reveal=reveal or [], nonce=nonce, out=out, **_state)


@app.command()
def verify(
    proof: Path = typer.Argument(..., help="Proof JSON from 'prove'"),
    predicate: str = typer.Option("always", "--predicate", "-p", help="Predicate kind"),
    param: list[str] = typer.Option(None, "--param", help="Predicate parameter as key=value"),
    nonce: str = typer.Option(None, "--nonce", "-n", help="Expected nonce as hex"),
    issuer_key: str = typer.Option(None, "--issuer-key", help="Trusted issuer public key as hex"),
):
    """Verify a proof. Exits 0 only when the proof is valid and the predicate holds."""
    from sdcred.cli.credential_cmd import verify_command

    verified = verify_command(
        proof=proof,
        predicate=predicate,
        params=param or [],
        nonce=nonce,
        issuer_key=issuer_key,
        **_state,
    )
    if not verified:
        raise typer.Exit(code=1)


@app.command()
def demo(
    backend: str = typer.Option(
        None,
        "--backend",
        "-b",
        help="pairing_signature or simulated_threshold (default from config)",
    ),
):
    """Run the age-threshold and minor-rejection scenarios end to end."""
    from sdcred.cli.demo_cmd import demo_command

    if not demo_command(backend=backend, **_state):
        raise typer.Exit(code=1)


def main():
    """Entry point for the CLI."""
    try:
        app()
    except KeyboardInterrupt:
        console.print("\n[yellow]Interrupted by user[/yellow]")
        sys.exit(130)
    except Exception as e:
        console.print(f"[red]Error: {e}[/red]")
        sys.exit(1)


if __name__ == "__main__":
    main()
