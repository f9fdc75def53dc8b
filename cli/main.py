#!/usr/bin/env python3
"""
Airdrop Prover - Command Line Interface

Creates the proof needed to collect a faucet, airdrop or sponsor reward.

Usage:
    airdrop-prover KEY_FILE ADDRESS [options]
    airdrop-prover ADDRESS [options]
"""

import functools
import json
import logging
import sys
from pathlib import Path
from typing import Any, Dict, List, Optional

import click

from airdrop.amounts import parse_amount
from airdrop.builder import ProofAssembler, RedemptionTarget
from airdrop.events import EventEmitter
from airdrop.exceptions import AirdropError
from airdrop.key import load_key_material, read_entries
from airdrop.params import NetworkParams, PRODUCTION, DEVELOPMENT
from airdrop.proof import RedemptionProof
from airdrop.store import AllocationTreeStore
from airdrop.transform import TransformMode
from crypto.address import is_address, parse_address
from crypto.exceptions import CryptoError
from network.client import FetchError, LocalDirectorySource, TreeDataClient

from cli import __version__
from cli.config import ConfigurationManager
from cli.output import OUTPUT_FORMATS, EventRenderer, OutputFormatter


LOG_HANDLER_NAME = 'airdrop-cli'


class CLIContext:
    """CLI state shared by the redemption steps."""

    def __init__(self):
        self.config_file: Optional[str] = None
        self.environment: Optional[str] = None
        self.output_format: str = 'base64'
        self.verbose: int = 0
        self.config: Optional[ConfigurationManager] = None
        self.logger: Optional[logging.Logger] = None

    def setup_logging(self):
        """Configure logging based on verbosity level."""
        log_levels = {
            0: logging.WARNING,
            1: logging.INFO,
            2: logging.DEBUG
        }

        level = log_levels.get(min(self.verbose, 2), logging.DEBUG)

        formatter = logging.Formatter(
            '%(asctime)s - %(name)s - %(levelname)s - %(message)s'
        )

        handler = logging.StreamHandler(sys.stderr)
        handler.setFormatter(formatter)
        handler.set_name(LOG_HANDLER_NAME)

        root = logging.getLogger()
        for existing in list(root.handlers):
            if existing.get_name() == LOG_HANDLER_NAME:
                root.removeHandler(existing)
        root.addHandler(handler)
        root.setLevel(level)

        self.logger = logging.getLogger(LOG_HANDLER_NAME)

        # Suppress verbose third-party logs unless in debug mode
        if self.verbose < 2:
            logging.getLogger('requests').setLevel(logging.WARNING)
            logging.getLogger('urllib3').setLevel(logging.WARNING)

    def load_config(self):
        """Load layered configuration for the selected environment."""
        self.config = ConfigurationManager(self.config_file, self.environment)
        errors = self.config.validate()
        if errors:
            raise click.UsageError('; '.join(errors))
        self.logger.debug(f"Configuration sources: {self.config.get_sources()}")

    def get_config(self, key: str, default: Any = None) -> Any:
        """Get configuration value with fallback to default."""
        return self.config.get(key, default)

    def load_params(self) -> NetworkParams:
        """Read the network descriptors for the configured environment."""
        environment = self.get_config('environment')
        descriptors = self.get_config('data.descriptors')

        if descriptors:
            directory = Path(descriptors) / environment
        else:
            directory = Path(self.get_config('data.dir'))

        self.logger.debug(f"Loading {environment} descriptors from {directory}")
        return NetworkParams.from_directory(environment, directory)

    def create_source(self, offline: bool):
        """Build the artifact source for the data directory."""
        data_dir = self.get_config('data.dir')
        if offline:
            return LocalDirectorySource(data_dir)
        return TreeDataClient(
            base_url=self.get_config('data.base_url'),
            cache_dir=data_dir,
            timeout=self.get_config('data.timeout'),
            max_size=self.get_config('data.max_size'),
        )


pass_context = click.make_pass_decorator(CLIContext, ensure=True)


def handle_cli_error(func):
    """Decorator turning redemption failures into a message and exit status 1."""
    @functools.wraps(func)
    def wrapper(*args, **kwargs):
        try:
            return func(*args, **kwargs)
        except KeyboardInterrupt:
            click.echo("\nOperation cancelled by user.", err=True)
            sys.exit(130)
        except (AirdropError, CryptoError, FetchError, ValueError, OSError) as e:
            ctx = click.get_current_context().find_object(CLIContext)

            if ctx and ctx.verbose >= 2:
                import traceback
                click.echo(f"Error: {e}", err=True)
                click.echo(traceback.format_exc(), err=True)
            else:
                click.echo(f"Error: {e}", err=True)
                click.echo("Use -vv for detailed error information.", err=True)

            sys.exit(1)

    return wrapper


def load_json_file(file_path: str) -> Dict[str, Any]:
    """Load and validate a JSON document."""
    path = Path(file_path)
    if not path.exists():
        raise click.FileError(file_path, hint="File not found")

    try:
        with open(path, 'r') as f:
            return json.load(f)
    except json.JSONDecodeError as e:
        raise click.FileError(file_path, hint=f"Invalid JSON: {e}")


def create_key_proofs(assembler: ProofAssembler, key_file: str, address: str,
                      fee: int) -> List[RedemptionProof]:
    """Redeem the PGP/SSH key described by a key material file."""
    key, secret = load_key_material(load_json_file(key_file))

    if secret is None:
        raise AirdropError("Key material has no private key.")

    target = RedemptionTarget.from_address(address, fee)
    return assembler.create_key_proofs(key, secret, target)


def create_addr_proofs(assembler: ProofAssembler, address: str,
                       fee: Optional[int]) -> List[RedemptionProof]:
    """Redeem every faucet or sponsor entry of an address."""
    entries = read_entries(address, assembler.store.read_proof_mapping())
    return assembler.create_addr_proofs(entries, fee)


@click.command(context_settings={'help_option_names': ['-h', '--help']})
@click.argument('key_file_or_address')
@click.argument('address', required=False)
@click.option('--fee', '-f', help='Fee for redemption (default: 0.1)')
@click.option('--bare', '-b', is_flag=True,
              help='Redeem with the registered public key instead of a tweaked one')
@click.option('--data-dir', '-d', help='Data directory for cache (default: ~/.hs-tree-data)')
@click.option('--environment', '-e', type=click.Choice([PRODUCTION, DEVELOPMENT]),
              help='Allocation data set')
@click.option('--descriptors', type=click.Path(file_okay=False),
              help='Directory holding <environment>/tree.json and faucet.json')
@click.option('--offline', is_flag=True, help='Read artifacts from the data directory only')
@click.option('--config-file', '-c', help='Path to configuration file')
@click.option('--output-format', '-o', type=click.Choice(OUTPUT_FORMATS), default='base64',
              help='Proof output format')
@click.option('--json', 'as_json', is_flag=True, help='Print JSON proofs after the base64 strings')
@click.option('--verbose', '-v', count=True, help='Increase verbosity (-v for INFO, -vv for DEBUG)')
@click.version_option(__version__, '--version', prog_name='airdrop-prover')
@pass_context
@handle_cli_error
def cli(ctx: CLIContext, key_file_or_address: str, address: Optional[str], fee: Optional[str],
        bare: bool, data_dir: Optional[str], environment: Optional[str],
        descriptors: Optional[str], offline: bool, config_file: Optional[str],
        output_format: str, as_json: bool, verbose: int):
    """
    Create the proof needed to collect a faucet, airdrop or sponsor reward.

    KEY_FILE is a JSON key material document:
    {"origin": "pgp"|"ssh", "public_key": hex, "private_key": hex}.

    ADDRESS must be a Handshake bech32 address. Given alone, the proofs for
    every faucet or sponsor entry of that address are created.

    The base64 string must be passed to:
        $ hsd-rpc sendrawairdrop "base64-string"
    """
    ctx.config_file = config_file
    ctx.environment = environment
    ctx.output_format = output_format
    ctx.verbose = verbose

    ctx.setup_logging()
    ctx.load_config()

    if data_dir:
        ctx.config.set('data.dir', str(Path(data_dir).expanduser()))
    if descriptors:
        ctx.config.set('data.descriptors', descriptors)

    if address is None:
        if not is_address(key_file_or_address):
            raise click.UsageError("A single argument must be a bech32 address.")
        key_file = None
        address = key_file_or_address
    else:
        key_file = key_file_or_address

    # Reject bad targets before touching any data
    parse_address(address)

    bare = bare or ctx.get_config('redeem.bare')
    mode = TransformMode.BARE if bare else TransformMode.TWEAKED

    params = ctx.load_params()

    events = EventEmitter()
    events.add_callback(EventRenderer(lambda line: click.echo(line, err=True)))

    source = ctx.create_source(offline)
    store = AllocationTreeStore(params, source, events)
    assembler = ProofAssembler(store, mode=mode)

    click.echo('Attempting to create proof.', err=True)
    click.echo('This may take a bit.', err=True)

    try:
        if key_file is not None:
            proofs = create_key_proofs(
                assembler, key_file, address,
                parse_amount(fee if fee is not None else ctx.get_config('redeem.fee')),
            )
        else:
            proofs = create_addr_proofs(
                assembler, address,
                parse_amount(fee) if fee is not None else None,
            )
    finally:
        if isinstance(source, TreeDataClient):
            source.close()

    formatter = OutputFormatter(output_format)
    click.echo(formatter.format_proofs(proofs, params))

    if as_json and output_format != 'json':
        click.echo(OutputFormatter('json').format_proofs(proofs, params))

    ctx.logger.info(f"Created {len(proofs)} proof(s)")


def main():
    """Console script entry point."""
    cli()


if __name__ == '__main__':
    main()
