#!/usr/bin/env python3
"""
CryptoPiano Command Line Interface

Hide password protected, optionally signed messages in WAV files.

Usage:
    cryptopiano carrier [COMMAND]
    cryptopiano embed [OPTIONS]
    cryptopiano extract [OPTIONS]
    cryptopiano key [COMMAND]
    cryptopiano contact [COMMAND]
    cryptopiano --version
    cryptopiano --help

Exit codes:
    0  success
    1  error
    2  wrong password, or no hidden message
"""

import argparse
import getpass
import logging
import sys
from pathlib import Path
from typing import List, Optional

from . import __version__
from .config import PipelineConfig
from .crypto.signatures import SecurityLevel, generate_keypair
from .pipeline import (
    ContactStore,
    JsonContactStore,
    JsonKeyStore,
    KeyStore,
    MessagePipeline,
    MessageStatus,
)
from .stego.carrier import AudioCarrier
from .stego.codec import StegoCodec

logger = logging.getLogger(__name__)

EXIT_OK = 0
EXIT_ERROR = 1
EXIT_NO_MESSAGE = 2

_STATUS_LABELS = {
    MessageStatus.PLAIN_TEXT: "Unencrypted message",
    MessageStatus.UNSIGNED: "Unsigned message",
    MessageStatus.SIGNED_VERIFIED: "Signature verified",
    MessageStatus.SIGNED_UNVERIFIED: "Signed, signature NOT verified",
}


class CryptoPianoCLI:
    """Main CLI application for CryptoPiano."""

    def __init__(
        self,
        config: Optional[PipelineConfig] = None,
        contact_store: Optional[ContactStore] = None,
        key_store: Optional[KeyStore] = None,
    ):
        self._config = config
        self._contact_store = contact_store
        self._key_store = key_store

    @property
    def config(self) -> PipelineConfig:
        if self._config is None:
            self._config = PipelineConfig.load()
        return self._config

    @property
    def contact_store(self) -> ContactStore:
        if self._contact_store is None:
            self._contact_store = JsonContactStore(self.config.contacts_path)
        return self._contact_store

    @property
    def key_store(self) -> KeyStore:
        if self._key_store is None:
            self._key_store = JsonKeyStore(self.config.keypair_path)
        return self._key_store

    def pipeline(self) -> MessagePipeline:
        return MessagePipeline(self.contact_store, self.key_store, self.config)

    def run(self, args: List[str]) -> int:
        """Run the CLI with given arguments."""
        parser = self.create_parser()
        parsed = parser.parse_args(args)

        if hasattr(parsed, 'func'):
            try:
                self.configure_logging(parsed.verbose)
                return parsed.func(parsed)
            except Exception as e:
                logger.debug("Command failed", exc_info=True)
                print(f"Error: {e}", file=sys.stderr)
                return EXIT_ERROR
        else:
            parser.print_help()
            return EXIT_OK

    def configure_logging(self, verbose: bool) -> None:
        level = logging.DEBUG if verbose else getattr(logging, self.config.log_level.upper())
        logging.basicConfig(level=level, format='%(asctime)s - %(name)s - %(levelname)s - %(message)s')

    def create_parser(self) -> argparse.ArgumentParser:
        """Create the argument parser."""
        parser = argparse.ArgumentParser(
            prog="cryptopiano",
            description="Hide encrypted, signed messages in WAV audio",
            formatter_class=argparse.RawDescriptionHelpFormatter,
            epilog="""
Examples:
    cryptopiano carrier create --output piano.wav --seconds 2
    cryptopiano key generate --level 3
    cryptopiano embed --carrier piano.wav --output secret.wav --message "Hello"
    cryptopiano contact add Alice <base64 public key>
    cryptopiano extract --carrier secret.wav --contact <contact id>
            """
        )

        parser.add_argument(
            '--version',
            action='version',
            version=f'CryptoPiano v{__version__}'
        )
        parser.add_argument('--verbose', '-v', action='store_true', help='Enable debug logging')

        subparsers = parser.add_subparsers(title='commands', dest='command')

        # Carrier commands
        self.add_carrier_commands(subparsers)

        # Embed command
        self.add_embed_command(subparsers)

        # Extract command
        self.add_extract_command(subparsers)

        # Key management commands
        self.add_key_commands(subparsers)

        # Contact commands
        self.add_contact_commands(subparsers)

        return parser

    def add_carrier_commands(self, subparsers):
        """Add carrier subcommands."""
        carrier_parser = subparsers.add_parser('carrier', help='Carrier files')
        carrier_subparsers = carrier_parser.add_subparsers(dest='carrier_command')

        create_cmd = carrier_subparsers.add_parser('create', help='Generate a tone carrier')
        create_cmd.add_argument('--output', '-o', required=True, help='Output WAV file')
        create_cmd.add_argument('--seconds', '-s', type=float, default=1.0, help='Duration in seconds')
        create_cmd.add_argument('--rate', '-r', type=int, default=44100, help='Sample rate in Hz')
        create_cmd.add_argument('--frequency', '-f', type=float, default=440.0, help='Tone frequency in Hz')
        create_cmd.set_defaults(func=self.handle_carrier_create)

        info_cmd = carrier_subparsers.add_parser('info', help='Show header fields and capacity')
        info_cmd.add_argument('--carrier', '-c', required=True, help='WAV file')
        info_cmd.set_defaults(func=self.handle_carrier_info)

    def add_embed_command(self, subparsers):
        """Add embed command."""
        cmd = subparsers.add_parser('embed', help='Hide a message in a carrier')
        cmd.add_argument('--carrier', '-c', required=True, help='Carrier WAV file')
        cmd.add_argument('--output', '-o', required=True, help='Output WAV file')
        source = cmd.add_mutually_exclusive_group(required=True)
        source.add_argument('--message', '-m', help='Message text')
        source.add_argument('--input', '-i', help='File whose contents are hidden')
        cmd.add_argument('--password', '-p', help='Password (prompted when omitted)')
        cmd.add_argument('--no-password', action='store_true',
                         help='Embed without encryption (no signature either)')
        cmd.add_argument('--no-sign', action='store_true', help='Do not sign the message')
        cmd.set_defaults(func=self.handle_embed)

    def add_extract_command(self, subparsers):
        """Add extract command."""
        cmd = subparsers.add_parser('extract', help='Recover a hidden message')
        cmd.add_argument('--carrier', '-c', required=True, help='Carrier WAV file')
        cmd.add_argument('--password', '-p', help='Password (prompted when needed)')
        cmd.add_argument('--contact', help='Contact ID whose key verifies the signature')
        cmd.add_argument('--output', '-o', help='Write the message to a file instead of stdout')
        cmd.set_defaults(func=self.handle_extract)

    def add_key_commands(self, subparsers):
        """Add key management subcommands."""
        key_parser = subparsers.add_parser('key', help='Local signing key pair')
        key_subparsers = key_parser.add_subparsers(dest='key_command')

        gen_cmd = key_subparsers.add_parser('generate', help='Generate a new key pair')
        gen_cmd.add_argument('--level', '-l', type=int, choices=[2, 3, 5],
                             help='ML-DSA security level (default: from config)')
        gen_cmd.add_argument('--force', '-f', action='store_true', help='Replace an existing key pair')
        gen_cmd.set_defaults(func=self.handle_key_generate)

        show_cmd = key_subparsers.add_parser('show', help='Show the key pair summary')
        show_cmd.set_defaults(func=self.handle_key_show)

        export_cmd = key_subparsers.add_parser('export', help='Export the public key as base64')
        export_cmd.add_argument('--output', '-o', help='Output file (default: stdout)')
        export_cmd.set_defaults(func=self.handle_key_export)

    def add_contact_commands(self, subparsers):
        """Add contact subcommands."""
        contact_parser = subparsers.add_parser('contact', help='Contacts and their public keys')
        contact_subparsers = contact_parser.add_subparsers(dest='contact_command')

        add_cmd = contact_subparsers.add_parser('add', help='Add a contact')
        add_cmd.add_argument('name', help='Display name')
        add_cmd.add_argument('public_key', help='Base64 public key')
        add_cmd.set_defaults(func=self.handle_contact_add)

        list_cmd = contact_subparsers.add_parser('list', help='List contacts')
        list_cmd.set_defaults(func=self.handle_contact_list)

        remove_cmd = contact_subparsers.add_parser('remove', help='Remove a contact')
        remove_cmd.add_argument('contact_id', help='Contact ID')
        remove_cmd.set_defaults(func=self.handle_contact_remove)

    # Command handlers

    def handle_carrier_create(self, args):
        """Handle carrier create command."""
        carrier = AudioCarrier.tone(seconds=args.seconds, sample_rate=args.rate, frequency=args.frequency)
        carrier.save(args.output)
        print(f"Carrier written to {args.output} ({carrier.capacity_bits} usable samples)")
        return EXIT_OK

    def handle_carrier_info(self, args):
        """Handle carrier info command."""
        carrier = AudioCarrier.load(args.carrier)
        header = carrier.header
        if header is None:
            print("Header:        not a WAV header")
        else:
            print(f"Format:        {'PCM' if header.audio_format == 1 else header.audio_format}")
            print(f"Channels:      {header.channels}")
            print(f"Sample rate:   {header.sample_rate} Hz")
            print(f"Bits/sample:   {header.bits_per_sample}")
            print(f"Duration:      {header.duration:.2f} s")
        print(f"Capacity:      {carrier.capacity_bits} bits ({StegoCodec().capacity_bytes(carrier)} payload bytes)")
        return EXIT_OK

    def handle_embed(self, args):
        """Handle embed command."""
        if args.input:
            message = Path(args.input).read_bytes()
        else:
            message = args.message

        password = None
        if not args.no_password:
            password = args.password if args.password is not None else self._prompt_new_password()

        carrier = AudioCarrier.load(args.carrier)
        sign = False if args.no_sign else None
        result = self.pipeline().compose(carrier, message, password, sign=sign)
        result.carrier.save(args.output)

        mode = "encrypted" if result.encrypted else "unencrypted"
        if result.signed:
            mode += ", signed"
        print(f"Embedded {result.payload_size} bytes ({mode}) -> {args.output}")
        return EXIT_OK

    def handle_extract(self, args):
        """Handle extract command."""
        carrier = AudioCarrier.load(args.carrier)
        password_provider = (lambda: args.password) if args.password is not None else self._prompt_password
        decoded = self.pipeline().extract(carrier, password_provider, contact_id=args.contact)

        if decoded.status is MessageStatus.NO_MESSAGE:
            print("No hidden message found.", file=sys.stderr)
            return EXIT_NO_MESSAGE
        if decoded.status is MessageStatus.WRONG_PASSWORD:
            print("Wrong password or corrupted data.", file=sys.stderr)
            return EXIT_NO_MESSAGE

        label = _STATUS_LABELS[decoded.status]
        if decoded.contact is not None:
            label += f" ({decoded.contact.display_name})"
        print(label, file=sys.stderr)

        if args.output:
            Path(args.output).write_bytes(decoded.payload)
            print(f"Written to {args.output}", file=sys.stderr)
        elif decoded.text is not None:
            print(decoded.text)
        else:
            print(f"Binary message of {len(decoded.payload)} bytes; use --output to save it", file=sys.stderr)
        return EXIT_OK

    def handle_key_generate(self, args):
        """Handle key generate command."""
        if self.key_store.load() is not None and not args.force:
            print("A key pair already exists; use --force to replace it", file=sys.stderr)
            return EXIT_ERROR
        level = SecurityLevel.coerce(args.level if args.level is not None else self.config.security_level)
        keypair = generate_keypair(level)
        self.key_store.save(keypair)
        print(f"Generated {level.algorithm} key pair")
        print(keypair.public_key_b64)
        return EXIT_OK

    def handle_key_show(self, args):
        """Handle key show command."""
        keypair = self.key_store.load()
        if keypair is None:
            print("No key pair stored; run 'cryptopiano key generate'", file=sys.stderr)
            return EXIT_ERROR
        print(f"Algorithm:     {keypair.level.algorithm}")
        print(f"Public key:    {len(keypair.public_key)} bytes")
        print(f"Private key:   {len(keypair.private_key)} bytes")
        return EXIT_OK

    def handle_key_export(self, args):
        """Handle key export command."""
        keypair = self.key_store.load()
        if keypair is None:
            print("No key pair stored; run 'cryptopiano key generate'", file=sys.stderr)
            return EXIT_ERROR
        if args.output:
            Path(args.output).write_text(keypair.public_key_b64 + "\n", encoding="utf-8")
            print(f"Public key written to {args.output}")
        else:
            print(keypair.public_key_b64)
        return EXIT_OK

    def handle_contact_add(self, args):
        """Handle contact add command."""
        contact = self.contact_store.add(args.name, args.public_key)
        print(f"Added {contact.display_name} ({contact.level.algorithm}) with ID {contact.id}")
        return EXIT_OK

    def handle_contact_list(self, args):
        """Handle contact list command."""
        contacts = self.contact_store.list()
        if not contacts:
            print("No contacts.")
            return EXIT_OK
        for contact in contacts:
            print(f"{contact.id}  {contact.level.algorithm:<10}  {contact.display_name}")
        return EXIT_OK

    def handle_contact_remove(self, args):
        """Handle contact remove command."""
        if not self.contact_store.remove(args.contact_id):
            print(f"No contact with ID {args.contact_id}", file=sys.stderr)
            return EXIT_ERROR
        print(f"Removed contact {args.contact_id}")
        return EXIT_OK

    # Prompts

    def _prompt_password(self) -> str:
        return getpass.getpass("Password: ")

    def _prompt_new_password(self) -> str:
        password = getpass.getpass("Password: ")
        if password != getpass.getpass("Confirm password: "):
            raise ValueError("Passwords do not match")
        return password


def main():
    """Main entry point."""
    cli = CryptoPianoCLI()
    sys.exit(cli.run(sys.argv[1:]))


if __name__ == "__main__":
    main()
