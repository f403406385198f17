"""
Command line front end for seifcore.

Commands:
    generate      create a keypair in the key folder (seeds the generator if needed);
                  refuses to replace existing files without --force
    load          load the keypair from the key folder
    encrypt       encrypt a message to a hex public key
    decrypt       decrypt a hex ciphertext with a hex private key
    rng-status    probe the saved generator state
    rng-init      seed a fresh generator and save its state

DiskKey material comes from, in order: --key-hex, --password (Argon2id,
parameters kept in <prefix>.kdf.json), --keyring, or SEIF_DISK_KEY.

Usage:
    python -m seifcore.frontend.cli.app --folder ~/.seif --password hunter2 generate
"""

from __future__ import annotations

import argparse
import getpass
import json
import logging
import sys
from pathlib import Path
from typing import Optional, Sequence

from seifcore.core.config import Settings, load_settings
from seifcore.core.exceptions import SeifError
from seifcore.core.status import Status
from seifcore.core.worker import AsyncWorker
from seifcore.security import keystore
from seifcore.security.kdf import derive_from_params, load_or_create_params
from seifcore.security.lifecycle import GeneratorLifecycle
from seifcore.security.secret_store import SecretStore

from .logging_config import configure_logging

logger = logging.getLogger(__name__)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="seifcore", description="Local secret management")
    parser.add_argument("--folder", help="key folder (default: SEIF_KEY_FOLDER or ~/.seif)")
    parser.add_argument("--prefix", help="file name prefix (default: SEIF_FILE_PREFIX or .ecies)")
    source = parser.add_mutually_exclusive_group()
    source.add_argument("--key-hex", help="DiskKey material as hex")
    source.add_argument("--password", nargs="?", const="", help="derive DiskKey from a password (prompted if empty)")
    source.add_argument("--keyring", action="store_true", help="read DiskKey material from the OS keyring")
    parser.add_argument("-v", "--verbose", action="store_true", help="debug logging")

    sub = parser.add_subparsers(dest="command", required=True)
    gen = sub.add_parser("generate", help="generate and store a keypair")
    gen.add_argument("--show-private", action="store_true", help="print the private key too")
    gen.add_argument("--save-to-keyring", action="store_true", help="store the DiskKey material in the OS keyring")
    gen.add_argument("--force", action="store_true", help="replace existing keys or generator state")

    load = sub.add_parser("load", help="load the stored keypair")
    load.add_argument("--show-private", action="store_true", help="print the private key too")

    enc = sub.add_parser("encrypt", help="encrypt a message to a public key")
    enc.add_argument("--public-key", help="hex public key (default: the stored one)")
    enc.add_argument("message", help="message text, '-' reads stdin")

    dec = sub.add_parser("decrypt", help="decrypt a hex ciphertext")
    dec.add_argument("--private-key", help="hex private key (default: the stored one)")
    dec.add_argument("cipher", help="hex ciphertext, '-' reads stdin")

    sub.add_parser("rng-status", help="check whether saved generator state can be loaded")
    sub.add_parser("rng-init", help="seed a fresh generator and save its state")
    return parser


def resolve_key_material(args: argparse.Namespace, settings: Settings, folder: Path, prefix: str) -> bytes:
    if args.key_hex:
        return bytes.fromhex(args.key_hex)
    if args.password is not None:
        password = args.password or getpass.getpass("DiskKey password: ")
        params = load_or_create_params(folder / f"{prefix}.kdf.json")
        return derive_from_params(password, params)
    if args.keyring:
        material = keystore.load_disk_key(folder)
        if material is None:
            raise SeifError(f"no keyring entry for {folder}")
        return material
    if settings.disk_key_hex:
        return bytes.fromhex(settings.disk_key_hex)
    raise SeifError("no DiskKey material: use --key-hex, --password, --keyring or SEIF_DISK_KEY")


def _read_arg(value: str) -> str:
    if value == "-":
        return sys.stdin.read().strip()
    return value


def _emit(obj) -> None:
    print(json.dumps(obj, indent=2))


def _load_keys(store: SecretStore, worker: AsyncWorker):
    outcome = {}

    def on_loaded(result, keypair):
        outcome["result"] = result
        outcome["keypair"] = keypair

    store.load_key_pair(on_loaded)
    worker.wait()
    return outcome["result"], outcome["keypair"]


def run(args: argparse.Namespace, settings: Settings) -> int:
    folder = Path(args.folder).expanduser() if args.folder else settings.key_folder
    prefix = args.prefix or settings.file_prefix

    if args.command == "encrypt" and args.public_key:
        _emit({"cipher": SecretStore.encrypt_message(args.public_key, _read_arg(args.message).encode("utf-8"))})
        return 0
    if args.command == "decrypt" and args.private_key:
        sys.stdout.write(SecretStore.decrypt_message(args.private_key, _read_arg(args.cipher)).decode("utf-8", "replace"))
        sys.stdout.write("\n")
        return 0

    material = resolve_key_material(args, settings, folder, prefix)

    with AsyncWorker(max_workers=settings.worker_threads) as worker:
        lifecycle = GeneratorLifecycle(max_attempts=settings.max_entropy_attempts, worker=worker)
        store = SecretStore(material, folder, lifecycle, worker=worker, prefix=prefix)

        if args.command == "rng-status":
            lifecycle.is_initialized(material, store.state_path, lambda result, _: _emit(result.to_dict()))
            worker.wait()
            return 0 if lifecycle.is_ready else 1

        if args.command == "rng-init":
            strength = lifecycle.initialize(material, store.state_path)
            lifecycle.destroy()
            _emit({"code": 0, "message": "Success", "strength": strength.value})
            return 0

        if args.command == "generate":
            # Reuse saved generator state when it is there; otherwise the store seeds a fresh one.
            probed = lifecycle.is_initialized_sync(material, store.state_path)
            if not args.force:
                if store.has_keys():
                    raise SeifError(f"keys already exist in {folder}; pass --force to replace them")
                if probed.status is Status.DECRYPTION_ERROR:
                    raise SeifError(f"generator state in {folder} does not open with this key; pass --force to replace it")
            with lifecycle:
                keypair = store.generate_key_pair()
            if args.save_to_keyring:
                keystore.save_disk_key(folder, material)
            out = keypair.to_dict()
            if not args.show_private:
                out.pop("dec")
            _emit(out)
            return 0

        result, keypair = _load_keys(store, worker)
        if not result.ok:
            _emit(result.to_dict())
            return 1

        if args.command == "load":
            out = {"status": result.to_dict(), **keypair.to_dict()}
            if not args.show_private:
                out.pop("dec")
            _emit(out)
            return 0

        if args.command == "encrypt":
            _emit({"cipher": store.encrypt_message(keypair.public_key, _read_arg(args.message).encode("utf-8"))})
            return 0

        if args.command == "decrypt":
            message = store.decrypt_message(keypair.private_key, _read_arg(args.cipher))
            sys.stdout.write(message.decode("utf-8", "replace") + "\n")
            return 0

    raise AssertionError(f"unhandled command {args.command}")


def main(argv: Optional[Sequence[str]] = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)
    try:
        settings = load_settings()
    except ValueError as e:
        parser.error(str(e))

    configure_logging(logging.DEBUG if args.verbose else settings.log_level)
    try:
        return run(args, settings)
    except (SeifError, ValueError, RuntimeError) as e:
        logger.error("%s", e)
        return 1


if __name__ == "__main__":
    sys.exit(main())
