"""
Lockbox CLI — entry point for all box operations.

Usage:
    lockbox init                      # Generate a keypair
    lockbox encrypt app/db.env ...    # Encrypt and track secrets
    lockbox decrypt --all             # Decrypt every tracked secret
    lockbox reencrypt --all           # Rewrap for the current public keys
    lockbox untrack app/db.env        # Stop tracking a secret
    lockbox validate                  # Check every tracked secret decrypts
    lockbox cat app/db.env            # Print a decrypted secret
    lockbox version                   # Show version
"""

from __future__ import annotations

import argparse
import asyncio
import logging
import sys

from lockbox.config import Config, get_config
from lockbox.errors import BoxValidationError, LockboxError, SecretError


def main(argv: list[str] | None = None) -> int:
    parser = argparse.ArgumentParser(
        prog="lockbox",
        description="Lockbox — encrypted secret files tracked alongside your code.",
    )
    parser.add_argument("--version", action="store_true", help="Show version and exit")
    parser.add_argument("--verbose", "-v", action="store_true", help="Log progress to stderr")

    subparsers = parser.add_subparsers(dest="command")

    # init
    init_parser = subparsers.add_parser("init", help="Generate a keypair")
    init_parser.add_argument("--name", default="default", help="Public key file name")

    # encrypt
    enc_parser = subparsers.add_parser("encrypt", help="Encrypt and track secrets")
    enc_parser.add_argument("secrets", nargs="*", help="Secret paths")
    enc_parser.add_argument("--all", action="store_true", help="Every tracked secret")

    # decrypt
    dec_parser = subparsers.add_parser("decrypt", help="Decrypt tracked secrets")
    dec_parser.add_argument("secrets", nargs="*", help="Secret paths")
    dec_parser.add_argument("--all", action="store_true", help="Every tracked secret")
    dec_parser.add_argument(
        "--force", "-f", action="store_true", help="Overwrite existing decrypted files"
    )

    # reencrypt
    reenc_parser = subparsers.add_parser("reencrypt", help="Rewrap secrets for current keys")
    reenc_parser.add_argument("secrets", nargs="*", help="Secret paths")
    reenc_parser.add_argument("--all", action="store_true", help="Every tracked secret")

    # untrack
    untrack_parser = subparsers.add_parser("untrack", help="Stop tracking secrets")
    untrack_parser.add_argument("secrets", nargs="+", help="Secret paths")
    untrack_parser.add_argument(
        "--delete", action="store_true", help="Also delete the encrypted files"
    )

    # validate
    val_parser = subparsers.add_parser("validate", help="Validate tracked secrets")
    val_parser.add_argument("secrets", nargs="*", help="Secret paths (default: all tracked)")
    val_parser.add_argument(
        "--no-decrypt", action="store_true", help="Only check encrypted files exist"
    )

    # cat
    cat_parser = subparsers.add_parser("cat", help="Print a decrypted secret")
    cat_parser.add_argument("secret", help="Secret path")

    # version
    subparsers.add_parser("version", help="Show version")

    args = parser.parse_args(argv)

    logging.basicConfig(
        level=logging.INFO if args.verbose else logging.WARNING,
        format="%(levelname)s: %(message)s",
    )

    if args.version or args.command == "version":
        from lockbox import __version__

        print(f"lockbox {__version__}")
        return 0

    handlers = {
        "init": _cmd_init,
        "encrypt": _cmd_encrypt,
        "decrypt": _cmd_decrypt,
        "reencrypt": _cmd_reencrypt,
        "untrack": _cmd_untrack,
        "validate": _cmd_validate,
        "cat": _cmd_cat,
    }
    handler = handlers.get(args.command)
    if handler is None:
        parser.print_help()
        return 0

    try:
        cfg = get_config()
        return handler(args, cfg)
    except BoxValidationError as eg:
        print(f"Error: {eg.message}", file=sys.stderr)
        _print_failures(eg)
        return 1
    except LockboxError as e:
        print(f"Error: {e}", file=sys.stderr)
        if isinstance(e.__cause__, BoxValidationError):
            _print_failures(e.__cause__)
        return 1
    except ValueError as e:
        # Configuration errors
        print(f"Error: {e}", file=sys.stderr)
        return 1


def _print_failures(eg: BoxValidationError) -> None:
    for err in eg.exceptions:
        if isinstance(err, SecretError):
            cause = err.__cause__ if err.__cause__ is not None else err
            print(f"  ✗ {err.secret_id} ({err.stage}): {cause}", file=sys.stderr)


# Wiring


def _repos(cfg: Config):
    from lockbox.storage import FileKeyRepository, FileSecretRepository, FileTrackRepository

    return (
        FileKeyRepository(cfg.keys.public_keys, cfg.keys.private_keys),
        FileSecretRepository(cfg.root, cfg.encrypted_ext),
        FileTrackRepository(cfg.registry),
    )


def _requested(args: argparse.Namespace, track_repo, default_all: bool = False) -> list[str]:
    """Secret IDs from the command line, or every tracked one."""
    ids = list(args.secrets)
    if getattr(args, "all", False) or (default_all and not ids):
        ids.extend(track_repo.get_secret_registry().ids())
    return ids


def _cmd_init(args: argparse.Namespace, cfg: Config) -> int:
    from lockbox.storage.keys import init_keypair

    private_path, public_path = init_keypair(
        cfg.keys.public_keys, cfg.keys.private_keys, name=args.name
    )
    print(f"Private key: {private_path}")
    print(f"Public key:  {public_path}")
    return 0


def _cmd_encrypt(args: argparse.Namespace, cfg: Config) -> int:
    from lockbox.box import EncryptBoxRequest, EncryptionService
    from lockbox.crypto import X25519Encrypter
    from lockbox.process import default_chain

    key_repo, secret_repo, track_repo = _repos(cfg)
    svc = EncryptionService(
        key_repo=key_repo,
        secret_repo=secret_repo,
        track_repo=track_repo,
        encrypter=X25519Encrypter(),
        id_processor=default_chain(cfg),
        concurrency=cfg.concurrency,
    )
    asyncio.run(svc.encrypt_box(EncryptBoxRequest(secret_ids=_requested(args, track_repo))))
    return 0


def _cmd_decrypt(args: argparse.Namespace, cfg: Config) -> int:
    from lockbox.box import DecryptBoxRequest, DecryptionService
    from lockbox.crypto import X25519Encrypter
    from lockbox.process import default_chain

    key_repo, secret_repo, track_repo = _repos(cfg)
    registry = track_repo.get_secret_registry()
    svc = DecryptionService(
        key_repo=key_repo,
        secret_repo=secret_repo,
        encrypter=X25519Encrypter(),
        id_processor=default_chain(cfg, registry, tracked=True),
        concurrency=cfg.concurrency,
    )
    req = DecryptBoxRequest(secret_ids=_requested(args, track_repo), force=args.force)
    asyncio.run(svc.decrypt_box(req))
    return 0


def _cmd_reencrypt(args: argparse.Namespace, cfg: Config) -> int:
    from lockbox.box import ReencryptBoxRequest, ReencryptionService
    from lockbox.crypto import X25519Encrypter
    from lockbox.process import default_chain

    key_repo, secret_repo, track_repo = _repos(cfg)
    registry = track_repo.get_secret_registry()
    svc = ReencryptionService(
        key_repo=key_repo,
        secret_repo=secret_repo,
        encrypter=X25519Encrypter(),
        id_processor=default_chain(cfg, registry, tracked=True),
        concurrency=cfg.concurrency,
    )
    ids = _requested(args, track_repo, default_all=True)
    asyncio.run(svc.reencrypt_box(ReencryptBoxRequest(secret_ids=ids)))
    return 0


def _cmd_untrack(args: argparse.Namespace, cfg: Config) -> int:
    from lockbox.box import UntrackBoxRequest, UntrackService
    from lockbox.process import default_chain

    _, secret_repo, track_repo = _repos(cfg)
    svc = UntrackService(
        secret_repo=secret_repo,
        track_repo=track_repo,
        id_processor=default_chain(cfg),
    )
    req = UntrackBoxRequest(secret_ids=list(args.secrets), delete_files=args.delete)
    asyncio.run(svc.untrack_box(req))
    return 0


def _cmd_validate(args: argparse.Namespace, cfg: Config) -> int:
    from lockbox.box import ValidateBoxRequest, ValidationService
    from lockbox.crypto import X25519Encrypter
    from lockbox.process import default_chain

    key_repo, secret_repo, track_repo = _repos(cfg)
    registry = track_repo.get_secret_registry()
    svc = ValidationService(
        key_repo=key_repo,
        secret_repo=secret_repo,
        encrypter=X25519Encrypter(),
        id_processor=default_chain(cfg, registry, tracked=True),
        concurrency=cfg.concurrency,
    )
    ids = list(args.secrets) or registry.ids()
    validated = asyncio.run(
        svc.validate_box(ValidateBoxRequest(secret_ids=ids, decrypt=not args.no_decrypt))
    )
    print(f"✓ {len(validated)} secrets valid")
    return 0


def _cmd_cat(args: argparse.Namespace, cfg: Config) -> int:
    from lockbox.box import DecryptionService
    from lockbox.crypto import X25519Encrypter
    from lockbox.process import default_chain

    key_repo, secret_repo, track_repo = _repos(cfg)
    svc = DecryptionService(
        key_repo=key_repo,
        secret_repo=secret_repo,
        encrypter=X25519Encrypter(),
        id_processor=default_chain(cfg, track_repo.get_secret_registry(), tracked=True),
    )
    data = asyncio.run(svc.cat_secret(args.secret))
    sys.stdout.buffer.write(data)
    sys.stdout.flush()
    return 0


if __name__ == "__main__":
    sys.exit(main())
