"""Optional OS keyring storage for DiskKey material.

Lets a deployment keep the material that unlocks ``<folder>/<prefix>.*``
files in the platform keyring instead of an environment variable. The
account name is the absolute key folder, so each SecretStore folder gets
its own entry. Do not assume the keyring is hardware backed.
"""
import logging
import os
from typing import Optional

import keyring
from keyring.errors import KeyringError

logger = logging.getLogger(__name__)

SERVICE_NAME = "seifcore"


def account_for_folder(folder) -> str:
    return os.path.abspath(os.fspath(folder))


def assess_keyring_backend() -> tuple[bool, str]:
    """Return (is_secure, message) describing the active keyring backend."""
    try:
        backend = keyring.get_keyring()
    except Exception as e:
        return False, f"failed to get keyring backend: {e}"

    name = backend.__class__.__name__
    priority = getattr(backend, "priority", None)

    if any(tok in name for tok in ("Plaintext", "Uncrypted", "Null", "Fail")):
        return False, f"insecure backend detected: {name}"

    if priority is not None and priority <= 0:
        return False, f"no usable keyring backend (priority={priority}, backend={name})"

    return True, f"using backend {name} (priority={priority})"


def save_disk_key(folder, material: bytes, force: bool = False) -> None:
    """
    Store ``material`` hex-encoded under the folder's account.

    Refuses insecure backends unless ``force`` is set.
    """
    secure, msg = assess_keyring_backend()
    if not secure and not force:
        raise RuntimeError(f"refusing to store disk key material: {msg}")
    account = account_for_folder(folder)
    keyring.set_password(SERVICE_NAME, account, material.hex())
    logger.info("stored disk key material for %s in keyring", account)


def load_disk_key(folder) -> Optional[bytes]:
    """Return the stored material for ``folder``, or None if absent or unreadable."""
    account = account_for_folder(folder)
    secret = keyring.get_password(SERVICE_NAME, account)
    if secret is None:
        return None
    try:
        return bytes.fromhex(secret)
    except ValueError:
        logger.warning("keyring entry for %s is not valid hex", account)
        return None


def delete_disk_key(folder) -> bool:
    """Remove the folder's entry; returns False when there was nothing to delete."""
    try:
        keyring.delete_password(SERVICE_NAME, account_for_folder(folder))
    except KeyringError:
        return False
    return True
