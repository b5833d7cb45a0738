"""SSH key-pair generation for new machines."""

from __future__ import annotations

import shutil
import subprocess
from pathlib import Path

from loguru import logger

from .errors import SSHKeyError

log = logger


def public_key_path(key_path: Path) -> Path:
    return key_path.with_name(key_path.name + '.pub')


def _keygen(key_path: Path) -> None:
    exe = shutil.which('ssh-keygen')
    if exe is None:
        raise SSHKeyError(str(key_path), 'ssh-keygen is not installed')
    key_path.parent.mkdir(parents=True, exist_ok=True)
    cmd = [exe, '-q', '-t', 'rsa', '-b', '2048', '-N', '', '-f', str(key_path)]
    log.debug('Running ssh-keygen for {}', key_path)
    # "y" answers the overwrite prompt left by a private key without its .pub
    proc = subprocess.run(cmd, input='y\n', capture_output=True, text=True)
    if proc.returncode != 0:
        raise SSHKeyError(
            str(key_path), proc.stderr.strip() or f'exit code {proc.returncode}'
        )


def generate_ssh_key(key_path: Path) -> str:
    """Create an RSA key pair at ``key_path`` unless one exists.

    Returns the public key text to place on the machine's boot volume.
    """
    pub = public_key_path(key_path)
    if key_path.exists() and pub.exists():
        log.debug('Reusing SSH key {}', key_path)
    else:
        _keygen(key_path)
        log.info('Generated SSH key {}', key_path)
    return pub.read_text(encoding='utf-8').strip()
