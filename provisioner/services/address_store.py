"""
Deployed address file for downstream tooling
"""

import logging
import os
import tempfile
from pathlib import Path
from typing import Union

from ..errors import PersistenceError

logger = logging.getLogger('erc20_provisioner')


def persist_address(address: str, path: Union[str, Path]) -> Path:
    """Write ``address`` to ``path``, replacing any previous content.

    The value goes to a temp file in the same directory first and is then
    renamed over the target, so readers never see a partial write.
    """
    target = Path(path)
    tmp_name = None
    try:
        target.parent.mkdir(parents=True, exist_ok=True)
        fd, tmp_name = tempfile.mkstemp(dir=str(target.parent), prefix=f".{target.name}.", suffix=".tmp")
        with os.fdopen(fd, 'w', encoding='utf-8') as f:
            f.write(address + "\n")
            f.flush()
            os.fsync(f.fileno())
        os.replace(tmp_name, target)
        tmp_name = None
    except OSError as e:
        raise PersistenceError(f"Cannot write contract address to {target}: {e}", cause=e) from e
    finally:
        if tmp_name is not None and os.path.exists(tmp_name):
            os.unlink(tmp_name)

    logger.info(f"Contract address saved to {target}")
    return target


def read_address(path: Union[str, Path]) -> str:
    try:
        return Path(path).read_text(encoding='utf-8').strip()
    except OSError as e:
        raise PersistenceError(f"Cannot read contract address from {path}: {e}", cause=e) from e
