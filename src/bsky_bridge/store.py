"""JSON-file login store.

Each login is one ``<ghost id>.json`` file under ``<data path>/logins``.
Writes go to a temporary file first and are then renamed over the old one.
"""

import json
import logging
import os
from pathlib import Path

from .bridge import LoginStore, UserLogin
from .config import get_data_path
from .errors import InvalidDIDError, StoreError
from .ids import make_user_id_from_string

logger = logging.getLogger(__name__)


class JSONLoginStore(LoginStore):
    """Stores logins as JSON files on local disk."""

    def __init__(self, base_path: Path | None = None):
        self.base_path = base_path if base_path is not None else get_data_path()

    @property
    def login_dir(self) -> Path:
        return self.base_path / "logins"

    def save(self, login: UserLogin) -> None:
        path = self._path_for(login.id)
        tmp_path = path.with_suffix(".json.tmp")
        try:
            path.parent.mkdir(parents=True, exist_ok=True)
            tmp_path.write_text(json.dumps(login.to_record(), indent=2), encoding="utf-8")
            os.replace(tmp_path, path)
        except OSError as e:
            raise StoreError(f"failed to save login {login.id}: {e}") from e

    def load_all(self) -> list[dict]:
        if not self.login_dir.is_dir():
            return []

        records = []
        for login_file in sorted(self.login_dir.glob("*.json")):
            try:
                data = json.loads(login_file.read_text(encoding="utf-8"))
            except (json.JSONDecodeError, OSError) as e:
                logger.warning("Failed to read login file %s: %s", login_file, e)
                continue
            if not isinstance(data, dict) or not data.get("id"):
                logger.warning("Ignoring malformed login file %s", login_file)
                continue
            records.append(data)
        return records

    def delete(self, login_id: str) -> None:
        path = self._path_for(login_id)
        try:
            path.unlink(missing_ok=True)
        except OSError as e:
            raise StoreError(f"failed to delete login {login_id}: {e}") from e

    def _path_for(self, login_id: str) -> Path:
        try:
            name = make_user_id_from_string(login_id)
        except InvalidDIDError as e:
            raise StoreError(f"can't store login with invalid ID {login_id!r}") from e
        return self.login_dir / f"{name}.json"
