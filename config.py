import os
import yaml
import keyring

APP_VERSION = "1.0.0"
KEYRING_SERVICE = "ironquest"


class YamlConfig:
    """Mirror of the settings table in ``settings.yaml``.

    With ``ENCRYPT_SETTINGS=1`` the sync token and backup passphrase live in
    the OS keyring and the file only records that they are set.
    """

    SENSITIVE_KEYS = {
        "sync_token",
        "backup_passphrase",
    }

    def __init__(self, path: str = "settings.yaml", encrypt: bool | None = None) -> None:
        self.path = path
        if encrypt is None:
            encrypt = os.environ.get("ENCRYPT_SETTINGS") == "1"
        self.encrypt = encrypt
        self.service = KEYRING_SERVICE

    def load(self) -> dict:
        if not os.path.exists(self.path):
            return {}
        with open(self.path, "r", encoding="utf-8") as f:
            data = yaml.safe_load(f) or {}
        if not isinstance(data, dict):
            raise ValueError(f"{self.path} must contain a mapping of settings")
        if self.encrypt:
            self._restore_secrets(data)
        return data

    def _restore_secrets(self, data: dict) -> None:
        for key in self.SENSITIVE_KEYS & set(data):
            secret = keyring.get_password(self.service, key)
            if secret is not None:
                data[key] = secret
            else:
                # file says the key is set but the keyring lost it
                data.pop(key)

    def _stash_secrets(self, out: dict) -> None:
        for key in self.SENSITIVE_KEYS & set(out):
            if out[key] in (None, ""):
                if keyring.get_password(self.service, key) is not None:
                    keyring.delete_password(self.service, key)
                out.pop(key)
                continue
            keyring.set_password(self.service, key, str(out[key]))
            out[key] = True

    def save(self, data: dict) -> None:
        out = dict(data)
        if self.encrypt:
            self._stash_secrets(out)
        tmp_path = f"{self.path}.tmp"
        with open(tmp_path, "w", encoding="utf-8") as f:
            yaml.safe_dump(out, f, sort_keys=True)
        os.replace(tmp_path, self.path)
