import os
import yaml
import keyring

from settings_schema import AppConfigSchema, validate_app_config

APP_VERSION = "1.0.0"

DEFAULT_CONFIG = {
    "backend_url": None,
    "api_key": None,
    "user_id": "temp-user-123",
    "database_path": "fittrack.db",
    "storage_path": "fittrack_storage.db",
    "rest_timer_seconds": 90,
    "request_timeout": 10.0,
    "log_level": "INFO",
}

ENV_OVERRIDES = {
    "FITTRACK_BACKEND_URL": "backend_url",
    "FITTRACK_API_KEY": "api_key",
    "FITTRACK_USER_ID": "user_id",
}


class YamlConfig:
    """Application config kept in a YAML file.

    With ``ENCRYPT_SETTINGS=1`` the backend API key is kept in the OS keyring
    and the file only records that a key exists.
    """

    SENSITIVE_KEYS = {"api_key"}

    def __init__(self, path: str = "settings.yaml", service: str = "fittrack") -> None:
        self.path = path
        self.service = service
        self.encrypt = os.environ.get("ENCRYPT_SETTINGS") == "1"

    def _reveal(self, data: dict) -> dict:
        for key in self.SENSITIVE_KEYS & set(data):
            secret = keyring.get_password(self.service, key)
            if secret is None:
                del data[key]
            else:
                data[key] = secret
        return data

    def _conceal(self, data: dict) -> dict:
        for key in self.SENSITIVE_KEYS & set(data):
            keyring.set_password(self.service, key, str(data[key]))
            data[key] = True
        return data

    def load(self) -> dict:
        if not os.path.exists(self.path):
            return {}
        with open(self.path, "r", encoding="utf-8") as f:
            data = yaml.safe_load(f) or {}
        return self._reveal(data) if self.encrypt else data

    def save(self, data: dict) -> None:
        out = {k: v for k, v in data.items() if v is not None}
        if self.encrypt:
            out = self._conceal(out)
        with open(self.path, "w", encoding="utf-8") as f:
            yaml.safe_dump(out, f, sort_keys=True)


def load_app_config(path: str = "settings.yaml") -> AppConfigSchema:
    """Return validated config from defaults, ``path`` and the environment."""
    data = dict(DEFAULT_CONFIG)
    data.update(YamlConfig(path).load())
    for env_key, key in ENV_OVERRIDES.items():
        value = os.environ.get(env_key)
        if value:
            data[key] = value
    return validate_app_config(data)
