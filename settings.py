"""
Engine settings: defaults, overridden by a YAML file, overridden by environment variables.
"""
import os
from typing import Any, Dict, Optional
import yaml

CONFIG_FILENAME = 'teampulse.yaml'

DEFAULT_SETTINGS: Dict[str, Any] = {
    'github_token': None,
    'api_url': 'https://api.github.com',
    'request_timeout': 10.0,
    'max_retries': 3,
    'backoff_base': 1.0,
    'commit_limit': 100,
    'pr_limit': 100,
    'issue_limit': 100,
    'commit_stats': False,
    'max_workers': 8,
    'team_timeout': 60.0,
    'directory_ttl': 3600.0,
    'directory_sweep': 120.0,
    'log_level': 'INFO',
}


def _as_bool(value: Any) -> bool:
    if isinstance(value, bool):
        return value
    text = str(value).strip().lower()
    if text in ('1', 'true', 'yes', 'on'):
        return True
    if text in ('0', 'false', 'no', 'off'):
        return False
    raise ValueError(f"not a boolean: {value!r}")


# setting name -> (environment variable, converter)
ENV_OVERRIDES = {
    'github_token': ('GITHUB_TOKEN', str),
    'api_url': ('TEAMPULSE_API_URL', str),
    'request_timeout': ('TEAMPULSE_REQUEST_TIMEOUT', float),
    'max_retries': ('TEAMPULSE_MAX_RETRIES', int),
    'backoff_base': ('TEAMPULSE_BACKOFF_BASE', float),
    'commit_limit': ('TEAMPULSE_COMMIT_LIMIT', int),
    'pr_limit': ('TEAMPULSE_PR_LIMIT', int),
    'issue_limit': ('TEAMPULSE_ISSUE_LIMIT', int),
    'commit_stats': ('TEAMPULSE_COMMIT_STATS', _as_bool),
    'max_workers': ('TEAMPULSE_MAX_WORKERS', int),
    'team_timeout': ('TEAMPULSE_TEAM_TIMEOUT', float),
    'directory_ttl': ('TEAMPULSE_DIRECTORY_TTL', float),
    'directory_sweep': ('TEAMPULSE_DIRECTORY_SWEEP', float),
    'log_level': ('TEAMPULSE_LOG_LEVEL', str),
}


def default_config_path() -> str:
    return os.getenv('TEAMPULSE_CONFIG') or os.path.join(os.path.dirname(__file__), 'config', CONFIG_FILENAME)


def _coerce(name: str, value: Any) -> Any:
    if value is None:
        return None
    _, convert = ENV_OVERRIDES.get(name, (None, None))
    return convert(value) if convert else value


def load_settings(path: Optional[str] = None, environ: Optional[Dict[str, str]] = None) -> Dict[str, Any]:
    """
    Load settings. Unknown keys in the YAML file are ignored; a missing file is not an error.
    Raises ValueError when the file or an environment variable holds a value of the wrong type.
    """
    settings = dict(DEFAULT_SETTINGS)
    path = path or default_config_path()
    if os.path.exists(path):
        with open(path, 'r', encoding='utf-8') as f:
            try:
                data = yaml.safe_load(f) or {}
            except yaml.YAMLError as e:
                raise ValueError(f"{path}: {e}") from e
        if not isinstance(data, dict):
            raise ValueError(f"{path}: expected a mapping at top level")
        for key in DEFAULT_SETTINGS:
            if key in data:
                settings[key] = _coerce(key, data[key])
    env = os.environ if environ is None else environ
    for key, (var, convert) in ENV_OVERRIDES.items():
        raw = env.get(var)
        if raw not in (None, ''):
            settings[key] = convert(raw)
    return settings
