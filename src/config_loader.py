"""
Configuration loader for the Elixir backend discovery service
Loads YAML configuration, applies defaults and environment overrides
"""

import os
import re
import yaml
import logging
from typing import Dict, Any, Callable, Optional
from pathlib import Path
from datetime import datetime
import pytz

logger = logging.getLogger(__name__)

DEFAULTS: Dict[str, Dict[str, Any]] = {
    'backend': {
        'default_port': 8000,
        'api_base_url': 'http://localhost:8000',
        'override_api_url': None,
        'override_ws_url': None
    },
    'discovery': {
        'enabled': True,
        'request_timeout': 2.0,
        'batch_size': 20,
        'network_prefixes': ['192.168.1', '192.168.0', '10.0.0', '172.16.0'],
        'host_range': [1, 254],
        'quick_scan': False,
        'quick_scan_hosts': [1, 2, 10, 100, 254],
        'scan_observed_network': False,
        'fallback_urls': ['http://192.168.1.100:8000', 'http://raspberrypi.local:8000'],
        'cache_ttl_seconds': 300,
        'local_address': None,
        'local_address_timeout': 3.0,
        'rendezvous_host': 'stun.l.google.com',
        'rendezvous_port': 19302
    },
    'verification': {
        'health_path': '/health',
        'identity_field': 'service',
        'expected_service': 'elixir',
        'version_field': 'version',
        'expected_version': None,
        'required_fields': ['status'],
        'additional_paths': []
    },
    'http': {
        'timeout': 5.0,
        'retry_attempts': 3,
        'retry_delay': 1.0
    },
    'monitoring': {
        'connection_check_interval_seconds': 10,
        'failures_before_rediscovery': 3
    },
    'api': {
        'host': '0.0.0.0',
        'port': 8100
    },
    'logging': {
        'level': 'INFO',
        'file': 'logs/discovery_service.log',
        'console_output': True,
        'timezone': 'UTC'
    }
}


def _parse_list(value: str) -> list:
    return [item.strip() for item in value.split(',') if item.strip()]


def _parse_bool(value: str) -> bool:
    return value.strip().lower() in ('true', '1', 'yes', 'on')


def _parse_range(value: str) -> list:
    start, _, end = value.partition('-')
    return [int(start), int(end or start)]


# env var -> (section, key, parser)
ENV_OVERRIDES: Dict[str, tuple] = {
    'ELIXIR_API_BASE_URL': ('backend', 'override_api_url', str),
    'ELIXIR_WS_BASE_URL': ('backend', 'override_ws_url', str),
    'ELIXIR_BACKEND_PORT': ('backend', 'default_port', int),
    'ELIXIR_API_TIMEOUT': ('discovery', 'request_timeout', float),
    'ELIXIR_DISCOVERY_BATCH_SIZE': ('discovery', 'batch_size', int),
    'ELIXIR_NETWORK_PREFIXES': ('discovery', 'network_prefixes', _parse_list),
    'ELIXIR_HOST_RANGE': ('discovery', 'host_range', _parse_range),
    'ELIXIR_QUICK_SCAN': ('discovery', 'quick_scan', _parse_bool),
    'ELIXIR_SCAN_OBSERVED_NETWORK': ('discovery', 'scan_observed_network', _parse_bool),
    'ELIXIR_FALLBACK_URLS': ('discovery', 'fallback_urls', _parse_list),
    'ELIXIR_EXPECTED_SERVICE': ('verification', 'expected_service', str),
    'ELIXIR_EXPECTED_VERSION': ('verification', 'expected_version', str),
    'ELIXIR_REQUIRED_FIELDS': ('verification', 'required_fields', _parse_list),
    'ELIXIR_VERIFICATION_PATHS': ('verification', 'additional_paths', _parse_list),
    'ELIXIR_HTTP_RETRY_ATTEMPTS': ('http', 'retry_attempts', int),
    'ELIXIR_HTTP_RETRY_DELAY': ('http', 'retry_delay', float),
    'ELIXIR_LOG_LEVEL': ('logging', 'level', str),
}


def load_config(config_path: str = "config/config.yaml",
                environ: Optional[Dict[str, str]] = None) -> Dict[str, Any]:
    """
    Load configuration from YAML file, then defaults, then environment overrides
    A missing file is not an error - the service runs from defaults and environment
    """
    if environ is None:
        environ = dict(os.environ)

    try:
        config_file = Path(config_path)
        if config_file.exists():
            with open(config_file, 'r') as f:
                config = yaml.safe_load(f) or {}
            logger.info(f"Configuration loaded from {config_path}")
        else:
            logger.warning(f"Configuration file not found: {config_path} - using defaults and environment")
            config = {}

        if not isinstance(config, dict):
            raise ValueError("Configuration root must be a mapping")

        config = _apply_defaults(config)
        config = _apply_env_overrides(config, environ)
        _validate_config(config)
        return config

    except Exception as e:
        logger.error(f"Failed to load configuration: {e}")
        raise


def _apply_defaults(config: Dict) -> Dict:
    """Apply default values to configuration"""
    for section, defaults in DEFAULTS.items():
        if config.get(section) is None:
            config[section] = {}
        if not isinstance(config[section], dict):
            raise ValueError(f"Configuration section '{section}' must be a mapping")
        for key, default_value in defaults.items():
            if key not in config[section]:
                config[section][key] = list(default_value) if isinstance(default_value, list) else default_value
    return config


def _apply_env_overrides(config: Dict, environ: Dict[str, str]) -> Dict:
    """Environment variables win over file values"""
    for var, (section, key, parser) in ENV_OVERRIDES.items():
        raw = environ.get(var)
        if raw is None or raw == '':
            continue
        try:
            config[section][key] = parser(raw)
        except ValueError as e:
            raise ValueError(f"Invalid value for {var}: {raw!r} ({e})")
        logger.debug(f"{section}.{key} overridden from {var}")
    return config


def _validate_config(config: Dict) -> None:
    """Validate value ranges; normalizes paths in place"""
    backend = config['backend']
    port = backend['default_port']
    if not isinstance(port, int) or not 1 <= port <= 65535:
        raise ValueError(f"backend.default_port must be 1-65535, got {port}")

    discovery = config['discovery']
    if not isinstance(discovery['batch_size'], int) or discovery['batch_size'] < 1:
        raise ValueError("discovery.batch_size must be a positive integer")
    if discovery['request_timeout'] <= 0:
        raise ValueError("discovery.request_timeout must be greater than zero")

    host_range = discovery['host_range']
    if (not isinstance(host_range, (list, tuple)) or len(host_range) != 2
            or not 1 <= int(host_range[0]) <= int(host_range[1]) <= 254):
        raise ValueError(f"discovery.host_range must be [start, end] within 1-254, got {host_range}")
    discovery['host_range'] = [int(host_range[0]), int(host_range[1])]

    if not isinstance(discovery['network_prefixes'], list):
        raise ValueError("discovery.network_prefixes must be a list")

    verification = config['verification']
    pattern = verification.get('expected_version')
    if pattern:
        try:
            re.compile(pattern)
        except re.error as e:
            raise ValueError(f"verification.expected_version is not a valid pattern: {e}")

    verification['health_path'] = _normalize_path(verification['health_path'])
    verification['additional_paths'] = [_normalize_path(p) for p in verification['additional_paths']]

    override = backend.get('override_api_url')
    if override and not override.startswith(('http://', 'https://')):
        logger.warning(f"backend.override_api_url has no http(s) scheme: {override}")


def _normalize_path(path: str) -> str:
    return path if path.startswith('/') else f"/{path}"


def get_discovery_settings(config: Dict) -> Dict[str, Any]:
    """Flat view of the discovery-related settings, for logging at startup"""
    discovery = config['discovery']
    return {
        'port': config['backend']['default_port'],
        'override': config['backend'].get('override_api_url'),
        'batch_size': discovery['batch_size'],
        'quick_scan': discovery['quick_scan'],
        'prefixes': discovery['network_prefixes'],
        'host_range': discovery['host_range'],
        'timeout': discovery['request_timeout'],
        'expected_service': config['verification']['expected_service']
    }


class SiteTimeFormatter(logging.Formatter):
    """Formatter that renders timestamps in the site's timezone"""

    def __init__(self, fmt=None, tz_name: str = 'UTC'):
        super().__init__(fmt)
        self.site_tz = pytz.timezone(tz_name)

    def formatTime(self, record, datefmt=None):
        dt = datetime.fromtimestamp(record.created, tz=self.site_tz)
        if datefmt:
            return dt.strftime(datefmt)
        return dt.strftime('%Y-%m-%d %H:%M:%S %Z')


def setup_logging(config: Dict) -> None:
    """Setup logging based on configuration with site-local timestamps"""
    log_config = config.get('logging', {})
    level = log_config.get('level', 'INFO')

    log_format = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
    formatter = SiteTimeFormatter(log_format, log_config.get('timezone', 'UTC'))

    logging.basicConfig(
        level=getattr(logging, level.upper()),
        format=log_format,
        handlers=[]
    )
    root = logging.getLogger()
    root.setLevel(getattr(logging, level.upper()))

    if log_config.get('console_output', True):
        console_handler = logging.StreamHandler()
        console_handler.setFormatter(formatter)
        root.addHandler(console_handler)

    log_file = log_config.get('file')
    if log_file:
        log_path = Path(log_file)
        log_path.parent.mkdir(parents=True, exist_ok=True)

        file_handler = logging.FileHandler(log_file)
        file_handler.setFormatter(formatter)
        root.addHandler(file_handler)

    logger.info(f"Logging configured: level={level}, console={log_config.get('console_output', True)}, file={log_file}")
