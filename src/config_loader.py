"""
Configuration loader for the Tuner Signal Monitor
Loads and validates configuration from YAML files
Environment overrides: HDHR_AUTO_DISCOVERY, HDHR_MANUAL_DEVICES
"""

import os
import re
import yaml
import logging
from typing import Dict, Any, List, Union
from pathlib import Path
from datetime import datetime
import pytz

logger = logging.getLogger(__name__)

def load_config(config_path: str = "config/config.yaml") -> Dict[str, Any]:
    """
    Load configuration from YAML file with validation
    """
    try:
        config_file = Path(config_path)
        if not config_file.exists():
            logger.error(
                f"Configuration file not found: {config_path}\n"
                f"Example configuration:\n{yaml.safe_dump(get_sample_config(), sort_keys=False)}"
            )
            raise FileNotFoundError(f"Config file not found: {config_path}")

        with open(config_file, 'r') as f:
            config = yaml.safe_load(f) or {}

        # Validate required sections
        _validate_config(config)

        # Apply defaults
        config = _apply_defaults(config)
        config = _apply_env_overrides(config)

        logger.info(f"Configuration loaded from {config_path}")
        return config

    except Exception as e:
        logger.error(f"Failed to load configuration: {e}")
        raise

def _validate_config(config: Dict) -> None:
    """Validate that required configuration sections exist"""
    required_sections = ['device', 'polling']

    for section in required_sections:
        if section not in config:
            raise ValueError(f"Missing required configuration section: {section}")
        if config[section] is None:
            config[section] = {}

    # Validate polling section
    polling = config['polling']
    if 'status_interval_seconds' not in polling:
        raise ValueError("polling.status_interval_seconds is required")
    if polling['status_interval_seconds'] <= 0:
        raise ValueError("polling.status_interval_seconds must be positive")

    # Status queries must finish well inside one polling tick
    poll_timeout = config['device'].get('poll_timeout_seconds')
    if poll_timeout is not None and poll_timeout >= polling['status_interval_seconds']:
        logger.warning(
            f"device.poll_timeout_seconds ({poll_timeout}) is not below the "
            f"{polling['status_interval_seconds']}s polling interval - ticks will run late"
        )

def parse_manual_devices(value: Union[str, List[str], None]) -> List[str]:
    """Accept a YAML list or a comma/whitespace delimited string of hosts"""
    if not value:
        return []
    if isinstance(value, str):
        hosts = re.split(r'[,\s]+', value)
    else:
        hosts = [str(host) for host in value]
    return [host.strip() for host in hosts if host and host.strip()]

def _parse_bool(value: str) -> bool:
    return value.strip().lower() in ('1', 'true', 'yes', 'on')

def _apply_defaults(config: Dict) -> Dict:
    """Apply default values to configuration"""

    # Device tool defaults
    device_defaults = {
        'binary': 'hdhomerun_config',
        'poll_timeout_seconds': 0.75,
        'command_timeout_seconds': 5,
        'scan_timeout_seconds': 90
    }
    for key, default_value in device_defaults.items():
        if key not in config['device']:
            config['device'][key] = default_value

    # Discovery defaults
    if 'discovery' not in config:
        config['discovery'] = {}
    discovery_defaults = {
        'auto_discovery': True,
        'manual_devices': [],
        'discovery_timeout_seconds': 15,
        'model_timeout_seconds': 5,
        'host_cache_ttl_seconds': 300,
        'cloud_url': 'https://api.hdhomerun.com/discover',
        'cloud_timeout_seconds': 10,
        'ssl_verify': True,
        'scan_interval_minutes': 30
    }
    for key, default_value in discovery_defaults.items():
        if key not in config['discovery']:
            config['discovery'][key] = default_value
    config['discovery']['manual_devices'] = parse_manual_devices(config['discovery']['manual_devices'])

    # Polling defaults
    polling_defaults = {
        'program_max_retries': 3
    }
    for key, default_value in polling_defaults.items():
        if key not in config['polling']:
            config['polling'][key] = default_value

    # API defaults
    if 'api' not in config:
        config['api'] = {}
    api_defaults = {
        'host': '0.0.0.0',
        'port': 3000,
        'cors_origins': ['*']
    }
    for key, default_value in api_defaults.items():
        if key not in config['api']:
            config['api'][key] = default_value

    # Logging defaults
    if 'logging' not in config:
        config['logging'] = {}
    logging_defaults = {
        'level': 'INFO',
        'file': 'logs/tuner_monitor.log',
        'console_output': True,
        'timezone': 'America/New_York'
    }
    for key, default_value in logging_defaults.items():
        if key not in config['logging']:
            config['logging'][key] = default_value

    return config

def _apply_env_overrides(config: Dict) -> Dict:
    """Let container deployments configure discovery without editing YAML"""
    auto = os.environ.get('HDHR_AUTO_DISCOVERY')
    if auto is not None:
        config['discovery']['auto_discovery'] = _parse_bool(auto)
        logger.info(f"Auto-discovery set from environment: {config['discovery']['auto_discovery']}")

    manual = os.environ.get('HDHR_MANUAL_DEVICES')
    if manual is not None:
        config['discovery']['manual_devices'] = parse_manual_devices(manual)
        logger.info(f"Manual devices set from environment: {config['discovery']['manual_devices']}")

    return config


class TimezoneFormatter(logging.Formatter):
    """Custom formatter to display timestamps in the configured local timezone"""

    def __init__(self, fmt=None, timezone: str = 'America/New_York'):
        super().__init__(fmt)
        # pytz handles DST transitions for the zone automatically
        self.local_tz = pytz.timezone(timezone)

    def formatTime(self, record, datefmt=None):
        # Convert timestamp to local time
        dt = datetime.fromtimestamp(record.created, tz=self.local_tz)
        if datefmt:
            return dt.strftime(datefmt)
        else:
            # Default format: YYYY-MM-DD HH:MM:SS EDT
            return dt.strftime('%Y-%m-%d %H:%M:%S %Z')

def setup_logging(config: Dict) -> None:
    """Setup logging based on configuration with local timestamps"""
    log_config = config.get('logging', {})
    level = log_config.get('level', 'INFO')
    timezone = log_config.get('timezone', 'America/New_York')

    # Configure logging format with custom timezone formatter
    log_format = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
    formatter = TimezoneFormatter(log_format, timezone)

    # Setup logging
    logging.basicConfig(
        level=getattr(logging, level.upper()),
        format=log_format,
        handlers=[]
    )
    root = logging.getLogger()
    root.setLevel(getattr(logging, level.upper()))

    # Console handler with local timestamps
    if log_config.get('console_output', True):
        console_handler = logging.StreamHandler()
        console_handler.setFormatter(formatter)
        root.addHandler(console_handler)

    # File handler with local timestamps
    log_file = log_config.get('file')
    if log_file:
        # Create logs directory if it doesn't exist
        log_path = Path(log_file)
        log_path.parent.mkdir(parents=True, exist_ok=True)

        file_handler = logging.FileHandler(log_file)
        file_handler.setFormatter(formatter)
        root.addHandler(file_handler)

    logger.info(f"Logging configured: level={level}, timezone={timezone}, console={log_config.get('console_output', True)}, file={log_file}")

def get_sample_config() -> Dict:
    """Return a sample configuration for reference"""
    return {
        "device": {
            "binary": "hdhomerun_config",
            "poll_timeout_seconds": 0.75,
            "command_timeout_seconds": 5,
            "scan_timeout_seconds": 90
        },
        "discovery": {
            "auto_discovery": True,
            "manual_devices": ["192.168.1.50"],
            "discovery_timeout_seconds": 15,
            "host_cache_ttl_seconds": 300,
            "cloud_url": "https://api.hdhomerun.com/discover",
            "cloud_timeout_seconds": 10,
            "scan_interval_minutes": 30
        },
        "polling": {
            "status_interval_seconds": 1,
            "program_max_retries": 3
        },
        "api": {
            "host": "0.0.0.0",
            "port": 3000,
            "cors_origins": ["*"]
        },
        "logging": {
            "level": "INFO",
            "file": "logs/tuner_monitor.log",
            "console_output": True,
            "timezone": "America/New_York"
        }
    }
