import json
import logging
import os
from datetime import time

from .timeutil import parse_time

DEFAULTS = {
    'db_path': None,            # None -> ~/.schoolcal/schoolcal.db
    'school_id': 'default',
    'program_name': 'Main program',
    'default_test_start': '09:00',
    'default_test_end': '10:00',
    'week_starts_on': 0,
    'log_level': 'WARNING',
}


def _config_dir():
    base = os.path.join(os.path.expanduser('~'), '.schoolcal')
    os.makedirs(base, exist_ok=True)
    return base


def _config_path():
    return os.path.join(_config_dir(), 'schoolcal_config.json')


def load_config(path: str = None) -> dict:
    path = path or _config_path()
    cfg = dict(DEFAULTS)
    if not os.path.exists(path):
        return cfg
    try:
        with open(path, 'r', encoding='utf-8') as f:
            stored = json.load(f)
    except (OSError, json.JSONDecodeError) as e:
        logging.warning(f"Could not read config {path}: {e}, using defaults")
        return cfg
    if isinstance(stored, dict):
        cfg.update(stored)
    return cfg


def save_config(cfg: dict, path: str = None):
    path = path or _config_path()
    with open(path, 'w', encoding='utf-8') as f:
        json.dump(cfg, f, ensure_ascii=False, indent=2)


def db_path(cfg: dict) -> str:
    return cfg.get('db_path') or os.path.join(_config_dir(), 'schoolcal.db')


def default_test_slot(cfg: dict):
    start = parse_time(cfg.get('default_test_start')) or time(9, 0)
    end = parse_time(cfg.get('default_test_end')) or time(10, 0)
    return start, end
