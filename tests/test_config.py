import json
from datetime import time

from schoolcal.config import DEFAULTS, db_path, default_test_slot, load_config, save_config


def test_missing_config_gives_defaults(tmp_path):
    assert load_config(str(tmp_path / 'none.json')) == DEFAULTS


def test_roundtrip_keeps_unknown_keys(tmp_path):
    path = str(tmp_path / 'cfg.json')
    save_config({'school_id': 'athens-1', 'extra': [1, 2]}, path)
    cfg = load_config(path)
    assert cfg['school_id'] == 'athens-1'
    assert cfg['extra'] == [1, 2]
    assert cfg['program_name'] == DEFAULTS['program_name']


def test_broken_config_falls_back(tmp_path):
    path = tmp_path / 'cfg.json'
    path.write_text('{not json', encoding='utf-8')
    assert load_config(str(path)) == DEFAULTS


def test_default_test_slot_and_db_path(tmp_path, monkeypatch):
    monkeypatch.setenv('HOME', str(tmp_path))
    assert default_test_slot(DEFAULTS) == (time(9), time(10))
    cfg = dict(DEFAULTS, default_test_start='08:30', default_test_end='09:15')
    assert default_test_slot(cfg) == (time(8, 30), time(9, 15))
    assert db_path(DEFAULTS).startswith(str(tmp_path))
    assert db_path(dict(DEFAULTS, db_path='/x/y.db')) == '/x/y.db'
    json.dumps(cfg)
