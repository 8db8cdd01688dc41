import logging
import os

import pytest
import yaml

from ode_workshop.config import load_config, lesson_config
from ode_workshop.utils import get_log_level, get_logger, next_run_number


def test_packaged_config():
    config = load_config()
    assert {'log', 'solve', 'output', 'lessons', 'benchmark', 'ensemble', 'neural', 'deck'} <= set(config)
    assert config['neural']['dtype'] == "torch.float32"


def test_user_config_overrides_subset(tmp_path):
    path = tmp_path / "user.yaml"
    path.write_text(yaml.safe_dump({'neural': {'epochs': 7}, 'lessons': {'intro': {'tspan': [0.0, 1.0]}}}))
    config = load_config(str(path))
    assert config['neural']['epochs'] == 7
    assert config['neural']['lr'] == 0.01
    assert config['lessons']['intro']['tspan'] == [0.0, 1.0]
    assert config['lessons']['pde_sparse']['N'] == 16


def test_empty_user_config(tmp_path):
    path = tmp_path / "empty.yaml"
    path.write_text("")
    assert load_config(str(path)) == load_config()


def test_unknown_section(tmp_path):
    path = tmp_path / "bad.yaml"
    path.write_text(yaml.safe_dump({'solver': {'alg': 'RK45'}}))
    with pytest.raises(ValueError):
        load_config(str(path))


def test_lesson_config_defaults_to_empty():
    config = load_config()
    assert lesson_config(config, "callbacks") == {}
    assert lesson_config(config, "pde_sparse") == {'N': 16}


def test_get_log_level():
    assert get_log_level("DEBUG") == logging.DEBUG
    with pytest.raises(ValueError):
        get_log_level("verbose")


def test_next_run_number(tmp_path):
    counter = str(tmp_path / "logs" / "run_counter.txt")
    assert next_run_number(counter) == 1
    assert next_run_number(counter) == 2
    with open(counter) as f:
        assert f.read() == "2"


def test_get_logger_file_handler(tmp_path):
    log_dir = str(tmp_path / "logs")
    logger, run_number = get_logger(level="info", log_dir=log_dir)
    try:
        assert run_number == 1
        logger.info("hello workshop")
        log_files = [name for name in os.listdir(log_dir) if name.endswith(".log")]
        assert len(log_files) == 1
        assert log_files[0].startswith("run_no_1_")
        assert ":" not in log_files[0]
    finally:
        for handler in list(logger.handlers):
            if isinstance(handler, logging.FileHandler):
                logger.removeHandler(handler)
                handler.close()


def test_get_logger_without_dir():
    logger, run_number = get_logger(level="warning")
    assert run_number is None
    assert logger.level == logging.WARNING
