import logging
import os
import random
from datetime import datetime

import numpy as np
import torch

LOG_FORMAT = "[%(filename)s:%(lineno)s - %(funcName)10s()] %(asctime)s %(levelname)s %(message)s"
DATE_TIME_FORMAT = "%Y-%m-%d:%H:%M:%S"
LOG_LEVEL_MAP = {'debug': logging.DEBUG, 'info': logging.INFO, 'warning': logging.WARNING,
                 'error': logging.ERROR}


def get_log_level(level: str) -> int:
    log_level_enum = LOG_LEVEL_MAP.get(level.lower(), None)
    if log_level_enum is None:
        raise ValueError(f"Unknown log-level {level}")
    return log_level_enum


def next_run_number(run_counter_file_path: str) -> int:
    """
    Read the last run number from the counter file, bump it and write it back.
    A missing or empty counter file starts the numbering at 1.
    """
    run_number = 0
    if os.path.exists(run_counter_file_path):
        with open(run_counter_file_path, "r") as f:
            line = f.readline().strip()
            run_number = int(line) if line else 0
    run_number += 1
    counter_dir = os.path.dirname(run_counter_file_path)
    if counter_dir:
        os.makedirs(counter_dir, exist_ok=True)
    with open(run_counter_file_path, "w") as f:
        f.write(str(run_number))
    return run_number


def get_logger(level: str, date_time_format: str = DATE_TIME_FORMAT, log_format: str = LOG_FORMAT,
               run_counter_file_path: str = None, log_dir: str = None):
    """
    Configure the root logger and, when a log dir is given, attach a per-run file handler
    named run_no_<n>_<timestamp>.log
    """
    log_level_enum = get_log_level(level)
    logging.basicConfig(level=log_level_enum, format=log_format)
    logger = logging.getLogger()
    logger.setLevel(log_level_enum)
    if log_dir is None:
        return logger, None
    os.makedirs(log_dir, exist_ok=True)
    if run_counter_file_path is None:
        run_counter_file_path = os.path.join(log_dir, "run_counter.txt")
    run_number = next_run_number(run_counter_file_path)
    tstamp = datetime.now().strftime(date_time_format)
    # ':' is not allowed in file names everywhere
    log_file_path = os.path.join(log_dir, f"run_no_{run_number}_{tstamp.replace(':', '-')}.log")
    formatter = logging.Formatter(fmt=log_format)
    fh = logging.FileHandler(filename=log_file_path, mode="w")
    fh.setLevel(level=log_level_enum)
    fh.setFormatter(fmt=formatter)
    logger.addHandler(fh)
    return logger, run_number


def set_seed(seed: int):
    torch.manual_seed(seed)
    np.random.seed(seed)
    random.seed(seed)
