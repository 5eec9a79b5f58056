"""
Pytest configuration and shared fixtures for btcleanup tests.
"""

import io
import logging

import pytest
import yaml

# Import the modules we want to test
import sys
import os
sys.path.insert(0, os.path.abspath(os.path.join(os.path.dirname(__file__), '..')))

import btcleanup_core
from btcleanup_logging import OperationMetrics
from btcleanup_table import ResultTable


@pytest.fixture(autouse=True)
def fresh_metrics():
    """Give every test its own metrics so counts do not leak between tests."""
    metrics = OperationMetrics(operation_id="test")
    original = btcleanup_core.global_metrics
    btcleanup_core.global_metrics = metrics
    btcleanup_core.log = logging.getLogger("btcleanup")
    yield metrics
    btcleanup_core.global_metrics = original


@pytest.fixture
def output_stream():
    """In-memory stream standing in for stdout."""
    return io.StringIO()


@pytest.fixture
def result_table(output_stream):
    return ResultTable(stream=output_stream)


@pytest.fixture
def target_tree(tmp_path):
    """
    A small server-like tree:

        var/log/auth.log          (with content)
        var/log/auth.log.1
        var/log/auth.log.2.gz
        data/a.err, data/b.err
        panel/installed/{x.log, y.log, keep/}
        backup/database/{db1.sql.gz, site_dir/, mysql/{all_backup/, old.sql.gz}}
    """
    log_dir = tmp_path / "var" / "log"
    log_dir.mkdir(parents=True)
    (log_dir / "auth.log").write_text("x" * 2048)
    (log_dir / "auth.log.1").write_text("old")
    (log_dir / "auth.log.2.gz").write_bytes(b"\x1f\x8b" * 10)

    data_dir = tmp_path / "data"
    data_dir.mkdir()
    (data_dir / "a.err").write_text("error a")
    (data_dir / "b.err").write_text("error b")

    installed = tmp_path / "panel" / "installed"
    (installed / "keep").mkdir(parents=True)
    (installed / "x.log").write_text("x")
    (installed / "y.log").write_text("y")

    database = tmp_path / "backup" / "database"
    (database / "site_dir").mkdir(parents=True)
    (database / "site_dir" / "dump.sql").write_text("dump")
    (database / "db1.sql.gz").write_text("db1")
    (database / "mysql" / "all_backup").mkdir(parents=True)
    (database / "mysql" / "old.sql.gz").write_text("old")

    return tmp_path


@pytest.fixture
def temp_config_file(tmp_path, target_tree):
    """Create a temporary YAML config pointing at the target tree."""
    config_data = {
        'main': {
            'log_file': str(tmp_path / 'btcleanup.log'),
            'log_max_size': '10M',
            'journal_vacuum_size': None,
            'disk_report_path': str(tmp_path),
        },
        'sections': [
            {
                'id': 'system_logs',
                'title': '系统日志',
                'items': [
                    {'action': 'truncate', 'path': str(target_tree / 'var/log/auth.log'), 'label': '授权日志'},
                    {'action': 'truncate', 'path': str(target_tree / 'var/log/missing.log'), 'label': '不存在的日志'},
                    {'action': 'delete', 'pattern': str(target_tree / 'var/log/auth.log.*'), 'label': '授权日志归档'},
                ],
            },
            {
                'id': 'backups',
                'title': '备份',
                'items': [
                    {'action': 'purge_dir', 'path': str(target_tree / 'backup/database'),
                     'exclude': ['mysql'], 'label': '数据库备份上传记录'},
                ],
            },
        ],
    }

    config_path = tmp_path / 'btcleanup.yaml'
    with open(config_path, 'w', encoding='utf-8') as f:
        yaml.safe_dump(config_data, f, allow_unicode=True)
    return str(config_path)
