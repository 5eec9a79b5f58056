"""
Integration tests for the btcleanup CLI tool.

These tests run the actual script in a subprocess against a temporary
target tree described by a temporary YAML config.
"""

import os
import subprocess
import sys

import pytest
import yaml

BORDER = "+" + "-" * 34 + "+" + "-" * 14 + "+" + "-" * 62 + "+"


class TestCLIIntegration:
    """Integration tests for the complete CLI workflow."""

    def run_btcleanup_command(self, command_args):
        """Helper method to run btcleanup commands."""
        script_path = os.path.join(os.path.dirname(__file__), '..', '..', 'btcleanup.py')

        env = os.environ.copy()
        env['PYTHONIOENCODING'] = 'utf-8'

        return subprocess.run(
            [sys.executable, script_path] + command_args,
            capture_output=True,
            text=True,
            encoding='utf-8',
            env=env,
            cwd=os.path.dirname(script_path)
        )

    def test_version(self):
        result = self.run_btcleanup_command(['--version'])

        assert result.returncode == 0
        assert '1.0.0' in result.stdout

    def test_dry_run_reports_without_changes(self, temp_config_file, target_tree):
        result = self.run_btcleanup_command(['--dry-run', '--config', temp_config_file])

        assert result.returncode == 0, result.stderr
        assert '1. 系统日志' in result.stdout
        assert '2. 备份' in result.stdout
        assert result.stdout.count(BORDER) == 6
        assert '授权日志' in result.stdout
        assert '✓ 成功' in result.stdout
        assert '! 不存在' in result.stdout
        assert '数据库备份上传记录' in result.stdout

        assert os.path.getsize(target_tree / 'var/log/auth.log') == 2048
        assert os.path.exists(target_tree / 'var/log/auth.log.1')
        assert os.path.exists(target_tree / 'backup/database/db1.sql.gz')

    def test_dry_run_writes_log_file(self, temp_config_file, tmp_path):
        self.run_btcleanup_command(['--dry-run', '--config', temp_config_file])

        log_text = (tmp_path / 'btcleanup.log').read_text(encoding='utf-8')
        assert '[system_logs_' in log_text
        assert 'Would truncate' in log_text

    def test_entry_point_finds_config_in_current_directory(self, temp_config_file, tmp_path):
        with open(temp_config_file, encoding='utf-8') as f:
            config = yaml.safe_load(f)
        config['main']['log_file'] = 'run.log'
        with open(tmp_path / 'btcleanup.yaml', 'w', encoding='utf-8') as f:
            yaml.safe_dump(config, f, allow_unicode=True)

        script_dir = os.path.abspath(os.path.join(os.path.dirname(__file__), '..', '..'))
        env = os.environ.copy()
        env['PYTHONIOENCODING'] = 'utf-8'
        env['PYTHONPATH'] = script_dir

        # Same call the installed console script makes
        result = subprocess.run(
            [sys.executable, '-c', 'import btcleanup; btcleanup.main()', '--dry-run'],
            capture_output=True,
            text=True,
            encoding='utf-8',
            env=env,
            cwd=str(tmp_path)
        )

        assert result.returncode == 0, result.stderr
        assert '1. 系统日志' in result.stdout
        assert (tmp_path / 'run.log').exists()
        assert not os.path.exists(os.path.join(script_dir, 'run.log'))

    def test_missing_config(self, tmp_path):
        result = self.run_btcleanup_command(['--dry-run', '--config', str(tmp_path / 'none.yaml')])

        assert result.returncode == 1
        assert 'ERROR: Failed to read configuration' in result.stdout

    def test_invalid_config(self, tmp_path):
        config = tmp_path / 'bad.yaml'
        config.write_text("main: {}\nsections:\n  - title: x\n    items:\n      - {action: shred, path: /x, label: x}\n")

        result = self.run_btcleanup_command(['--dry-run', '--config', str(config)])

        assert result.returncode == 1
        assert 'Configuration validation failed' in result.stdout

    @pytest.mark.skipif(os.geteuid() == 0, reason="privilege check only applies to non-root users")
    def test_real_run_requires_root(self, temp_config_file):
        result = self.run_btcleanup_command(['--config', temp_config_file])

        assert result.returncode == 1
        assert '此脚本需 root 权限执行' in result.stdout

    @pytest.mark.skipif(os.geteuid() != 0, reason="real cleanup needs root")
    def test_real_run_cleans_targets(self, temp_config_file, target_tree):
        result = self.run_btcleanup_command(['--config', temp_config_file])

        assert result.returncode == 0, result.stderr
        assert os.path.getsize(target_tree / 'var/log/auth.log') == 0
        assert not os.path.exists(target_tree / 'var/log/auth.log.1')
        assert sorted(os.listdir(target_tree / 'backup/database')) == ['mysql']
        assert '所有日志清理完成' in result.stdout
