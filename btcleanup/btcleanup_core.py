#!/usr/bin/python3
"""
BT Log Cleanup - Core Functions Module

This module contains all the core business logic including:
- Configuration loading and validation
- File truncation, glob deletion and directory purging
- systemd journal vacuuming
- Disk usage reporting
- Console display helpers

Every cleanup operation returns ResultRecord objects that the caller writes
to a ResultTable.

Author: Devin Acosta
Version: 1.0.0
Date: 2025-08-14
"""

import glob
import logging
import os
import re
import shutil
import subprocess
import sys
from typing import Any, Dict, Iterable, List, Optional, Tuple

import arrow
import yaml
from rich.align import Align
from rich.console import Console
from rich.panel import Panel
from rich.text import Text

from btcleanup_logging import LogHelper, OperationMetrics
from btcleanup_table import Outcome, ResultRecord, ResultTable

# Global instances - replaced by the main script once logging is configured
logger = LogHelper()
log = logging.getLogger("btcleanup")
global_metrics = OperationMetrics()

SCRIPTVER = "1.0.0"
SCRIPTDATE = "2025-08-14"

# Action name -> config key naming its target
ACTION_TARGETS = {
    'truncate': 'path',
    'delete': 'pattern',
    'truncate_glob': 'pattern',
    'clear_dir': 'path',
    'purge_dir': 'path',
}

SAFETY_NOTES = [
    "MySQL 二进制日志删除后不可恢复！",
    "宝塔面板备份文件已永久删除",
    "部分日志需重启服务后重新生成",
    "建议定期执行本脚本维护服务器",
]

# Utility Functions
def format_size(size_bytes: int) -> str:
    """Format bytes into human readable format."""
    if size_bytes == 0:
        return "0 B"
    size_names = ["B", "KB", "MB", "GB", "TB"]
    i = 0
    while size_bytes >= 1024.0 and i < len(size_names) - 1:
        size_bytes /= 1024.0
        i += 1
    return f"{size_bytes:.1f} {size_names[i]}"

def convert_size_to_bytes(size_str: str) -> int:
    """Convert human readable size (``40M``, ``100MB``, ``1.5GiB``) to bytes."""
    size_str = str(size_str).strip()
    if not size_str:
        return 0

    match = re.match(r'^(\d+(?:\.\d+)?)\s*([KMGT]?i?B?)$', size_str, re.IGNORECASE)
    if not match:
        raise ValueError(f"Invalid size format: {size_str}")

    number = float(match.group(1))
    unit = match.group(2).upper()

    multipliers = {
        '': 1, 'B': 1,
        'K': 1024, 'KB': 1024, 'KIB': 1024,
        'M': 1024**2, 'MB': 1024**2, 'MIB': 1024**2,
        'G': 1024**3, 'GB': 1024**3, 'GIB': 1024**3,
        'T': 1024**4, 'TB': 1024**4, 'TIB': 1024**4
    }
    if unit not in multipliers:
        raise ValueError(f"Invalid size unit: {size_str}")
    return int(number * multipliers[unit])

def resolve_log_path(log_file: str) -> str:
    """Resolve the tool log path; relative names are taken from the current directory."""
    return os.path.abspath(os.path.expanduser(log_file))

def path_size(path: str) -> int:
    """Size of a file, or the total size of all files below a directory."""
    if not os.path.isdir(path) or os.path.islink(path):
        try:
            return os.lstat(path).st_size
        except OSError:
            return 0
    total_size = 0
    for root, dirs, files in os.walk(path):
        for file in files:
            try:
                total_size += os.lstat(os.path.join(root, file)).st_size
            except OSError:
                continue
    return total_size

def is_root() -> bool:
    return os.geteuid() == 0

# Tool log maintenance
def truncate_log_file(filename: str, file_size: str) -> None:
    """
    Truncates the tool's own log file if it exceeds a specified size.
    """
    bytes_to_compare = convert_size_to_bytes(file_size)
    try:
        actual_size = os.path.getsize(filename)
    except FileNotFoundError:
        actual_size = 0
    if actual_size > bytes_to_compare:
        with open(filename, 'r+') as file:
            file.truncate(bytes_to_compare)

# Configuration Functions
CONFIG_NAMES = ('btcleanup.yaml', 'btcleanup.yml')

def config_search_dirs() -> List[str]:
    """Directories searched for a configuration file, in order."""
    return [
        os.getcwd(),
        '/etc/btcleanup',
        os.path.join(sys.prefix, 'share', 'btcleanup'),
        os.path.dirname(os.path.abspath(__file__)),
    ]

def find_yaml_config(search_dirs: Optional[List[str]] = None) -> Optional[str]:
    """Find the YAML configuration file.

    Looks in the current directory, ``/etc/btcleanup``, the installed data
    directory and finally next to the script, where a plain ``config.yaml``
    is accepted as well.
    """
    script_dir = os.path.dirname(os.path.abspath(__file__))
    for directory in search_dirs if search_dirs is not None else config_search_dirs():
        names = CONFIG_NAMES
        if os.path.abspath(directory) == script_dir:
            names = CONFIG_NAMES + ('config.yaml', 'config.yml')
        for name in names:
            config_path = os.path.join(directory, name)
            if os.path.isfile(config_path):
                return config_path
    return None

def readConfig(filename: str) -> Tuple[Dict[str, Any], List[Dict[str, Any]]]:
    """Load the YAML config and return its (main, sections) parts."""
    try:
        with open(filename, 'r', encoding='utf-8') as yaml_file:
            config = yaml.safe_load(yaml_file) or {}

        required_keys = ['main', 'sections']
        missing_keys = [key for key in required_keys if key not in config]
        if missing_keys:
            raise KeyError(f"Missing required configuration sections: {', '.join(missing_keys)}")

        return config['main'] or {}, config['sections'] or []
    except yaml.YAMLError as e:
        log.error(logger.config("failed to parse YAML configuration", error=str(e)))
        raise
    except Exception as e:
        log.error(logger.config("failed to read configuration file", error=str(e)))
        raise

def validate_item(item: Any) -> Optional[str]:
    """Return a description of what is wrong with a section item, or None."""
    if not isinstance(item, dict):
        return f"item must be a mapping, got {type(item).__name__}"
    action = item.get('action')
    if action not in ACTION_TARGETS:
        return f"unknown action {action!r}"
    if not item.get('label'):
        return f"{action} item is missing a label"
    target_key = ACTION_TARGETS[action]
    if not item.get(target_key):
        return f"{action} item {item['label']!r} is missing '{target_key}'"
    exclude = item.get('exclude', [])
    if isinstance(exclude, str):
        exclude = [exclude]
    if not isinstance(exclude, list) or not all(isinstance(name, str) for name in exclude):
        # An unquoted year like 2023 loads as an int
        return f"exclude of {item['label']!r} must be a name or a list of names (quote numeric names)"
    return None

def validate_config(config: Dict[str, Any]) -> bool:
    """Validate the main settings and every section item."""
    try:
        main_config = config['main']
        sections = config['sections']

        for key in ('log_max_size', 'journal_vacuum_size'):
            value = main_config.get(key)
            if value is None:
                continue
            try:
                convert_size_to_bytes(value)
            except ValueError as e:
                log.error(logger.config(f"validation failed - invalid {key} format", error=str(e)))
                return False

        if not isinstance(sections, list):
            log.error(logger.config("validation failed - sections must be a list"))
            return False

        for index, section in enumerate(sections, start=1):
            if not isinstance(section, dict) or not section.get('title'):
                log.error(logger.config("validation failed - section is missing a title", section=index))
                return False
            for item in section.get('items') or []:
                problem = validate_item(item)
                if problem:
                    log.error(logger.config("validation failed", section=section['title'], problem=problem))
                    return False
        return True
    except Exception as e:
        log.error(logger.config("validation failed with exception", error=str(e)))
        return False

# File Operations
def _failed(label: str, target: str, error: OSError) -> ResultRecord:
    log.error(logger.error_with_context(target, error))
    global_metrics.add_error()
    return ResultRecord(label, target, Outcome.FAILED)

def clear_and_log(path: str, label: str, dry_run: bool = False) -> ResultRecord:
    """Empty a regular file in place, keeping the file itself."""
    if not os.path.isfile(path):
        log.debug(logger.system(f"skipping {path} (not found)"))
        return ResultRecord(label, path, Outcome.MISSING)

    size = path_size(path)
    if dry_run:
        log.info(logger.dry_run(f"truncate {path}", size=format_size(size)))
        global_metrics.add_file(size)
        return ResultRecord(label, path, Outcome.SUCCESS)

    try:
        with open(path, 'w') as f:
            f.truncate(0)
    except OSError as e:
        return _failed(label, path, e)

    log.info(logger.action(f"truncated file {path} to 0 bytes", freed=format_size(size)))
    global_metrics.add_file(size)
    return ResultRecord(label, path, Outcome.SUCCESS)

def clear_matching_files(pattern: str, label: str, dry_run: bool = False) -> List[ResultRecord]:
    """Truncate every regular file matching pattern; one record per file."""
    return [clear_and_log(path, label, dry_run)
            for path in sorted(glob.glob(pattern)) if os.path.isfile(path)]

def _remove_paths(paths: Iterable[str], label: str, target: str, dry_run: bool,
                  recursive: bool = False) -> ResultRecord:
    """Remove every path, reporting a single record for the whole batch."""
    error = None
    for path in paths:
        is_dir = os.path.isdir(path) and not os.path.islink(path)
        size = path_size(path)
        if dry_run:
            log.info(logger.dry_run(f"remove {path}", size=format_size(size)))
        else:
            try:
                if is_dir and recursive:
                    shutil.rmtree(path)
                else:
                    os.remove(path)
            except OSError as e:
                # Keep going like rm -f would, and report the batch as failed
                log.error(logger.error_with_context(path, e))
                global_metrics.add_error()
                error = e
                continue
            log.info(logger.action(f"removed {path}", size=format_size(size)))
        if is_dir:
            global_metrics.add_directory(size)
        else:
            global_metrics.add_file(size)

    outcome = Outcome.FAILED if error is not None else Outcome.SUCCESS
    return ResultRecord(label, target, outcome)

def delete_files(pattern: str, label: str, dry_run: bool = False) -> ResultRecord:
    """Delete every file matching a glob pattern; the record shows the pattern."""
    matches = sorted(glob.glob(pattern))
    if not matches:
        log.debug(logger.system(f"no files match {pattern}"))
        return ResultRecord(label, pattern, Outcome.MISSING)
    return _remove_paths(matches, label, pattern, dry_run)

def clear_directory(path: str, label: str, dry_run: bool = False) -> ResultRecord:
    """Delete the files directly inside a directory, leaving subdirectories."""
    if not os.path.isdir(path):
        return ResultRecord(label, path, Outcome.MISSING)
    target = os.path.join(path, '*')
    try:
        entries = sorted(os.path.join(path, name) for name in os.listdir(path))
    except OSError as e:
        return _failed(label, target, e)
    files = [entry for entry in entries if not os.path.isdir(entry) or os.path.islink(entry)]
    return _remove_paths(files, label, target, dry_run)

def purge_directory(path: str, label: str, exclude: Iterable[str] = (), dry_run: bool = False) -> ResultRecord:
    """Delete everything directly inside a directory except the excluded names."""
    if isinstance(exclude, str):
        exclude = [exclude]
    exclude = list(exclude)
    excluded = ", ".join(exclude)

    if not os.path.isdir(path):
        return ResultRecord(label, f"{path} (dir not found)", Outcome.MISSING)

    try:
        names = sorted(name for name in os.listdir(path) if name not in exclude)
    except OSError as e:
        return _failed(label, os.path.join(path, '*'), e)

    if not names:
        suffix = f" or only {excluded}" if exclude else ""
        return ResultRecord(label, f"{os.path.join(path, '*')} (no items to delete{suffix})", Outcome.MISSING)

    target = os.path.join(path, '*')
    if exclude:
        target = f"{target} (excl. {excluded})"
    return _remove_paths([os.path.join(path, name) for name in names], label, target, dry_run, recursive=True)

def run_item(item: Dict[str, Any], dry_run: bool = False) -> List[ResultRecord]:
    """Dispatch one configured section item to its cleanup operation."""
    action = item['action']
    label = item['label']
    if action == 'truncate':
        return [clear_and_log(item['path'], label, dry_run)]
    if action == 'delete':
        return [delete_files(item['pattern'], label, dry_run)]
    if action == 'truncate_glob':
        return clear_matching_files(item['pattern'], label, dry_run)
    if action == 'clear_dir':
        return [clear_directory(item['path'], label, dry_run)]
    if action == 'purge_dir':
        return [purge_directory(item['path'], label, item.get('exclude', []), dry_run)]
    raise ValueError(f"Unknown cleanup action: {action}")

def run_section(section: Dict[str, Any], table: ResultTable, dry_run: bool = False) -> None:
    """Run every item of a section, writing each result to the table as it happens."""
    for item in section.get('items') or []:
        for record in run_item(item, dry_run):
            table.add(record)

# Journal Functions
def vacuum_journal(size: str) -> Tuple[bool, str]:
    """
    Shrink the systemd journal to size with journalctl.

    Returns:
        tuple: (succeeded, combined journalctl output)
    """
    try:
        result = subprocess.run(['journalctl', f'--vacuum-size={size}'],
                                capture_output=True, text=True)
    except OSError as e:
        log.warning(logger.error_with_context("journalctl", e))
        return False, str(e)

    output = "\n".join(part.strip() for part in (result.stdout, result.stderr) if part.strip())
    succeeded = "Vacuuming done" in output
    if succeeded:
        log.info(logger.action("journal vacuum completed", size=size))
    else:
        log.warning(logger.system("journal vacuum may not have completed",
                                  returncode=result.returncode))
    return succeeded, output

# Disk Functions
def disk_usage(path: str) -> Tuple[int, int, int, float]:
    """Get disk usage for a path as (total, used, free, percent)."""
    try:
        statvfs = os.statvfs(path)
        total = statvfs.f_frsize * statvfs.f_blocks
        free = statvfs.f_frsize * statvfs.f_bavail
        used = total - free
        percent = (used / total) * 100 if total > 0 else 0
        return total, used, free, percent
    except OSError:
        return 0, 0, 0, 0.0

# UI and Display Functions
def print_banner(console: Console, dry_run: bool = False) -> None:
    started = arrow.now().format('YYYY-MM-DD HH:mm:ss')
    mode = " (dry run)" if dry_run else ""
    console.print(Text(f"开始执行系统日志清理...{mode}  [{started}]", style="bold"))
    console.print("=" * 110, style="dim", highlight=False, soft_wrap=True)

def print_section_title(console: Console, index: int, title: str) -> None:
    console.print(Text(f"\n{index}. {title}", style="bold blue"))

def print_journal_result(console: Console, index: int, size: Optional[str], dry_run: bool = False) -> None:
    """Vacuum the journal and show the journalctl output with a status line."""
    print_section_title(console, index, "清理系统journal日志")
    if dry_run:
        log.info(logger.dry_run("vacuum systemd journal", size=size))
        console.print(Text(f"! dry run: 跳过 journalctl --vacuum-size={size}", style="yellow"))
        return

    succeeded, output = vacuum_journal(size)
    console.print("-" * 110, style="dim", highlight=False, soft_wrap=True)
    console.print(output, markup=False, highlight=False, soft_wrap=True)
    console.print("-" * 110, style="dim", highlight=False, soft_wrap=True)
    if succeeded:
        console.print(Text("✓ journal日志清理成功", style="green"))
    else:
        console.print(Text("! journal日志清理可能未完全执行", style="yellow"))
        console.print("详细信息:")
        console.print(output, markup=False, highlight=False, soft_wrap=True)

def print_disk_report(console: Console, path: str, free_before: int) -> None:
    """Show free/total space for path and how much the run freed."""
    total, used, free, percent = disk_usage(path)
    console.print(Text("\n当前磁盘使用情况：", style="bold blue"))
    console.print(f"可用空间: {format_size(free)}/{format_size(total)} (已用 {percent:.0f}%)",
                  markup=False, highlight=False)
    if free > free_before:
        console.print(f"本次释放: {format_size(free - free_before)}", markup=False, highlight=False)

def print_safety_notes(console: Console) -> None:
    console.print(Text("\n【重要安全提示】", style="bold yellow"))
    for number, note in enumerate(SAFETY_NOTES, start=1):
        console.print(f"{number}. {note}", markup=False, highlight=False)

def print_run_summary(console: Console, counts: Dict[Outcome, int], execution_time: float,
                      dry_run: bool = False) -> None:
    """Print a summary panel with per-outcome totals for the whole run."""
    summary_text = Text()
    summary_text.append("成功: ", style="bold")
    summary_text.append(str(counts.get(Outcome.SUCCESS, 0)), style="green")
    summary_text.append("  •  ", style="dim")
    summary_text.append("不存在: ", style="bold")
    summary_text.append(str(counts.get(Outcome.MISSING, 0)), style="yellow")
    summary_text.append("  •  ", style="dim")
    summary_text.append("失败: ", style="bold")
    summary_text.append(str(counts.get(Outcome.FAILED, 0)), style="red")
    summary_text.append("\n")
    summary_text.append("Space Freed: " if not dry_run else "Potential Savings: ", style="bold")
    summary_text.append(format_size(global_metrics.bytes_freed), style="green")
    summary_text.append("  •  ", style="dim")
    summary_text.append("Execution Time: ", style="bold")
    summary_text.append(f"{execution_time:.1f}s", style="cyan")

    if global_metrics.errors_encountered > 0:
        summary_text.append("\nErrors: ", style="bold red")
        summary_text.append(str(global_metrics.errors_encountered), style="red")

    title = "📋 Dry Run Complete" if dry_run else "✔ 所有日志清理完成！"
    console.print(Panel(Align.center(summary_text), title=title,
                        border_style="magenta" if dry_run else "green", padding=(1, 2)))
