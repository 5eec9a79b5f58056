#!/usr/bin/python3
"""
BT Log Cleanup Utility - Main Script

Frees disk space on BaoTa (BT) panel servers by truncating system, panel and
software logs, deleting archived logs and panel backups, and vacuuming the
systemd journal. Every operation is reported as a row in a per-section table
with a colored status (成功 / 不存在 / 失败).

Author: Devin Acosta
Version: 1.0.0
Date: 2025-08-14
License: MIT

Features:
    - Log truncation in place (files are kept, content is emptied)
    - Glob-based deletion of rotated logs and backup archives
    - Directory purging with excluded names
    - systemd journal vacuum with configurable size
    - Aligned result tables for mixed Chinese / ASCII text
    - Dry-run mode with potential savings analysis
    - Logging to file with per-section correlation IDs
    - YAML-based configuration of every cleanup target

Requirements:
    - Python 3.8+
    - PyYAML, rich, arrow packages
    - Root privileges for real cleanup runs

Usage:
    ./btcleanup.py [--dry-run] [--config /path/to/config.yaml] [--verbose]
    ./btcleanup.py --version | -V

Configuration:
    Without --config, btcleanup.yaml is looked up in the current directory,
    /etc/btcleanup, <prefix>/share/btcleanup and next to this script.
    See btcleanup.yaml for the default target list. A relative log_file is
    created in the current directory.
"""

import argparse
import logging
import os
import sys
import time

from rich.console import Console
from rich.panel import Panel
from rich.text import Text

from btcleanup_logging import (
    setup_logging, OperationContext, set_current_operation_id
)
from btcleanup_table import NC, RED, Outcome, ResultTable
import btcleanup_core
from btcleanup_core import (
    readConfig, validate_config, find_yaml_config, truncate_log_file,
    run_section, disk_usage, is_root, resolve_log_path, format_size,
    print_banner, print_section_title, print_journal_result,
    print_disk_report, print_safety_notes, print_run_summary,
    SCRIPTVER, SCRIPTDATE
)

def show_version_console():
    """Display version information in console format."""
    console = Console()

    version_text = Text()
    version_text.append("BT Log Cleanup Utility\n\n", style="bold cyan")
    version_text.append("Version: ", style="bold")
    version_text.append(f"{SCRIPTVER}\n", style="green")
    version_text.append("Date: ", style="bold")
    version_text.append(f"{SCRIPTDATE}\n", style="white")
    version_text.append("License: ", style="bold")
    version_text.append("MIT\n\n", style="white")
    version_text.append("Frees disk space by truncating logs and removing panel backups,\n", style="dim")
    version_text.append("with a per-target result table.", style="dim")

    console.print(Panel(version_text, title="Version Information", border_style="cyan"))

def parse_arguments(argv=None):
    """Parse command line arguments."""
    parser = argparse.ArgumentParser(
        description="BaoTa panel log and backup cleanup utility"
    )
    parser.add_argument(
        '--version', '-V',
        action='store_true',
        help='Show version information'
    )
    parser.add_argument(
        '--dry-run',
        action='store_true',
        help='Show what would be cleaned without modifying any file'
    )
    parser.add_argument(
        '--config',
        type=str,
        help='Path to YAML configuration file'
    )
    parser.add_argument(
        '--verbose', '-v',
        action='store_true',
        help='Show log messages on the terminal'
    )
    return parser.parse_args(argv)

def main(argv=None):
    """Main execution function."""
    args = parse_arguments(argv)

    if args.version:
        show_version_console()
        sys.exit(0)

    script_name = os.path.basename(sys.argv[0]) or "btcleanup"

    # Privilege check (a dry run never touches the filesystem)
    if not args.dry_run and not is_root():
        print(f"{RED}错误: 此脚本需 root 权限执行！{NC}")
        print(f"请使用: sudo {script_name}")
        sys.exit(1)

    yml_config = args.config if args.config else find_yaml_config()
    if yml_config is None:
        print("ERROR: No YAML configuration file found. Exiting.")
        sys.exit(1)

    try:
        main_settings, sections = readConfig(filename=yml_config)
    except Exception as e:
        print(f"ERROR: Failed to read configuration: {e}")
        sys.exit(1)

    if not validate_config({"main": main_settings, "sections": sections}):
        print("ERROR: Configuration validation failed. Exiting.")
        sys.exit(1)

    log_file = main_settings.get('log_file', 'btcleanup.log')
    log_max_size = main_settings.get('log_max_size', '100M')
    journal_size = main_settings.get('journal_vacuum_size', '40M')
    report_path = main_settings.get('disk_report_path', '/')

    log_file_path = resolve_log_path(log_file)

    truncate_log_file(log_file_path, log_max_size)

    console, logger_helper, global_metrics_instance = setup_logging(log_file_path, args.verbose)

    btcleanup_core.log = logging.getLogger("btcleanup")
    btcleanup_core.logger = logger_helper
    btcleanup_core.global_metrics = global_metrics_instance
    log = btcleanup_core.log

    set_current_operation_id(global_metrics_instance.operation_id)

    start_time = time.time()
    _, _, free_before, _ = disk_usage(report_path)
    log.info(logger_helper.system(f"{script_name} v{SCRIPTVER} starting",
                                  config_file=yml_config, dry_run=args.dry_run,
                                  sections=len(sections)))

    print_banner(console, args.dry_run)

    totals = {outcome: 0 for outcome in Outcome}
    index = 0
    for index, section in enumerate(sections, start=1):
        title = section['title']
        print_section_title(console, index, title)
        operation = section.get('id') or f"section{index}"
        with OperationContext(operation, "cleanup") as metrics:
            files_before = global_metrics_instance.files_processed
            bytes_before = global_metrics_instance.bytes_freed
            errors_before = global_metrics_instance.errors_encountered
            with ResultTable() as table:
                run_section(section, table, args.dry_run)
            metrics.files_processed = global_metrics_instance.files_processed - files_before
            metrics.bytes_freed = global_metrics_instance.bytes_freed - bytes_before
            metrics.errors_encountered = global_metrics_instance.errors_encountered - errors_before
        for outcome, count in table.counts.items():
            totals[outcome] += count

    if journal_size:
        print_journal_result(console, index + 1, str(journal_size), args.dry_run)

    execution_time = time.time() - start_time
    console.print()
    print_run_summary(console, totals, execution_time, args.dry_run)

    print_disk_report(console, report_path, free_before)
    print_safety_notes(console)

    log.info(logger_helper.performance(mode="dry_run" if args.dry_run else "production",
                                       space_freed=format_size(global_metrics_instance.bytes_freed),
                                       succeeded=totals[Outcome.SUCCESS],
                                       missing=totals[Outcome.MISSING],
                                       failed=totals[Outcome.FAILED],
                                       errors=global_metrics_instance.errors_encountered,
                                       execution_time=f"{execution_time:.2f}s"))

if __name__ == '__main__':
    main()
