#!/usr/bin/env python3
"""
Log maintenance for the forum crawler.

    python manage_logs.py stats
    python manage_logs.py cleanup --days 3
    python manage_logs.py monitor --interval 2
"""

import argparse
import sys
import time
from datetime import datetime

from forum_crawler.utils.logging import (
    cleanup_old_logs,
    get_log_statistics,
    log_business_operation
)


RULE = "-" * 60


@log_business_operation('system', 'log_stats')
def print_stats(args):
    stats = get_log_statistics()
    lines = [
        RULE,
        f"{stats['total_files']} log files, {stats['total_size_mb']:.2f} MB",
        f"oldest: {stats['oldest_log'] or '-'}",
        f"newest: {stats['newest_log'] or '-'}",
    ]
    for business, info in sorted(stats['files_by_business'].items()):
        lines.append(f"  {business:<24} {info['count']:>3} files  {info['size_mb']:.2f} MB")
    lines.append(RULE)
    print("\n".join(lines))


@log_business_operation('system', 'log_cleanup')
def purge(args):
    removed = cleanup_old_logs(retention_days=args.days)
    if removed:
        print(f"Removed {removed} log files older than {args.days} days")
    else:
        print(f"Nothing older than {args.days} days")


def watch(args):
    print("Watching logs/ (Ctrl+C to stop)")
    try:
        while True:
            stats = get_log_statistics()
            stamp = datetime.now().strftime('%H:%M:%S')
            print(f"\r[{stamp}] {stats['total_files']} files, {stats['total_size_mb']:.2f} MB",
                  end='', flush=True)
            time.sleep(args.interval)
    except KeyboardInterrupt:
        print()


ACTIONS = {
    'stats': print_stats,
    'cleanup': purge,
    'monitor': watch,
}


def main(argv=None) -> int:
    parser = argparse.ArgumentParser(description="Forum crawler log maintenance")
    parser.add_argument('action', choices=sorted(ACTIONS))
    parser.add_argument('--days', type=int, default=7,
                        help='retention period for cleanup (default: 7)')
    parser.add_argument('--interval', type=float, default=5.0,
                        help='refresh interval for monitor, in seconds')
    args = parser.parse_args(argv)

    try:
        ACTIONS[args.action](args)
    except OSError as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1
    return 0


if __name__ == "__main__":
    sys.exit(main())
