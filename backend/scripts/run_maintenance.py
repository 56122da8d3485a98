#!/usr/bin/env python
"""Periodic maintenance jobs for the after-sales service.

Usage:
    python backend/scripts/run_maintenance.py --sweep-overdue
    python backend/scripts/run_maintenance.py --purge-notifications --days 30
    python backend/scripts/run_maintenance.py --sweep-overdue --purge-notifications --dry-run

Meant to be run from cron (or any scheduler) every few minutes; both jobs are
idempotent and safe to run concurrently.
"""
from __future__ import annotations
import os, sys, argparse, logging

# Allow running from repo root
sys.path.append(os.path.abspath('backend'))
sys.path.append(os.path.abspath(os.path.join(os.path.dirname(__file__), '..')))

from aftersales import create_app  # type: ignore
from aftersales.services.sweeper import sweep_overdue, purge_notifications

logger = logging.getLogger('aftersales.maintenance')


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description='Run after-sales maintenance jobs')
    parser.add_argument('--sweep-overdue', action='store_true', help='flag open requests past their SLA deadline')
    parser.add_argument('--purge-notifications', action='store_true', help='delete old read notifications')
    parser.add_argument('--days', type=int, default=None, help='retention in days (default NOTIFICATION_RETENTION_DAYS)')
    parser.add_argument('--dry-run', action='store_true', help='report what would change without writing')
    return parser


def run(ctx, args) -> dict:
    result = {}
    if args.sweep_overdue:
        flagged = sweep_overdue(ctx, dry_run=args.dry_run)
        result['overdue'] = len(flagged)
        print(f"[INFO] {'Would flag' if args.dry_run else 'Flagged'} {len(flagged)} overdue request(s)")
    if args.purge_notifications:
        count = purge_notifications(ctx, days=args.days, dry_run=args.dry_run)
        result['purged'] = count
        print(f"[INFO] {'Would delete' if args.dry_run else 'Deleted'} {count} read notification(s)")
    return result


def main(argv=None):
    args = build_parser().parse_args(argv)
    if not (args.sweep_overdue or args.purge_notifications):
        build_parser().error('choose at least one of --sweep-overdue / --purge-notifications')
    if args.days is not None and args.days < 0:
        build_parser().error('--days must not be negative')
    logging.basicConfig(level=os.getenv('LOG_LEVEL', 'INFO').upper(),
                        format='%(asctime)s %(levelname)s [%(name)s] %(message)s')
    app = create_app()
    with app.app_context():
        return run(app.extensions['aftersales'], args)


if __name__ == '__main__':
    main()
