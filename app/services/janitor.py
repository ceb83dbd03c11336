import logging
from datetime import datetime, timedelta

from flask import current_app

from app.extensions import db, socketio
from app.models import Post, UserRoomUsage
from app.services import presence

logger = logging.getLogger(__name__)


def months_ago(now, months):
    # Same day-of-month `months` calendar months back, clamped to the month's length
    month_index = now.year * 12 + (now.month - 1) - months
    year, month = divmod(month_index, 12)
    month += 1
    if month == 12:
        next_month = datetime(year + 1, 1, 1)
    else:
        next_month = datetime(year, month + 1, 1)
    last_day = (next_month - timedelta(days=1)).day
    return now.replace(year=year, month=month, day=min(now.day, last_day))


def sweep_presence(now=None):
    return presence.sweep_stale(now)


def prune_room_usage(now=None):
    # Monthly usage counters are only needed for the current limit window
    now = now or datetime.utcnow()
    cutoff = months_ago(now, current_app.config['USAGE_RETENTION_MONTHS'])
    deleted = (UserRoomUsage.query
               .filter(UserRoomUsage.created_at < cutoff)
               .delete(synchronize_session=False))
    db.session.commit()
    logger.info('[JANITOR] removed %d room usage records older than %s', deleted, cutoff.isoformat())
    return deleted


def decay_public_posts(now=None):
    # Public posts stay public for a fixed window after publishing
    now = now or datetime.utcnow()
    cutoff = now - timedelta(hours=current_app.config['POST_PUBLIC_WINDOW_HOURS'])
    converted = (Post.query
                 .filter(Post.visibility == 'public')
                 .filter(Post.published_at.isnot(None))
                 .filter(Post.published_at < cutoff)
                 .update({Post.visibility: 'private'}, synchronize_session=False))
    db.session.commit()
    logger.info('[JANITOR] converted %d public posts to private', converted)
    return converted


# (job name, config key holding its interval in seconds, callable)
JOBS = (
    ('sweep_presence', 'PRESENCE_SWEEP_INTERVAL_SECONDS', sweep_presence),
    ('prune_room_usage', 'USAGE_CLEANUP_INTERVAL_SECONDS', prune_room_usage),
    ('decay_public_posts', 'POST_DECAY_INTERVAL_SECONDS', decay_public_posts),
)


class Janitor:
    """Periodic cleanup loop.

    Each job runs once its own interval has elapsed since its last run. A job
    that fails is logged and retried on its next interval; the others still run.
    """

    def __init__(self, app, jobs=JOBS):
        self.app = app
        self.jobs = jobs
        self.last_run = {}

    def due(self, name, interval, now):
        last = self.last_run.get(name)
        return last is None or (now - last).total_seconds() >= interval

    def run_due_jobs(self, now=None):
        # Returns {job name: count} for the jobs that ran successfully
        now = now or datetime.utcnow()
        results = {}
        with self.app.app_context():
            for name, interval_key, job in self.jobs:
                interval = int(self.app.config[interval_key])
                if not self.due(name, interval, now):
                    continue
                self.last_run[name] = now
                try:
                    results[name] = job(now)
                except Exception:
                    logger.exception('[JANITOR] %s failed', name)
                    db.session.rollback()
        return results

    def run_forever(self):
        tick = max(int(self.app.config.get('JANITOR_TICK_SECONDS', 30)), 1)
        logger.info('[JANITOR] started (tick %ss)', tick)
        while True:
            self.run_due_jobs()
            socketio.sleep(tick)


def start_janitor(app):
    """Start the cleanup loop as a Socket.IO background task, if enabled."""
    if not app.config.get('JANITOR_ENABLED', True):
        logger.info('[JANITOR] disabled by configuration')
        return None
    janitor = Janitor(app)
    socketio.start_background_task(janitor.run_forever)
    return janitor
