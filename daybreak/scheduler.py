# daybreak/scheduler.py
"""
Background Task Scheduler

Uses APScheduler to drive the briefing tick on a fixed interval. The tick
itself is idempotent, so overlapping or repeated runs are harmless; a
missed run is simply skipped.

Designed for single-instance deployments. Multi-instance deployments can
disable it (BRIEFING_SCHEDULER_ENABLED=false) and call
POST /api/briefings/tick from an external cron instead.
"""
import atexit
import logging

from apscheduler.schedulers.background import BackgroundScheduler

logger = logging.getLogger(__name__)
scheduler = None


def init_scheduler(app):
    """
    Initialize the APScheduler with Flask app context
    """
    global scheduler

    if scheduler is not None:
        logger.warning("Scheduler already initialized")
        return scheduler

    scheduler = BackgroundScheduler(timezone='UTC')
    interval = app.config.get('BRIEFING_TICK_INTERVAL_MINUTES', 5)

    @scheduler.scheduled_job(
        'interval',
        minutes=interval,
        id='briefing_tick',
        max_instances=1,
        coalesce=True
    )
    def briefing_tick():
        """
        Deliver morning briefings to users whose delivery window is open
        Runs every BRIEFING_TICK_INTERVAL_MINUTES
        """
        with app.app_context():
            from daybreak.briefing.controller import tick

            try:
                tick()
            except Exception as e:
                logger.error(f"Error running briefing tick: {e}", exc_info=True)

    logger.info("Scheduler initialized with jobs:")
    for job in scheduler.get_jobs():
        logger.info(f"  - {job.id}: {job.trigger}")

    return scheduler


def start_scheduler():
    """
    Start the scheduler and stop it again at interpreter exit.
    Should be called after app initialization
    """
    global scheduler

    if scheduler is None:
        logger.error("Scheduler not initialized. Call init_scheduler() first.")
        return

    if not scheduler.running:
        scheduler.start()
        atexit.register(shutdown_scheduler)
        logger.info("Scheduler started")
    else:
        logger.warning("Scheduler already running")


def shutdown_scheduler(wait=True):
    """
    Shutdown the scheduler. With wait=True a tick that is already running
    finishes first.
    """
    global scheduler

    if scheduler and scheduler.running:
        scheduler.shutdown(wait=wait)
        logger.info("Scheduler shut down")
    scheduler = None
