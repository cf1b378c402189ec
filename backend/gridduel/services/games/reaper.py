import time

from gridduel import socketio


def reap_idle_rooms(app, router, now=None) -> int:
    """Close every room idle for longer than ROOM_IDLE_TIMEOUT_SEC.

    Returns the number of rooms closed. A timeout of 0 disables reaping.
    """
    max_idle = int(app.config.get('ROOM_IDLE_TIMEOUT_SEC', 0))
    if max_idle <= 0:
        return 0
    closed = 0
    with app.app_context():
        for room in router.registry.idle_rooms(max_idle, now=now):
            idle_for = int((now or time.time()) - room.last_activity)
            if router.close_room(room.code, max_idle=max_idle, now=now):
                closed += 1
                app.logger.info(f"[reaper] closed code={room.code} idle={idle_for}s")
    return closed


def schedule_idle_reaper(app, router) -> None:
    """Start the background task that periodically reaps idle rooms.

    - No-ops in TESTING mode unless ENABLE_REAPER_IN_TESTS is set
    - No-ops when ROOM_IDLE_TIMEOUT_SEC is 0
    """
    if app.config.get('TESTING') and not app.config.get('ENABLE_REAPER_IN_TESTS'):
        return
    if int(app.config.get('ROOM_IDLE_TIMEOUT_SEC', 0)) <= 0:
        return
    interval = max(1, int(app.config.get('REAPER_INTERVAL_SEC', 60)))

    def _worker():
        while True:
            socketio.sleep(interval)
            try:
                reap_idle_rooms(app, router)
            except Exception:
                app.logger.exception("[reaper] sweep failed")

    app.logger.info(f"[reaper] started interval={interval}s timeout={app.config.get('ROOM_IDLE_TIMEOUT_SEC')}s")
    socketio.start_background_task(_worker)
