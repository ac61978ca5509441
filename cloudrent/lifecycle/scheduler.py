import logging
import threading
from datetime import datetime, timedelta

logger = logging.getLogger(__name__)


def seconds_until(hour, minute, now):
    """Segundos até a próxima ocorrência de hour:minute (hora local do servidor)."""
    target = now.replace(hour=hour, minute=minute, second=0, microsecond=0)
    if target <= now:
        target += timedelta(days=1)
    return (target - now).total_seconds()


class _Job:

    def __init__(self, app, name, func):
        self.app = app
        self.name = name
        self.func = func
        self._stop = threading.Event()
        self._thread = threading.Thread(target=self._loop, name=f"job-{name}", daemon=True)

    def next_delay(self):
        raise NotImplementedError

    def run_once(self):
        try:
            with self.app.app_context():
                self.func()
        except Exception as e:
            # Um job falhado não pode matar a thread do agendador
            logger.error(f"[Agendador] Job '{self.name}' falhou: {e}")

    def _loop(self):
        while not self._stop.wait(self.next_delay()):
            self.run_once()

    def start(self):
        self._thread.start()

    def stop(self, timeout=5):
        self._stop.set()
        if self._thread.is_alive():
            self._thread.join(timeout=timeout)


class IntervalJob(_Job):

    def __init__(self, app, name, func, seconds):
        super().__init__(app, name, func)
        self.seconds = seconds

    def next_delay(self):
        return self.seconds


class DailyJob(_Job):

    def __init__(self, app, name, func, hour, minute, now=datetime.now):
        super().__init__(app, name, func)
        self.hour = hour
        self.minute = minute
        self._now = now

    def next_delay(self):
        return seconds_until(self.hour, self.minute, self._now())


class Scheduler:
    """Gatilhos periódicos: cobrança (intervalo), backups e lembretes (diários)."""

    def __init__(self, app):
        self.app = app
        self.jobs = []
        self._started = False

    def every(self, seconds, name, func):
        self.jobs.append(IntervalJob(self.app, name, func, seconds))
        return self

    def daily(self, at, name, func):
        hour, minute = at
        self.jobs.append(DailyJob(self.app, name, func, hour, minute))
        return self

    def start(self):
        if self._started:
            return
        self._started = True
        for job in self.jobs:
            job.start()
        logger.info(f"[Agendador] {len(self.jobs)} job(s) agendados: {', '.join(j.name for j in self.jobs)}")

    def shutdown(self):
        for job in self.jobs:
            job.stop()
        self._started = False
