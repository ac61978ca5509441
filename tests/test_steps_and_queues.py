import threading
import time

import pytest

from cloudrent.lifecycle.naming import generate_subdomain, technical_hostname, sanitize_username
from cloudrent.lifecycle.queues import SerialQueue, QueueClosedError
from cloudrent.lifecycle.steps import StepRunner, StepFailed, SKIP


def test_step_runner_best_effort_failure_continues():
    calls = []

    def fail(ctx):
        calls.append('b')
        raise RuntimeError("best-effort")

    report = (
        StepRunner('teste')
        .add('a', lambda ctx: calls.append('a'))
        .add('b', fail, critical=False)
        .add('c', lambda ctx: calls.append('c'))
        .run({})
    )

    assert calls == ['a', 'b', 'c']
    assert report.completed == ['a', 'c']
    assert 'b' in report.failed


def test_step_runner_critical_failure_stops():
    calls = []

    def fail(ctx):
        raise RuntimeError("crítico")

    runner = (
        StepRunner('teste')
        .add('a', fail)
        .add('b', lambda ctx: calls.append('b'))
    )
    with pytest.raises(StepFailed) as excinfo:
        runner.run({})

    assert excinfo.value.step == 'a'
    assert isinstance(excinfo.value.cause, RuntimeError)
    assert calls == []


def test_step_runner_skip_and_when():
    report = (
        StepRunner('teste')
        .add('skip', lambda ctx: SKIP)
        .add('guarded', lambda ctx: pytest.fail("não deveria correr"), when=lambda ctx: False)
        .add('ok', lambda ctx: None)
        .run({})
    )
    assert report.skipped == ['skip', 'guarded']
    assert report.ok('ok')


def test_naming():
    assert sanitize_username('Alice.Smith_99') == 'alicesmith99'
    assert technical_hostname('abcdef123456', 'Alice', 'Debian', '12345678-aaaa') == 'abcdef-alice-debian-12345678'
    assert generate_subdomain('portainer', 'Alice', 'My Web  App!') == 'portainer-alice-my-web-app'
    assert generate_subdomain('api', 'bob', '--x--') == 'api-bob-x'


def test_serial_queue_runs_one_job_at_a_time(app):
    queue = SerialQueue(app, 'teste')
    queue.start()
    active = []
    overlap = []
    lock = threading.Lock()

    def job(n):
        with lock:
            active.append(n)
            if len(active) > 1:
                overlap.append(n)
        time.sleep(0.01)
        with lock:
            active.remove(n)
        return n

    futures = [queue.submit(job, n) for n in range(5)]
    assert [f.result(timeout=5) for f in futures] == [0, 1, 2, 3, 4]
    assert overlap == []
    queue.shutdown()


def test_serial_queue_job_has_app_context(app):
    from flask import current_app

    queue = SerialQueue(app, 'teste')
    queue.start()
    assert queue.submit(lambda: current_app.name).result(timeout=5) == app.name
    queue.shutdown()


def test_serial_queue_drains_and_rejects_after_shutdown(app):
    queue = SerialQueue(app, 'teste')
    queue.start()
    done = []
    for n in range(3):
        queue.submit(done.append, n)

    queue.shutdown(wait=True)

    assert done == [0, 1, 2]
    assert not queue.running
    with pytest.raises(QueueClosedError):
        queue.submit(done.append, 99)


def test_serial_queue_propagates_exceptions(app):
    queue = SerialQueue(app, 'teste')
    queue.start()

    def boom():
        raise ValueError("falhou")

    with pytest.raises(ValueError):
        queue.submit(boom).result(timeout=5)
    assert queue.pending == 0
    queue.shutdown()
