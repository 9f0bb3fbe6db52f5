from __future__ import annotations

from app.core.logger import init_logging
from app.core.monitoring import init_monitoring
from app.workers.celery_app import SWEEP_QUEUE, celery_app


def main() -> None:
    """Worker with embedded beat, consuming the default and sweep queues."""
    init_logging()
    init_monitoring()
    celery_app.worker_main(["worker", "--beat", "--loglevel=info", f"--queues=default,{SWEEP_QUEUE}"])


if __name__ == "__main__":
    main()
