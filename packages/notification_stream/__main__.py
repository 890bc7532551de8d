"""Run the notification watcher: ``python -m packages.notification_stream``."""

from .watcher import main

main()
