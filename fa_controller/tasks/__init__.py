"""Built-in task constructors, registered with the task factory on import."""

from fa_controller.tasks import checker, client, monitor, service

__all__ = ["checker", "client", "monitor", "service"]
