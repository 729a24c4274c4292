"""Workflow dispatcher interface."""

from abc import ABC, abstractmethod

from contract_analyzer.jobs.models import DispatchJob


class WorkflowConfigError(Exception):
    """The workflow engine target is not usable (e.g. malformed URL)."""


class WorkflowDispatcher(ABC):
    """Abstract interface for handing an execution to the workflow engine."""

    @abstractmethod
    def check_ready(self) -> None:
        """Raise WorkflowConfigError if a dispatch could not even be initiated."""
        ...

    @abstractmethod
    async def dispatch(self, job: DispatchJob) -> None:
        """Schedule the outbound call and return without waiting for it."""
        ...

    @abstractmethod
    async def start(self) -> None:
        ...

    @abstractmethod
    async def stop(self) -> None:
        """Cancel in-flight dispatches and release resources."""
        ...
