from abc import ABC, abstractmethod

from app.domain.entities.notification import DispatchRequest


class DispatchSchedulerPort(ABC):
    @abstractmethod
    def submit(self, request: DispatchRequest) -> bool:
        """Hand a request to background delivery. Returns False if it was dropped."""
        raise NotImplementedError
