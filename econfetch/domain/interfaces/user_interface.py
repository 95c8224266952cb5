"""Interface for presenting results to the user.

Defines the contract for displaying series, search results, cache statistics,
errors, warnings and info messages, allowing different UI implementations
(e.g., console, task pane).
"""

import abc
from typing import Any, Dict, List

from econfetch.domain.models.common import CacheStats, Observation


class UserInterface(abc.ABC):
    """Abstract Base Class for user interaction."""

    @abc.abstractmethod
    def display_series(self, series_id: str, observations: List[Observation], **kwargs: Any) -> None:
        """Displays a fetched time series.

        Args:
            series_id: The series identifier used as the table title.
            observations: The observations to render.
            **kwargs: Additional arguments such as ``stale`` or ``from_cache``.
        """
        pass

    @abc.abstractmethod
    def display_search_results(self, query: str, results: List[Dict[str, Any]]) -> None:
        """Displays series matching a catalogue search."""
        pass

    @abc.abstractmethod
    def display_cache_stats(self, stats: CacheStats) -> None:
        """Displays a cache statistics snapshot."""
        pass

    @abc.abstractmethod
    def display_error(self, error_message: str, **kwargs: Any) -> None:
        """Displays an error message to the user.

        Args:
            error_message: The error message string.
            **kwargs: Additional arguments for formatting.
        """
        pass

    @abc.abstractmethod
    def display_warning(self, warning_message: str, **kwargs: Any) -> None:
        """Displays a warning message to the user.

        Args:
            warning_message: The warning message string.
            **kwargs: Additional arguments for formatting.
        """
        pass

    @abc.abstractmethod
    def display_info(self, info_message: str, **kwargs: Any) -> None:
        """Displays an informational message to the user.

        Args:
            info_message: The informational message string.
            **kwargs: Additional arguments for formatting.
        """
        pass
