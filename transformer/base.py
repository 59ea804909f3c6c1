"""Exporter interface for projected lessons."""

from abc import ABC, abstractmethod
from datetime import date
from typing import Any

from lessons.models import ProjectedOccurrence


class BaseTransformer(ABC):
    """Turns the projector's output into a file another calendar can read.

    Subclasses build their format in ``transform`` and write it in
    ``save``; ``export`` runs both for the CLI.
    """

    @abstractmethod
    def transform(
        self,
        occurrences: list[ProjectedOccurrence],
        start_date: date,
        end_date: date
    ) -> Any:
        """Build the exported document.

        Args:
            occurrences: Lessons returned by the projector, already sorted.
            start_date: First day of the exported range.
            end_date: Last day of the exported range.

        Returns:
            The document in the subclass's format.
        """

    @abstractmethod
    def save(self, output_path: str) -> None:
        """Write the document built by the last ``transform`` call."""

    def export(
        self,
        occurrences: list[ProjectedOccurrence],
        start_date: date,
        end_date: date,
        output_path: str,
    ) -> Any:
        """Transform ``occurrences`` and write them to ``output_path``."""
        document = self.transform(occurrences, start_date, end_date)
        self.save(output_path)
        return document
