"""Base delivery interface."""

from __future__ import annotations

from dataclasses import dataclass


@dataclass(frozen=True)
class DeliveryRequest:
    """Where and how to send the finished document (e.g. an e-mail)."""

    recipient: str
    subject: str
    body: str = ""


class Deliverer:
    """Abstract interface for delivery backends.

    Backends raise :class:`~survey_doc_gen.errors.DeliveryFailed` when the
    hand-off does not go through.
    """

    def deliver(self, request: DeliveryRequest, attachment: bytes, filename: str) -> None:
        raise NotImplementedError
