"""Hand-off of finished documents to an external delivery collaborator."""

from .base import Deliverer, DeliveryRequest

__all__ = ["Deliverer", "DeliveryRequest"]
