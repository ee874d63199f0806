"""Database model type definitions."""

from src.models.design_order import (
    DeliveryStatus,
    DesignDelivery,
    DesignDeliveryFile,
    DesignFeedback,
    DesignOrder,
    DesignOrderStatus,
    FeedbackType,
)

__all__ = [
    "DesignOrder",
    "DesignOrderStatus",
    "DesignDelivery",
    "DesignDeliveryFile",
    "DesignFeedback",
    "DeliveryStatus",
    "FeedbackType",
]
