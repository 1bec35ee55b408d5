"""Ingestion layer.

Adapters that receive USB state notifications (in-process broadcasts,
MQTT) and turn them into :class:`~gadgetsync.models.UsbStateEvent` values.
"""

__all__: list[str] = []
