from eventstream.processor.event_processor import EventProcessor, resolve_external_id
from eventstream.processor.metrics import ProcessingMetrics

__all__ = ["EventProcessor", "ProcessingMetrics", "resolve_external_id"]
