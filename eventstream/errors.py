# ==============================================================================
# Pipeline Errors
# ==============================================================================
"""
Exception taxonomy for the event pipeline.

- TransportError: append/read/ack failures against the stream. Surfaced to
  the caller, never swallowed.
- HandlerError: any failure inside the registered batch handler. Caught at
  the consumer loop boundary; the batch stays unacknowledged.
- EnrichmentError: lookup failures inside the enrichment stage. Converted
  to an empty result there and never propagated.
- PersistenceError: batch insert/upsert failures. Propagates up and becomes
  a HandlerError at the consumer.
"""


class PipelineError(Exception):
    """Base class for all pipeline errors."""


class TransportError(PipelineError):
    """The queue transport failed to append, read, or acknowledge."""


class HandlerError(PipelineError):
    """The batch handler failed; the batch is left pending for redelivery."""


class EnrichmentError(PipelineError):
    """A geo or device lookup failed."""


class PersistenceError(PipelineError):
    """The event or session store failed to write."""
