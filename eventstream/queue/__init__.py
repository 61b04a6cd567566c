from eventstream.queue.consumer import ConsumerState, EventConsumer, EventHandler
from eventstream.queue.producer import EventProducer

__all__ = ["ConsumerState", "EventConsumer", "EventHandler", "EventProducer"]
