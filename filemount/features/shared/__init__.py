from .messages import DEFAULT_MESSAGES, MessageResolver, default_resolver

__all__ = [
    "DEFAULT_MESSAGES",
    "MessageResolver",
    "default_resolver",
]
