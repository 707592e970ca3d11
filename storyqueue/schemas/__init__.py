"""Queue message schemas"""

from .envelope import JobPayload, Envelope, ENVELOPE_VERSION

__all__ = ['JobPayload', 'Envelope', 'ENVELOPE_VERSION']
