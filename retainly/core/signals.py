"""
Django signals for engine events.

Receivers connect in their own AppConfig.ready(). The signal is sent by
SignalEventSink only after the surrounding transaction commits, so a
receiver never sees a state change that was rolled back.
"""

from django.dispatch import Signal

# Provides: name (str), payload (dict)
engine_event = Signal()
