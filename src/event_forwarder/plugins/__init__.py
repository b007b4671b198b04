"""
Output plugins.

An output plugin receives events that the upstream runtime has routed to it
and delivers them to an external system.

Import plugin classes and utilities from:
- event_forwarder.plugins.shared.base - Output plugin interface
- event_forwarder.plugins.registry - Output lookup by name
- event_forwarder.plugins.rollbar - Rollbar output
"""
