"""
Engine services: cursor store, window matcher, debounce aggregator, preference filter,
dispatch client and delivery log. Trigger drivers live in services.triggers and compose these.
"""
