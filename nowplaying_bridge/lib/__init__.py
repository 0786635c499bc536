"""Shared plumbing for both ends of the bridge: event model, wire codec,
change detection, progress ticker, client, listener, config."""
