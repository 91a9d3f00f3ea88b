"""Uptime monitor: periodic endpoint probing and hourly/daily uptime series."""
