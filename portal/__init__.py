"""Church portal realtime notification package.

Ensures the local ``portal`` package takes precedence over similarly named
modules that might be installed in the environment.
"""
