"""Delivery mechanisms: HTTP and websocket API."""
