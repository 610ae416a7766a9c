"""Enigma2 set-top-box bridge: polls receivers over OpenWebif and routes bus commands to them."""

__version__ = "0.1.0"
