from .node import Enigma2Node

__all__ = ["Enigma2Node"]
