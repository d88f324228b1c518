"""
Scribeline - transcript timeline engine for live speech recognition.

Turns a restart-prone stream of revisable recognizer segments into a
canonical timeline: merge → stability classification → caption grouping →
subtitle export, with an append-only audit trail of every mutation.
"""

__version__ = "0.1.0"
