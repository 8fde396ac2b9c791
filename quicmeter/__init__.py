"""
quicmeter - goodput and latency meter for QUIC streams
"""

__version__ = "0.1.0"
