"""
Cartographer HTTP seed — serves signed snapshots of reachable peers so new
nodes can bootstrap without trusting DNS.
"""

__version__ = "0.1.0"
