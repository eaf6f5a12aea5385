"""
MANET routing comparison harness

Runs throughput trials over a simulated ad-hoc network and compares
OLSR, AODV, DSDV and DSR by receive rate and delivered packet counts.
"""

__version__ = "0.13.0"
