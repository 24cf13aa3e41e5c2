"""
Fuel Kernel - MRN lot ledger and consistency engine

Tracks aviation fuel held in storage tanks by customs Movement Reference
Number (MRN):
- Per-tank ledger of MRN lots
- Deterministic FIFO allocation of outgoing draws
- Consistency checking of physical readings against the lot ledger
- Supervised, audited corrections behind single-use override tokens
"""

__version__ = "0.1.0"
