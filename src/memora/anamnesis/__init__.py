"""
Anamnesis - Reading Memora state back from the ledger.

Bulk statistics over numbered entities and memo history replay.
"""
