"""
Codex - Binary formats for Memora.

Memo payload records, the BurnMemo envelope, and parsers for the
program-owned accounts.
"""
