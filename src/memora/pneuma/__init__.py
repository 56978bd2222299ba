"""
Pneuma - On-chain interaction layer for Memora.

Provides the async JSON-RPC transport, transaction assembly, compute budget
estimation and the simulate-then-finalize pipeline for the X1 memo-token
programs.

Uses httpx + solders; no full Solana SDK.
"""
