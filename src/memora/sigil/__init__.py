"""
Sigil - Addresses, discriminators and signing for Memora.

Derives program addresses and instruction selectors the way the on-chain
programs do, and defines the ``Signer`` collaborator used by the
transaction pipeline.
"""
