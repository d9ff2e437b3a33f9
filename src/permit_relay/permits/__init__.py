"""
Permit protocol core: amount codec, typed-message builder, signature codec,
replay fingerprints and registry, validator and executor.

Import from the submodules directly; this package does not re-export them
because the ledger layer depends on ``permits.signatures``.
"""
