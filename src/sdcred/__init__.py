"""sdcred - Selective-disclosure credentials and proofs.

sdcred issues anonymous credentials over an ordered vector of identity
attributes, derives proofs that reveal only a chosen subset of them, and
verifies those proofs both cryptographically and against domain predicates
such as "age over 18".

Key modules:

- :mod:`sdcred.keys` - Per-issuer key material for both backends
- :mod:`sdcred.encoding` - Canonical attribute encoding and versioned profiles
- :mod:`sdcred.issuer` - Credential issuance
- :mod:`sdcred.prover` - Selective-disclosure proof generation
- :mod:`sdcred.verifier` - Proof verification and predicate evaluation
- :mod:`sdcred.backends` - BBS+ pairing backend and simulated Coconut backend
- :mod:`sdcred.engine` - Request/response facade used by outer layers
"""

__version__ = "0.2.0"
