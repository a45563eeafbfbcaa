"""Proof verification.

Each call walks a fixed state machine::

    RECEIVED -> STRUCTURE_CHECKED -> CRYPTO_CHECKED -> PREDICATE_CHECKED -> RESULT

A structural failure short-circuits to a ``malformed_proof`` result without
running any cryptographic check. Otherwise the cryptographic checks and the
predicate are both evaluated and reported independently, so a caller can
tell a forged proof apart from a genuine proof whose holder does not meet
the condition. The verifier never raises for a bad proof and never mutates
the proof it is given.

Example:
    >>> verifier = ProofVerifier()
    >>> result = await verifier.verify(proof, predicate=Predicate.age_over(18))
    >>> result.cryptographically_valid, result.predicate_satisfied
    (True, True)
"""

import asyncio
import logging
import time
from typing import Any

from sdcred.backends import ParsedProof, ProtocolBackend, profile_domain
from sdcred.curve import bytes_equal
from sdcred.encoding import IDENTITY_PROFILE_V1, CredentialProfile
from sdcred.errors import MalformedProofError
from sdcred.keys import KeyMaterialStore
from sdcred.models import (
    Predicate,
    Proof,
    VerificationOutcome,
    VerificationResult,
    VerificationStage,
)
from sdcred.predicates import SOURCE_HINT, PredicateEvaluation, evaluate_predicate

logger = logging.getLogger(__name__)


class ProofVerifier:
    """Verifies proofs from either backend.

    Args:
        key_store: Supplies the backend instances. A private store is
            created when omitted; no keys are needed to verify.
        profile: Profile used to name disclosed values. Values are named
            only when the proof was signed under this profile; otherwise
            they are keyed by index as ``#i``.
        trust_outcome_hints: Let the simulated backend fall back on a
            prover-supplied outcome hint when the disclosed values cannot
            decide a predicate. Insecure: the prover chooses the hint.
    """

    def __init__(
        self,
        key_store: KeyMaterialStore | None = None,
        profile: CredentialProfile | None = IDENTITY_PROFILE_V1,
        trust_outcome_hints: bool = False,
    ) -> None:
        self.key_store = key_store or KeyMaterialStore()
        self.profile = profile
        self.trust_outcome_hints = trust_outcome_hints

    async def verify(
        self,
        proof: Proof,
        issuer_public_key: bytes | None = None,
        predicate: Predicate | None = None,
        *,
        expected_nonce: bytes | None = None,
        profile: CredentialProfile | None = None,
    ) -> VerificationResult:
        """Verify *proof* and evaluate *predicate* over its disclosed values.

        Args:
            proof: The proof to verify.
            issuer_public_key: Trusted issuer key. Defaults to the key
                embedded in the proof, which only shows the proof is
                internally consistent.
            predicate: Condition to evaluate. Defaults to ``always``.
            expected_nonce: Nonce the verifier issued for this session.
            profile: Overrides the verifier's profile for naming values.

        Returns:
            The verification result.
        """
        start = time.perf_counter()
        impl = self.key_store.backend(proof.backend)
        predicate = predicate or Predicate.always()
        public_key = issuer_public_key if issuer_public_key is not None else proof.issuer_public_key
        profile = profile or self.profile

        stage = VerificationStage.RECEIVED
        details: dict[str, Any] = {
            "simulation": impl.simulation,
            "predicate": predicate.model_dump(mode="json"),
            "issuer_key_source": "argument" if issuer_public_key is not None else "proof",
            "profile": proof.profile,
        }
        if impl.simulation:
            details["linkable"] = True

        # Structure
        try:
            parsed = await asyncio.to_thread(self._check_structure, impl, proof, public_key)
            disclosed = self._disclosed_values(proof, parsed, profile)
        except MalformedProofError as exc:
            details.update(stage=str(stage), field=exc.field, checks={})
            logger.warning(f"Rejected malformed {proof.backend} proof {proof.id}: {exc}")
            return VerificationResult(
                cryptographically_valid=False,
                predicate_satisfied=False,
                outcome=VerificationOutcome.MALFORMED_PROOF,
                stage=stage,
                backend=proof.backend,
                simulation=impl.simulation,
                details=details,
                errors=[str(exc)],
                verification_time=time.perf_counter() - start,
            )
        stage = VerificationStage.STRUCTURE_CHECKED

        # Cryptography
        errors: list[str] = []
        checks: dict[str, bool] = {}
        if expected_nonce is not None:
            checks["nonce_matches"] = bytes_equal(expected_nonce, proof.nonce)
            if not checks["nonce_matches"]:
                errors.append("Proof nonce does not match the expected nonce")

        outcome_check = await asyncio.to_thread(
            impl.check_proof,
            parsed,
            public_key,
            dict(zip(proof.revealed_indices, proof.revealed_messages)),
            proof.nonce,
            proof.presentation_header,
            domain=profile_domain(proof.profile),
        )
        checks.update(outcome_check.checks)
        errors.extend(outcome_check.errors)
        crypto_valid = outcome_check.valid and checks.get("nonce_matches", True)
        stage = VerificationStage.CRYPTO_CHECKED

        # Predicate
        evaluation = evaluate_predicate(predicate, disclosed)
        if proof.outcome_hint is not None:
            evaluation, hint_ok = self._apply_outcome_hint(
                proof, predicate, evaluation, impl, details
            )
            if not hint_ok:
                checks["outcome_hint_agrees"] = False
                crypto_valid = False
                errors.append("Prover outcome hint contradicts the disclosed values")
        stage = VerificationStage.PREDICATE_CHECKED

        if not crypto_valid:
            outcome = VerificationOutcome.CRYPTOGRAPHIC_VERIFICATION_FAILED
        elif not evaluation.satisfied:
            outcome = VerificationOutcome.PREDICATE_NOT_SATISFIED
        else:
            outcome = VerificationOutcome.ACCEPTED

        details.update(
            checks=checks,
            predicate_reason=evaluation.reason,
            predicate_source=evaluation.source,
            predicate_decided=evaluation.decided,
            attributes_used=evaluation.attributes_used,
        )
        stage = VerificationStage.RESULT
        details["stage"] = str(stage)
        elapsed = time.perf_counter() - start

        message = (
            f"Verified {proof.backend} proof {proof.id}: {outcome} "
            f"(crypto={crypto_valid}, predicate={evaluation.satisfied})"
        )
        if outcome == VerificationOutcome.ACCEPTED:
            logger.info(message)
        else:
            logger.warning(message)
        logger.debug(f"Verification of {proof.id} took {elapsed:.4f}s")

        return VerificationResult(
            cryptographically_valid=crypto_valid,
            predicate_satisfied=evaluation.satisfied,
            disclosed_values=disclosed,
            outcome=outcome,
            stage=stage,
            backend=proof.backend,
            simulation=impl.simulation,
            details=details,
            errors=errors,
            verification_time=elapsed,
        )

    # ------------------------------------------------------------------
    # Stages
    # ------------------------------------------------------------------

    @staticmethod
    def _check_structure(impl: ProtocolBackend, proof: Proof, public_key: bytes) -> ParsedProof:
        if len(proof.revealed_messages) != len(proof.revealed_indices):
            raise MalformedProofError(
                f"{len(proof.revealed_messages)} revealed messages for "
                f"{len(proof.revealed_indices)} revealed indices",
                field="revealed_messages",
            )
        if not proof.nonce:
            raise MalformedProofError("Proof carries an empty nonce", field="nonce")
        return impl.parse_proof(proof.proof_bytes, public_key, proof.revealed_indices)

    @staticmethod
    def _disclosed_values(
        proof: Proof, parsed: ParsedProof, profile: CredentialProfile | None
    ) -> dict[str, str]:
        use_names = (
            profile is not None
            and proof.profile == profile.id
            and len(profile) == parsed.header.message_count
        )
        disclosed: dict[str, str] = {}
        for index, message in zip(proof.revealed_indices, proof.revealed_messages):
            try:
                value = message.decode("utf-8")
            except UnicodeDecodeError:
                raise MalformedProofError(
                    f"Revealed message {index} is not valid UTF-8", field="revealed_messages"
                ) from None
            key = profile.attributes[index] if use_names else f"#{index}"
            disclosed[key] = value
        return disclosed

    def _apply_outcome_hint(
        self,
        proof: Proof,
        predicate: Predicate,
        evaluation: PredicateEvaluation,
        impl: ProtocolBackend,
        details: dict[str, Any],
    ) -> tuple[PredicateEvaluation, bool]:
        """Reconcile a prover outcome hint with the evaluated predicate.

        Returns the (possibly replaced) evaluation and False when the hint
        contradicts what the disclosed values decide on the simulated
        backend.
        """
        hint = proof.outcome_hint
        if hint.predicate != predicate:
            details["outcome_hint_applies"] = False
            return evaluation, True
        details["outcome_hint_applies"] = True

        if evaluation.decided:
            agrees = hint.satisfied == evaluation.satisfied
            details["outcome_hint_agrees"] = agrees
            return evaluation, agrees or not impl.simulation

        if impl.simulation and self.trust_outcome_hints:
            logger.warning(
                f"Using prover-supplied outcome hint for proof {proof.id}; "
                f"this is not verified by the disclosed values"
            )
            return (
                PredicateEvaluation(
                    satisfied=hint.satisfied,
                    reason="Prover-supplied outcome hint",
                    source=SOURCE_HINT,
                ),
                True,
            )
        return evaluation, True
