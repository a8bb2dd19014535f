"""Human verification through the reCAPTCHA siteverify API."""

import logging

from pydantic import ValidationError

from forkcast.config import settings
from forkcast.errors import UpstreamServiceError, VerificationFailedError
from forkcast.features import get_feature_flags
from forkcast.schemas import VerificationResult
from forkcast.services.providers import ProviderClient, provider_client

logger = logging.getLogger(__name__)


class RecaptchaVerifier:
    """Checks client tokens for success, action and minimum score."""

    def __init__(self, providers: ProviderClient | None = None):
        self.providers = providers or provider_client

    async def verify(
        self,
        token: str | None,
        expected_action: str | None = None,
        min_score: float | None = None,
    ) -> VerificationResult:
        """Verify a token. Never raises; failures come back as success=False."""
        if not get_feature_flags().recaptcha:
            return VerificationResult(success=True)

        if not token:
            return VerificationResult(success=False, errorCodes=["missing-input-response"])

        if not settings.recaptcha_secret_key:
            logger.error("RECAPTCHA_SECRET_KEY is not set")
            return VerificationResult(success=False, errorCodes=["missing-input-secret"])

        threshold = settings.recaptcha_min_score if min_score is None else min_score

        try:
            data = await self.providers.post_json(
                "recaptcha",
                settings.recaptcha_verify_url,
                data={"secret": settings.recaptcha_secret_key, "response": token},
            )
        except UpstreamServiceError as e:
            logger.error(f"Error verifying reCAPTCHA token: {e}")
            return VerificationResult(success=False, errorCodes=["verification-failed"])

        if not isinstance(data, dict):
            logger.error(f"Unexpected reCAPTCHA response: {data!r}")
            return VerificationResult(success=False, errorCodes=["verification-failed"])

        try:
            result = VerificationResult(
                success=bool(data.get("success")),
                score=data.get("score"),
                action=data.get("action"),
                challengeTimestamp=data.get("challenge_ts"),
                hostname=data.get("hostname"),
                errorCodes=data.get("error-codes"),
            )
        except ValidationError as e:
            logger.error(f"Malformed reCAPTCHA response: {e}")
            return VerificationResult(success=False, errorCodes=["verification-failed"])

        if result.success and result.score is not None and result.score < threshold:
            return result.model_copy(update={"success": False, "errorCodes": ["low-score"]})

        if result.success and expected_action and result.action != expected_action:
            return result.model_copy(update={"success": False, "errorCodes": ["action-mismatch"]})

        return result

    async def require(
        self,
        token: str | None,
        expected_action: str,
        min_score: float | None = None,
    ) -> VerificationResult:
        """Verify a token, raising VerificationFailedError when it does not pass."""
        if not get_feature_flags().recaptcha:
            return VerificationResult(success=True)

        if not token:
            raise VerificationFailedError("reCAPTCHA verification required")

        result = await self.verify(token, expected_action, min_score)
        if not result.success:
            logger.error(f"reCAPTCHA verification failed: {result.errorCodes}")
            raise VerificationFailedError(
                "reCAPTCHA verification failed",
                details=result.model_dump(exclude_none=True),
            )

        logger.info(f"reCAPTCHA score for {expected_action}: {result.score}")
        return result


recaptcha_verifier = RecaptchaVerifier()
