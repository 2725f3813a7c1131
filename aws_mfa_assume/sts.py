"""Assume an IAM role with MFA, probing shorter session durations when needed.

Some roles cap the maximum session length below what the user asked for. STS
rejects such requests with a validation error about DurationSeconds, so the
negotiator walks down a ladder of standard durations until one is accepted.
Any other failure (bad keys, wrong MFA code, access denied) stops immediately.
"""

import logging
from dataclasses import dataclass, field
from datetime import datetime
from typing import Dict, List, Optional

import boto3
from botocore.config import Config
from botocore.exceptions import BotoCoreError, ClientError

from .settings import DEFAULT_SESSION_NAME

logger = logging.getLogger("aws_mfa_assume.sts")

STANDARD_DURATIONS = [43200, 21600, 7200, 3600]

BOTO_CONFIG = Config(user_agent_extra="aws-mfa-assume/1.0")


class NegotiationError(Exception):
    """AssumeRole failed and will not be retried."""


class AllDurationsFailedError(NegotiationError):
    """Every duration in the ladder was rejected."""


@dataclass
class NegotiationRequest:
    region: str
    access_key_id: str
    secret_access_key: str = field(repr=False)
    mfa_arn: str
    role_arn: str
    mfa_code: str = field(repr=False)
    duration: int


@dataclass
class TemporaryCredentials:
    access_key_id: str
    secret_access_key: str = field(repr=False)
    session_token: str = field(repr=False)
    expiration: Optional[datetime] = None

    def as_output(self) -> Dict[str, str]:
        return {
            "AccessKeyId": self.access_key_id,
            "SecretAccessKey": self.secret_access_key,
            "SessionToken": self.session_token,
        }


@dataclass
class NegotiationResult:
    credentials: TemporaryCredentials
    duration: int


def duration_ladder(duration: int) -> List[int]:
    """Durations to try, longest first.

    The requested duration comes first, followed by every standard duration
    shorter than it. A request below the shortest standard value is tried alone.
    """
    ladder = [] if duration in STANDARD_DURATIONS else [duration]
    ladder.extend(d for d in STANDARD_DURATIONS if d <= duration)
    return ladder or [duration]


def is_duration_error(err) -> bool:
    """True if the error says the requested session length was too long.

    Matches on the message text; botocore error codes for this case are not
    consistent (ValidationError, InvalidParameterValue, ...).
    """
    msg = str(err).lower()
    return "durationseconds" in msg or ("duration" in msg and "exceed" in msg)


def create_sts_client(region: str, access_key_id: str, secret_access_key: str):
    session = boto3.Session(
        aws_access_key_id=access_key_id,
        aws_secret_access_key=secret_access_key,
        region_name=region,
    )
    return session.client("sts", config=BOTO_CONFIG)


def assume_role_with_mfa(request: NegotiationRequest, client=None,
                         session_name: str = DEFAULT_SESSION_NAME) -> NegotiationResult:
    """Assume request.role_arn, falling back to shorter durations on duration errors.

    Raises NegotiationError on the first non-duration failure and
    AllDurationsFailedError (carrying the last STS message) when every
    duration in the ladder is rejected.
    """
    if client is None:
        client = create_sts_client(request.region, request.access_key_id, request.secret_access_key)

    ladder = duration_ladder(request.duration)
    logger.debug(f"Assuming role {request.role_arn} with duration ladder {ladder}")

    for i, duration in enumerate(ladder):
        is_last = i == len(ladder) - 1
        try:
            response = client.assume_role(
                RoleArn=request.role_arn,
                RoleSessionName=session_name,
                SerialNumber=request.mfa_arn,
                TokenCode=request.mfa_code,
                DurationSeconds=duration,
            )
        except (ClientError, BotoCoreError) as e:
            if not is_duration_error(e):
                logger.debug(f"AssumeRole failed at {duration}s, not retrying: {e}")
                raise NegotiationError(str(e)) from e
            if is_last:
                raise AllDurationsFailedError(f"All duration attempts failed ({ladder}): {e}") from e
            logger.info(f"Duration {duration}s rejected, trying {ladder[i + 1]}s")
            continue

        creds = response.get("Credentials")
        if not creds:
            raise NegotiationError("AssumeRole response did not include credentials")

        logger.info(f"Assumed role {request.role_arn} for {duration}s")
        return NegotiationResult(
            credentials=TemporaryCredentials(
                access_key_id=creds["AccessKeyId"],
                secret_access_key=creds["SecretAccessKey"],
                session_token=creds["SessionToken"],
                expiration=creds.get("Expiration"),
            ),
            duration=duration,
        )

    raise AllDurationsFailedError("All duration attempts failed")
