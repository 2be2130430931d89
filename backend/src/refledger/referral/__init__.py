"""Referral codes, click logging and write-once attachment."""

from refledger.referral.attachment import (
    AttachmentResult,
    AttachOutcome,
    ReferralAttachmentService,
    attachment_service,
)
from refledger.referral.clicks import ReferralClickRecorder, click_recorder
from refledger.referral.codes import ReferralCodeService, referral_codes
from refledger.referral.models import ReferralClick, ReferralCode

__all__ = [
    "AttachmentResult",
    "AttachOutcome",
    "ReferralAttachmentService",
    "ReferralClick",
    "ReferralClickRecorder",
    "ReferralCode",
    "ReferralCodeService",
    "attachment_service",
    "click_recorder",
    "referral_codes",
]
