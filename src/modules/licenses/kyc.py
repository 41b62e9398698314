"""Store KYC status derived from the statuses of its licenses."""

from collections.abc import Iterable

from src.models.enums import KYCStatus, LicenseStatus


def determine_store_kyc_status(statuses: Iterable[LicenseStatus]) -> KYCStatus:
    """Any verified license verifies the store; otherwise expired beats pending
    unless a rejection is present."""
    has_expired = False
    has_rejected = False
    for status in statuses:
        if status == LicenseStatus.VERIFIED:
            return KYCStatus.VERIFIED
        if status == LicenseStatus.EXPIRED:
            has_expired = True
        elif status == LicenseStatus.REJECTED:
            has_rejected = True
    if has_expired and not has_rejected:
        return KYCStatus.EXPIRED
    if has_rejected:
        return KYCStatus.REJECTED
    return KYCStatus.PENDING_VERIFICATION
