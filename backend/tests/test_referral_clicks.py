"""
Tests for referral click recording.
"""
from refledger.referral.clicks import ReferralClickRecorder
from refledger.referral.codes import ReferralCodeService
from refledger.referral.models import ReferralClick, ReferralCode


def test_known_code_resolves_referrer(database, make_account):
    referrer = make_account(code="ABC123")

    click = ReferralClickRecorder(database).record("abc123", ip="1.2.3.4", user_agent="pytest")

    assert click.referrer_account_id == referrer
    assert click.ref_code == "ABC123"
    with database.session() as session:
        assert session.query(ReferralCode).filter(ReferralCode.account_id == referrer).one().clicks == 1


def test_unknown_code_is_logged_without_referrer(database, make_account):
    make_account(code="ABC123")

    click = ReferralClickRecorder(database).record("NOPE99", ip="1.2.3.4")

    assert click.referrer_account_id is None
    with database.session() as session:
        assert session.query(ReferralClick).count() == 1


def test_rotated_code_no_longer_resolves(database, make_account):
    referrer = make_account(code="ABC123")
    ReferralCodeService(database).rotate(referrer)

    click = ReferralClickRecorder(database).record("ABC123")

    assert click.referrer_account_id is None
