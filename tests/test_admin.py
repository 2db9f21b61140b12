from telegram.constants import ChatType

from pump_token_tracker.bot import is_user_admin, parse_setfilter_args


def test_is_user_admin_via_allowlist():
    assert is_user_admin(1, ChatType.GROUP, {1}, None) is True


def test_is_user_admin_private_chat():
    assert is_user_admin(2, ChatType.PRIVATE, set(), {2}) is False


def test_is_user_admin_via_chat_admins():
    assert is_user_admin(3, ChatType.SUPERGROUP, set(), {3}) is True


def test_is_user_admin_missing_admins():
    assert is_user_admin(4, ChatType.GROUP, set(), None) is False


def test_parse_setfilter_range():
    assert parse_setfilter_args(["liquidity", "1000", "5000"]) == {
        "field": "liquidity",
        "min": 1000.0,
        "max": 5000.0,
    }


def test_parse_setfilter_flag():
    assert parse_setfilter_args(["freeze_auth_revoked", "false"]) == {
        "field": "freeze_auth_revoked",
        "expected": False,
    }


def test_parse_setfilter_rejects_bad_input():
    for args in ([], ["volume", "1", "2"], ["liquidity", "abc", "2"], ["mint_auth_revoked", "maybe"]):
        try:
            parse_setfilter_args(args)
        except ValueError:
            continue
        raise AssertionError(f"expected ValueError for {args}")
