from __future__ import annotations

import pytest

from curvance_sdk.domain import (
    AdapterKind,
    CallAction,
    Submission,
    TokenInfo,
    TokenKind,
    parse_adapter,
)

TOKEN = "0x1111111111111111111111111111111111111111"
ADAPTOR = "0x3333333333333333333333333333333333333333"


def reader_struct(**overrides):
    data = {
        "address": TOKEN,
        "symbol": "cWMON",
        "decimals": 18,
        "asset": {"address": "0x2222222222222222222222222222222222222222", "symbol": "WMON", "decimals": 18},
        "adapters": [2, 0],
        "isBorrowable": False,
        "assetPrice": "2000000000000000000",
        "totalSupply": 10,
        "totalAssets": 20,
        "collRatio": 7500,
    }
    data.update(overrides)
    return data


class TestParseAdapter:
    def test_known_ids(self):
        assert parse_adapter(1) is AdapterKind.CHAINLINK_PULL
        assert parse_adapter(2) is AdapterKind.PUSH_SIGNED
        assert parse_adapter(3) is AdapterKind.PUSH_SIGNED_LEGACY
        assert parse_adapter(1337) is AdapterKind.MOCK

    def test_zero_is_empty_slot(self):
        assert parse_adapter(0) is None

    def test_unknown_id_rejected(self):
        with pytest.raises(ValueError, match="Unknown oracle adapter id: 7"):
            parse_adapter(7)

    def test_only_push_signed_requires_update(self):
        assert [k for k in AdapterKind if k.requires_price_update] == [AdapterKind.PUSH_SIGNED]


class TestTokenInfo:
    def test_from_reader(self):
        info = TokenInfo.from_reader(reader_struct())

        assert info.adapters == (AdapterKind.PUSH_SIGNED, None)
        assert info.kind is TokenKind.SIMPLE
        assert info.asset.symbol == "WMON"
        assert info.asset_price == 2 * 10**18
        assert info.coll_ratio == 7500
        assert info.user_debt == 0

    def test_borrowable_flag(self):
        info = TokenInfo.from_reader(reader_struct(isBorrowable=True))
        assert info.is_borrowable

    def test_share_conversions(self):
        info = TokenInfo.from_reader(reader_struct())
        assert info.convert_to_shares(4) == 2
        assert info.convert_to_assets(2) == 4

    def test_empty_market_converts_one_to_one(self):
        info = TokenInfo.from_reader(reader_struct(totalSupply=0, totalAssets=0))
        assert info.convert_to_shares(5) == 5
        assert info.convert_to_assets(5) == 5

    def test_two_adapter_slots_required(self):
        info = TokenInfo.from_reader(reader_struct())
        with pytest.raises(ValueError, match="two adapter slots"):
            TokenInfo(
                address=info.address,
                symbol=info.symbol,
                decimals=18,
                asset=info.asset,
                adapters=(AdapterKind.MOCK,),
            )


class TestSubmission:
    def test_price_update_must_come_first(self):
        with pytest.raises(ValueError, match="precede"):
            Submission(
                to=TOKEN,
                data=b"",
                actions=(CallAction(TOKEN, False, b"a"), CallAction(ADAPTOR, True, b"p")),
                is_multicall=True,
            )

    def test_price_refreshed_batch_has_one_action(self):
        with pytest.raises(ValueError, match="exactly one action"):
            Submission(
                to=TOKEN,
                data=b"",
                actions=(
                    CallAction(ADAPTOR, True, b"p"),
                    CallAction(TOKEN, False, b"a"),
                    CallAction(TOKEN, False, b"b"),
                ),
                is_multicall=True,
            )

    def test_plain_batches_allowed(self):
        submission = Submission(
            to=TOKEN,
            data=b"",
            actions=(CallAction(TOKEN, False, b"a"), CallAction(TOKEN, False, b"b")),
            is_multicall=True,
        )
        assert submission.price_updates == ()
