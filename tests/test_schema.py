import pytest

from tests.helpers import clone_portfolio, write_portfolio
from pfsim.instrument import Instrument
from pfsim.schema import (
    AccountRecord,
    PortfolioFile,
    SchemaError,
    build_portfolio,
    dump_portfolio,
    load_portfolio,
    records_from_dicts,
    snapshot_accounts,
)
from pfsim.transfer import Frequency


def test_load_portfolio_rejects_non_object_root(tmp_path):
    path = tmp_path / "bad.json"
    path.write_text("[]", encoding="utf-8")

    with pytest.raises(SchemaError, match="portfolio: root must be a JSON object"):
        load_portfolio(path)


def test_load_portfolio_requires_accounts(tmp_path, sample_portfolio_dict):
    data = clone_portfolio(sample_portfolio_dict)
    del data["accounts"]
    path = write_portfolio(tmp_path, data)

    with pytest.raises(SchemaError, match=r"portfolio\.accounts: missing required field"):
        load_portfolio(path)


def test_load_portfolio_requires_account_instrument(tmp_path, sample_portfolio_dict):
    data = clone_portfolio(sample_portfolio_dict)
    del data["accounts"][0]["instrument"]
    path = write_portfolio(tmp_path, data)

    with pytest.raises(SchemaError, match=r"accounts\[0\]\.instrument: missing required field"):
        load_portfolio(path)


def test_load_portfolio_rejects_wrong_collection_types(tmp_path, sample_portfolio_dict):
    data = clone_portfolio(sample_portfolio_dict)
    data["accounts"] = {}
    path = write_portfolio(tmp_path, data)

    with pytest.raises(SchemaError, match=r"accounts: expected array"):
        load_portfolio(path)


def test_load_portfolio_rejects_invalid_nested_object_type(tmp_path, sample_portfolio_dict):
    data = clone_portfolio(sample_portfolio_dict)
    data["accounts"][2]["transfers"][0] = "bad"
    path = write_portfolio(tmp_path, data)

    with pytest.raises(SchemaError, match=r"accounts\[2\]\.transfers\[0\]: expected object"):
        load_portfolio(path)


@pytest.mark.parametrize("value", ["lots", True, None])
def test_load_portfolio_rejects_non_numeric_amounts(tmp_path, sample_portfolio_dict, value):
    data = clone_portfolio(sample_portfolio_dict)
    data["accounts"][0]["start_value"] = value
    path = write_portfolio(tmp_path, data)

    with pytest.raises(SchemaError, match=r"accounts\[0\]\.start_value: expected number"):
        load_portfolio(path)


def test_missing_settings_fall_back_to_defaults(tmp_path):
    path = write_portfolio(tmp_path, {"accounts": []})
    portfolio_file = load_portfolio(path)
    assert portfolio_file.settings.filing_status == "single"
    assert portfolio_file.settings.simulation.mode == "deterministic"
    assert portfolio_file.settings.simulation.historical.start_year == 1970
    assert portfolio_file.accounts == []


def test_sample_portfolio_loads(sample_portfolio_path):
    portfolio_file = load_portfolio(sample_portfolio_path)
    assert portfolio_file.settings.filing_status == "married_filing_jointly"
    assert len(portfolio_file.accounts) == 10
    salary = next(record for record in portfolio_file.accounts if record.name == "Salary")
    assert [transfer.to for transfer in salary.transfers] == ["401k", "Roth IRA", "Brokerage"]
    assert salary.transfers[0].close_percent == 0.0


def test_dump_and_reload_preserves_content(tmp_path, sample_portfolio_path):
    original = load_portfolio(sample_portfolio_path)
    path = tmp_path / "copy.json"
    dump_portfolio(original, path)
    assert load_portfolio(path) == original


def test_to_account_builds_live_account(sample_portfolio_path):
    record = load_portfolio(sample_portfolio_path).accounts[0]
    account = record.to_account()
    assert account.instrument is Instrument.HOME
    assert str(account.start) == "2026-01"
    assert account.annual_tax_rate.rate == pytest.approx(0.011)
    assert account.transfers[0].frequency is Frequency.MONTHLY
    assert AccountRecord.from_account(account) == record


@pytest.mark.parametrize(
    "field,value",
    [("instrument", "crypto"), ("start", "January"), ("finish", "2026-13")],
)
def test_to_account_rejects_bad_values(field, value):
    data = {"instrument": "cash", "name": "Cash", "start": "2026-01", "finish": "2026-12", field: value}
    record = records_from_dicts([data])[0]
    with pytest.raises(ValueError):
        record.to_account()


def test_to_account_rejects_unknown_frequency():
    data = {
        "instrument": "cash",
        "name": "Cash",
        "start": "2026-01",
        "finish": "2026-12",
        "transfers": [{"to": "Other", "frequency": "daily"}],
    }
    with pytest.raises(ValueError):
        records_from_dicts([data])[0].to_account()


def test_build_portfolio_and_snapshot_round_trip(sample_portfolio_path):
    portfolio_file = load_portfolio(sample_portfolio_path)
    portfolio = build_portfolio(portfolio_file.accounts, portfolio_file.settings.to_settings())
    assert portfolio.tax_table.filing_status == "married_filing_jointly"
    snapshot = snapshot_accounts(portfolio.accounts)
    assert {entry["name"] for entry in snapshot} == {record.name for record in portfolio_file.accounts}
    rebuilt = PortfolioFile(settings=portfolio_file.settings, accounts=records_from_dicts(snapshot))
    assert sorted(rebuilt.accounts, key=lambda r: r.name) == sorted(portfolio_file.accounts, key=lambda r: r.name)


def test_records_from_dicts_requires_a_list():
    with pytest.raises(SchemaError, match="accounts: expected array"):
        records_from_dicts({"name": "x"})


def test_to_account_reads_half_yearly_frequency():
    data = {
        "instrument": "salary",
        "name": "Salary",
        "start": "2026-01",
        "finish": "2026-12",
        "transfers": [{"to": "Cash", "frequency": "half-yearly", "recurring_percent": 10}],
    }
    account = records_from_dicts([data])[0].to_account()
    assert account.transfers[0].frequency is Frequency.HALF_YEARLY
    assert AccountRecord.from_account(account).transfers[0].frequency == "half-yearly"
