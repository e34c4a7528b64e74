from checkout_core.storage import ClientStorage


def test_state_survives_reload(tmp_path):
    path = str(tmp_path / "state.json")
    storage = ClientStorage(path)
    storage.basket_id = "b-1"
    storage.token = "t-1"

    reloaded = ClientStorage(path)

    assert reloaded.basket_id == "b-1"
    assert reloaded.token == "t-1"


def test_clearing_removes_keys(tmp_path):
    path = str(tmp_path / "state.json")
    storage = ClientStorage(path)
    storage.basket_id = "b-1"
    storage.basket_id = None

    assert ClientStorage(path).basket_id is None


def test_corrupt_file_starts_empty(tmp_path):
    path = tmp_path / "state.json"
    path.write_text("{not json")

    storage = ClientStorage(str(path))

    assert storage.basket_id is None
    storage.token = "t-1"
    assert ClientStorage(str(path)).token == "t-1"


def test_unrecorded_payments_are_appended():
    storage = ClientStorage()
    storage.record_unrecorded_payment({"basketId": "b-1", "paymentIntentId": "pi_1"})
    storage.record_unrecorded_payment({"basketId": "b-2", "paymentIntentId": "pi_2"})

    entries = storage.unrecorded_payments()

    assert [e["paymentIntentId"] for e in entries] == ["pi_1", "pi_2"]
    assert "recordedAt" in entries[0]
