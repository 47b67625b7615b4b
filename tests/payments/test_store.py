from app.payments.enums import TransactionState
from app.payments.store import TransactionStore


def _create(store, tx_id="pm-1", order_id="o1", create_time=1000):
    return store.create(
        transaction_id=tx_id,
        time=create_time,
        amount=500000,
        account={"order_id": order_id},
        create_time=create_time,
    )


def test_create_sets_created_state_and_order_id(db):
    store = TransactionStore(db)
    _create(store)
    store.commit()

    stored = store.get("pm-1")
    assert stored.state == TransactionState.CREATED
    assert stored.order_id == "o1"
    assert stored.perform_time == 0
    assert stored.cancel_time == 0


def test_duplicate_insert_returns_existing_row(db):
    store = TransactionStore(db)
    _create(store, create_time=1000)
    store.commit()

    again = _create(store, create_time=2000)
    assert again.id == "pm-1"
    assert again.create_time == 1000


def test_find_active_ignores_cancelled(db):
    store = TransactionStore(db)
    _create(store, "pm-1")
    cancelled = _create(store, "pm-2")
    cancelled.state = int(TransactionState.CANCELLED)
    store.save(cancelled)
    store.commit()

    assert [tx.id for tx in store.find_active_for_order("o1")] == ["pm-1"]


def test_list_created_between_is_inclusive_and_ordered(db):
    store = TransactionStore(db)
    for tx_id, t in (("c", 3000), ("a", 1000), ("b", 2000), ("d", 4000)):
        _create(store, tx_id, order_id=tx_id, create_time=t)
    store.commit()

    assert [tx.id for tx in store.list_created_between(1000, 3000)] == ["a", "b", "c"]
    assert store.list_created_between(5000, 6000) == []
