import threading

from exnebula.registry import ConnectionRegistry, Identity

ALICE = Identity(display_name="Alice", user_id="1")
BOB = Identity(display_name="Bob", user_id="2")


def test_lookup_unbound_is_none() -> None:
    reg = ConnectionRegistry()
    assert reg.lookup("conn-a") is None
    assert "conn-a" not in reg


def test_bind_then_lookup() -> None:
    reg = ConnectionRegistry()
    assert reg.bind("conn-a", ALICE) is None
    assert reg.lookup("conn-a") == ALICE
    assert len(reg) == 1


def test_rebind_overwrites_and_returns_previous() -> None:
    reg = ConnectionRegistry()
    reg.bind("conn-a", ALICE)
    assert reg.bind("conn-a", BOB) == ALICE
    assert reg.lookup("conn-a") == BOB
    assert len(reg) == 1


def test_remove_is_idempotent() -> None:
    reg = ConnectionRegistry()
    reg.bind("conn-a", ALICE)
    assert reg.remove("conn-a") == ALICE
    assert reg.remove("conn-a") is None
    assert reg.remove("never-bound") is None
    assert reg.lookup("conn-a") is None


def test_for_each_visits_every_bound_pair() -> None:
    reg = ConnectionRegistry()
    reg.bind("a", ALICE)
    reg.bind("b", BOB)

    seen = []
    count = reg.for_each(lambda conn, ident: seen.append((conn, ident.display_name)))

    assert count == 2
    assert sorted(seen) == [("a", "Alice"), ("b", "Bob")]


def test_for_each_skips_entries_removed_mid_iteration() -> None:
    reg = ConnectionRegistry()
    reg.bind("a", ALICE)
    reg.bind("b", BOB)
    reg.bind("c", Identity(display_name="Carol", user_id="3"))

    seen = []

    def visit(conn, _ident) -> None:
        seen.append(conn)
        if conn == "a":
            reg.remove("c")

    count = reg.for_each(visit)

    assert seen == ["a", "b"]
    assert count == 2


def test_for_each_tolerates_binds_during_iteration() -> None:
    reg = ConnectionRegistry()
    reg.bind("a", ALICE)

    seen = []

    def visit(conn, _ident) -> None:
        seen.append(conn)
        reg.bind("late", BOB)

    reg.for_each(visit)

    assert seen == ["a"]
    assert reg.lookup("late") == BOB


def test_independent_registries_do_not_share_state() -> None:
    one = ConnectionRegistry()
    two = ConnectionRegistry()
    one.bind("a", ALICE)
    assert two.lookup("a") is None


def test_clear_returns_bound_connections() -> None:
    reg = ConnectionRegistry()
    reg.bind("a", ALICE)
    reg.bind("b", BOB)
    assert sorted(reg.clear()) == ["a", "b"]
    assert len(reg) == 0


def test_for_each_skips_entries_removed_from_another_thread() -> None:
    reg = ConnectionRegistry()
    reg.bind("a", ALICE)
    reg.bind("b", BOB)

    seen = []

    def visit(conn, _ident) -> None:
        seen.append(conn)
        if len(seen) == 1:
            other = "b" if conn == "a" else "a"
            t = threading.Thread(target=reg.remove, args=(other,))
            t.start()
            t.join()

    assert reg.for_each(visit) == 1
    assert len(seen) == 1


def test_concurrent_bind_remove_and_for_each() -> None:
    reg = ConnectionRegistry()
    done = threading.Event()
    errors: list[BaseException] = []
    bound: set[tuple[str, Identity]] = set()
    bound_lock = threading.Lock()
    visits: list[tuple[str, Identity]] = []

    def churn(worker: int) -> None:
        try:
            for i in range(2000):
                conn = f"w{worker}-{i % 8}"
                ident = Identity(display_name=f"user{worker}", user_id=f"{worker}-{i}")
                with bound_lock:
                    bound.add((conn, ident))
                reg.bind(conn, ident)
                if i % 3 == 0:
                    reg.remove(conn)
        except BaseException as e:
            errors.append(e)

    def broadcast() -> None:
        try:
            while not done.is_set():
                reg.for_each(lambda conn, ident: visits.append((conn, ident)))
            reg.for_each(lambda conn, ident: visits.append((conn, ident)))
        except BaseException as e:
            errors.append(e)

    reader = threading.Thread(target=broadcast)
    writers = [threading.Thread(target=churn, args=(n,)) for n in range(4)]
    reader.start()
    for t in writers:
        t.start()
    for t in writers:
        t.join()
    done.set()
    reader.join()

    assert errors == []
    assert visits
    # Every visited pair was a real binding at some point.
    assert set(visits) <= bound
    # Each worker's last write (i=1999) was a bind that was not removed.
    for worker in range(4):
        assert reg.lookup(f"w{worker}-7") == Identity(
            display_name=f"user{worker}", user_id=f"{worker}-1999"
        )
