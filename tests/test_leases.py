from app.domains.fulfillment.services.leases import SubmissionLeases
from app.domains.vendors.services.calls import effective_timeout


class Clock:
    def __init__(self) -> None:
        self.now = 1000.0

    def __call__(self) -> float:
        return self.now


def test_second_acquire_is_refused_until_release():
    leases = SubmissionLeases(ttl_s=60)

    token = leases.try_acquire("k")
    assert token
    assert leases.try_acquire("k") is None
    assert leases.is_held("k")

    leases.release("k", token)
    assert not leases.is_held("k")
    assert leases.try_acquire("k")


def test_keys_are_independent():
    leases = SubmissionLeases()
    assert leases.try_acquire("a")
    assert leases.try_acquire("b")


def test_expired_lease_can_be_taken_over():
    clock = Clock()
    leases = SubmissionLeases(ttl_s=10, clock=clock)
    old = leases.try_acquire("k")

    clock.now += 11
    new = leases.try_acquire("k")
    assert new and new != old

    # o dono antigo já não liberta o lease novo
    leases.release("k", old)
    assert leases.is_held("k")


def test_hold_context_manager_releases():
    leases = SubmissionLeases()
    with leases.hold("k") as acquired:
        assert acquired
        with leases.hold("k") as again:
            assert not again
        assert leases.is_held("k")
    assert not leases.is_held("k")


def test_effective_timeout_never_exceeds_ceiling():
    assert effective_timeout(10, 30) == 10
    assert effective_timeout(60, 30) == 30
    assert effective_timeout(None, 30) == 30
    assert effective_timeout(0, 30) == 30
