import asyncio

from listing_ingest.adapters.parsers.rate_gate import RateGate


class FakeClock:
    def __init__(self):
        self.now = 100.0
        self.sleeps: list[float] = []

    def __call__(self) -> float:
        return self.now

    async def sleep(self, s: float) -> None:
        self.sleeps.append(s)


async def test_first_request_goes_immediately():
    clock = FakeClock()
    gate = RateGate(2.0, clock=clock, sleep=clock.sleep)
    await gate.wait()
    assert clock.sleeps == []


async def test_concurrent_callers_get_distinct_slots():
    clock = FakeClock()
    gate = RateGate(2.0, clock=clock, sleep=clock.sleep)

    delays = await asyncio.gather(*(gate.reserve() for _ in range(4)))
    assert sorted(delays) == [0.0, 2.0, 4.0, 6.0]


async def test_slot_frees_up_as_time_passes():
    clock = FakeClock()
    gate = RateGate(2.0, clock=clock, sleep=clock.sleep)

    await gate.wait()
    clock.now += 1.5
    await gate.wait()
    assert clock.sleeps == [0.5]

    clock.now += 10
    await gate.wait()
    assert clock.sleeps == [0.5]


async def test_zero_interval_never_sleeps():
    clock = FakeClock()
    gate = RateGate(0, clock=clock, sleep=clock.sleep)
    for _ in range(3):
        await gate.wait()
    assert clock.sleeps == []
