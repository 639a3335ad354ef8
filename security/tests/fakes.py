class FakeClock:
    def __init__(self, now=1_700_000_000):
        self.now = now

    def __call__(self):
        return self.now


class FakeCounterStore:
    """Redis INCR/EXPIRE/TTL semantics over a dict, driven by a FakeClock."""

    def __init__(self, clock):
        self.clock = clock
        self.counts = {}
        self.expiry = {}

    def hit(self, key, window):
        now = self.clock()
        if key in self.expiry and self.expiry[key] <= now:
            del self.counts[key]
            del self.expiry[key]
        self.counts[key] = self.counts.get(key, 0) + 1
        if self.counts[key] == 1:
            self.expiry[key] = now + window
        return self.counts[key], int(self.expiry[key] - now)


class BrokenCounterStore:
    def hit(self, key, window):
        raise ConnectionError('redis down')
