class MockRedisClient:
    def __init__(self):
        self.store = {}
        self.expirations = {}

    def get(self, k):
        return self.store.get(k)

    def set(self, k, v, ex=None):
        self.store[k] = v
        if ex:
            self.expirations[k] = ex

    def delete(self, k):
        self.store.pop(k, None)
        self.expirations.pop(k, None)

    def ping(self):
        return True

    def flushall(self):
        self.store.clear()
        self.expirations.clear()


class BrokenRedisClient(MockRedisClient):
    def get(self, k):
        raise ConnectionError('redis down')

    def set(self, k, v, ex=None):
        raise ConnectionError('redis down')

    def ping(self):
        raise ConnectionError('redis down')
