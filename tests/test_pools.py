import threading

from statelessdb.pools import MemoryPool, MemoryPoolManager


def test_get_creates_when_empty():
    created = []

    def factory():
        item = []
        created.append(item)
        return item

    pool = MemoryPool(factory)
    first = pool.get()
    second = pool.get()
    assert first is created[0]
    assert second is created[1]
    assert len(created) == 2


def test_put_then_get_reuses_object():
    pool = MemoryPool(list)
    item = pool.get()
    item.append("x")
    pool.put(item)
    assert pool.get() is item


def test_reuse_before_create():
    calls = []
    pool = MemoryPool(lambda: calls.append(1) or object())
    item = pool.get()
    pool.put(item)
    pool.get()
    assert len(calls) == 1


def test_manager_returns_same_pool_for_size():
    manager = MemoryPoolManager(lambda size: (lambda: bytearray(size)))
    assert manager.pool(64) is manager.pool(64)
    assert manager.pool(64) is not manager.pool(128)


def test_manager_factory_receives_size():
    manager = MemoryPoolManager(lambda size: (lambda: [0] * size))
    assert len(manager.pool(16).get()) == 16
    assert len(manager.pool(3).get()) == 3


def test_manager_concurrent_access_yields_one_pool():
    manager = MemoryPoolManager(lambda size: (lambda: bytearray(size)))
    results = []
    lock = threading.Lock()

    def fetch():
        pool = manager.pool(32)
        with lock:
            results.append(pool)

    threads = [threading.Thread(target=fetch) for _ in range(20)]
    for thread in threads:
        thread.start()
    for thread in threads:
        thread.join()

    expected = manager.pool(32)
    assert len(results) == 20
    assert sum(1 for pool in results if pool is expected) == 20
    assert expected.get() == bytearray(32)