import cachetools
from sqlhelper.cache import Cache, cached_by_type


def test_get_cache_kinds():
    manager = Cache.get_instance()

    assert isinstance(manager.get_cache('test_lru'), cachetools.LRUCache)
    assert isinstance(manager.get_cache('test_ttl', ttl=60), cachetools.TTLCache)
    assert manager.get_cache('test_lru') is manager.get_cache('test_lru')


def test_cached_by_type_calls_once_per_type():
    calls = []

    @cached_by_type('test_by_type')
    def describe(model):
        calls.append(model)
        return model.__name__

    assert describe(int) == 'int'
    assert describe(int) == 'int'
    assert describe(str) == 'str'
    assert calls == [int, str]

    Cache.get_instance().clear_all()
    describe(int)
    assert calls == [int, str, int]


def test_errors_are_not_cached():
    calls = []

    @cached_by_type('test_errors')
    def fail(model):
        calls.append(model)
        raise ValueError(model)

    for _ in range(2):
        try:
            fail(int)
        except ValueError:
            pass

    assert calls == [int, int]
